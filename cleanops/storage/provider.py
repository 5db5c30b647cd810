from typing import BinaryIO, Optional, Union


class StorageProvider:
    """Bucketed object storage with public URLs."""

    def upload(self, bucket: str, key: str, data: Union[bytes, BinaryIO], content_type: str, upsert: bool = False) -> str:
        raise NotImplementedError

    def get_public_url(self, bucket: str, key: str) -> str:
        raise NotImplementedError

    def exists(self, bucket: str, key: str) -> bool:
        raise NotImplementedError

    def read(self, bucket: str, key: str) -> Optional[bytes]:
        raise NotImplementedError

    def delete(self, bucket: str, key: str) -> None:
        raise NotImplementedError


class StorageError(Exception):
    pass
