"""
Local filesystem storage provider.
Buckets are directories under STORAGE_DIR; objects are served back through /files/{bucket}/{key}.
"""
from pathlib import Path
from typing import Optional, BinaryIO, Union
from urllib.parse import quote

import structlog

from ..config import settings
from .provider import StorageProvider, StorageError

log = structlog.get_logger(__name__)


class LocalStorageProvider(StorageProvider):

    def __init__(self, base_dir: Optional[str] = None):
        self.base_dir = Path(base_dir or settings.storage_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _get_path(self, bucket: str, key: str) -> Path:
        """Filesystem path for an object; refuses keys that escape the bucket."""
        clean_key = key.lstrip("/").replace("\\", "/")
        bucket_dir = (self.base_dir / bucket).resolve()
        path = (bucket_dir / clean_key).resolve()
        if bucket_dir != path and bucket_dir not in path.parents:
            raise StorageError("Invalid storage key")
        return path

    def upload(self, bucket: str, key: str, data: Union[bytes, BinaryIO], content_type: str, upsert: bool = False) -> str:
        path = self._get_path(bucket, key)
        if path.exists() and not upsert:
            raise StorageError(f"Object already exists: {bucket}/{key}")
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = data.read() if hasattr(data, "read") else data
        with open(path, "wb") as f:
            f.write(payload)
        log.info("storage_upload", bucket=bucket, key=key, content_type=content_type, size=len(payload))
        return self.get_public_url(bucket, key)

    def get_public_url(self, bucket: str, key: str) -> str:
        base = settings.public_base_url.rstrip("/")
        return f"{base}/files/{quote(bucket)}/{quote(key.lstrip('/'))}"

    def exists(self, bucket: str, key: str) -> bool:
        try:
            return self._get_path(bucket, key).is_file()
        except StorageError:
            return False

    def read(self, bucket: str, key: str) -> Optional[bytes]:
        path = self._get_path(bucket, key)
        if not path.is_file():
            return None
        return path.read_bytes()

    def delete(self, bucket: str, key: str) -> None:
        path = self._get_path(bucket, key)
        if path.exists():
            path.unlink()
