from mimetypes import guess_type

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from ..storage.local_provider import LocalStorageProvider
from ..storage.provider import StorageProvider, StorageError


router = APIRouter(prefix="/files", tags=["files"])

PUBLIC_BUCKETS = {"bathroom-assist", "qr-codes"}


def get_storage() -> StorageProvider:
    return LocalStorageProvider()


@router.get("/{bucket}/{key:path}")
def serve_file(bucket: str, key: str, storage: StorageProvider = Depends(get_storage)):
    """Public URL target for objects in the assist and QR buckets."""
    if bucket not in PUBLIC_BUCKETS:
        raise HTTPException(status_code=404, detail="File not found")
    try:
        data = storage.read(bucket, key)
    except StorageError:
        raise HTTPException(status_code=403, detail="Access denied")
    if data is None:
        raise HTTPException(status_code=404, detail="File not found")
    content_type = guess_type(key)[0] or "application/octet-stream"
    return Response(content=data, media_type=content_type, headers={"Cache-Control": "public, max-age=3600"})
