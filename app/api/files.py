"""File endpoints: signed URLs and local file serving."""
from urllib.parse import quote

from fastapi import APIRouter, Depends, Query
from fastapi.responses import FileResponse

from app.api.deps import require_allowed
from app.config import get_settings
from app.services.auth_service import Principal
from app.services.storage_service import StorageService, is_inline, mime_type, safe_resolve
from app.utils.errors import InvalidRequestError, NotFoundError
from app.utils.logger import log

router = APIRouter(tags=["files"])


def get_storage() -> StorageService:
    return StorageService(get_settings())


def _file_response(full_path, force_download: bool = False) -> FileResponse:
    mime = mime_type(full_path.name)
    disposition = "attachment" if force_download or not is_inline(mime) else "inline"
    return FileResponse(
        full_path,
        media_type=mime,
        headers={
            "Cache-Control": "private, max-age=60",
            "Content-Disposition": f'{disposition}; filename="{quote(full_path.name)}"',
            "Vary": "Authorization",
        },
    )


@router.get("/api/files/signed-url")
async def signed_url(
    bucket: str = Query(""),
    path: str = Query(""),
    expires: str = Query(None),
    download: str = Query(None),
    principal: Principal = Depends(require_allowed),
    storage: StorageService = Depends(get_storage),
):
    """Sign a product image or document for temporary access."""
    bucket = bucket.strip()
    storage_path = path.strip()
    if not bucket:
        raise InvalidRequestError("Missing bucket.")
    if bucket not in storage.signable_buckets:
        raise InvalidRequestError(f"Invalid bucket: {bucket}")
    if not storage_path:
        raise InvalidRequestError("Missing path.")

    expires_in = storage.clamp_expires(expires)
    try:
        url = storage.create_signed_url(bucket, storage_path, expires_in, download=download == "1")
    except NotFoundError:
        log.warning(f"Signed URL failed: {bucket}/{storage_path} not found")
        raise
    return {"ok": True, "url": url, "expires_in": expires_in}


@router.get("/files/object/{bucket}/{path:path}")
async def signed_object(
    bucket: str,
    path: str,
    token: str = Query(""),
    storage: StorageService = Depends(get_storage),
):
    """Serve an object addressed by a signed URL."""
    signed = storage.verify_signed(token, bucket, path)
    full = storage.resolve(signed.bucket, signed.path)
    if not full.is_file():
        raise NotFoundError("Not found")
    return _file_response(full, force_download=signed.download)


@router.get("/api/local-file/{path:path}")
async def local_file(path: str):
    """Serve a file stored under FILE_STORAGE_ROOT (authenticated users)."""
    full = safe_resolve(get_settings().file_storage_root, path)
    if not full.is_file():
        raise NotFoundError("Not found")
    return _file_response(full)
