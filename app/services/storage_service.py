"""
File storage on the local filesystem.

Buckets are sub-directories of ``FILE_STORAGE_ROOT``. Signed URLs carry a
short-lived HS256 token (PyJWT) naming exactly one bucket/path, so they
can be embedded in <img> tags without a bearer header.
"""
import math
import mimetypes
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional
from urllib.parse import quote

import jwt

from app.config import Settings
from app.utils.errors import AuthenticationError, InvalidRequestError, NotFoundError

_MIME_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".pdf": "application/pdf",
    ".txt": "text/plain; charset=utf-8",
    ".csv": "text/csv; charset=utf-8",
    ".json": "application/json; charset=utf-8",
}

_ALGORITHM = "HS256"


def mime_type(path: str) -> str:
    ext = Path(path).suffix.lower()
    return _MIME_TYPES.get(ext) or mimetypes.guess_type(path)[0] or "application/octet-stream"


def is_inline(mime: str) -> bool:
    """Images and PDFs open in the browser; everything else downloads."""
    return mime.startswith("image/") or mime == "application/pdf"


def clean_relative_path(rel_path: str) -> str:
    return str(rel_path or "").replace("\\", "/").lstrip("/")


def safe_resolve(root: str, rel_path: str) -> Path:
    """Resolve ``rel_path`` under ``root``; refuse anything that escapes it."""
    cleaned = clean_relative_path(rel_path)
    if not cleaned:
        raise InvalidRequestError("Missing path")
    root_resolved = Path(root).resolve()
    full = (root_resolved / cleaned).resolve()
    if full != root_resolved and root_resolved not in full.parents:
        raise InvalidRequestError("Invalid path")
    return full


# ── Storage path helpers ─────────────────────────────────────

def _stamped(product_id, kind: str, file_name: str) -> str:
    safe = file_name.replace(" ", "_")
    return f"products/{product_id}/{kind}/{int(time.time() * 1000)}_{safe}"


def product_image_path(product_id, file_name: str) -> str:
    return _stamped(product_id, "images", file_name)


def product_thumb_path(product_id, file_name: str) -> str:
    return _stamped(product_id, "thumb", file_name)


def product_file_path(product_id, file_name: str) -> str:
    return _stamped(product_id, "files", file_name)


@dataclass
class SignedObject:
    bucket: str
    path: str
    download: bool


class StorageService:
    def __init__(self, settings: Settings):
        self.settings = settings
        self.root = Path(settings.file_storage_root)
        self.secret = settings.url_signing_secret

    @property
    def signable_buckets(self) -> set:
        return {self.settings.product_images_bucket, self.settings.product_files_bucket}

    def bucket_root(self, bucket: str) -> Path:
        return self.root / bucket

    def resolve(self, bucket: str, path: str) -> Path:
        return safe_resolve(str(self.bucket_root(bucket)), path)

    def clamp_expires(self, raw: Optional[str]) -> int:
        s = self.settings
        try:
            value = float(raw) if raw not in (None, "") else float(s.signed_url_default_expires)
        except ValueError:
            value = float(s.signed_url_default_expires)
        if math.isnan(value) or value <= 0:
            value = float(s.signed_url_default_expires)
        # +inf lands on the upper bound
        expires = int(min(value, s.signed_url_max_expires))
        return max(s.signed_url_min_expires, expires)

    def create_signed_url(self, bucket: str, path: str, expires_in: int, download: bool = False) -> str:
        """Sign ``bucket/path`` for ``expires_in`` seconds; the object must exist."""
        full = self.resolve(bucket, path)
        if not full.is_file():
            raise NotFoundError("Object not found", details={"bucket": bucket, "path": path})
        cleaned = clean_relative_path(path)
        claims = {
            "bucket": bucket,
            "path": cleaned,
            "download": bool(download),
            "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
        }
        token = jwt.encode(claims, self.secret, algorithm=_ALGORITHM)
        return f"/files/object/{quote(bucket)}/{quote(cleaned)}?token={token}"

    def verify_signed(self, token: str, bucket: str, path: str) -> SignedObject:
        try:
            claims = jwt.decode(token, self.secret, algorithms=[_ALGORITHM])
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Signed URL has expired")
        except jwt.InvalidTokenError:
            raise AuthenticationError("Invalid signature")
        if claims.get("bucket") != bucket or claims.get("path") != clean_relative_path(path):
            raise AuthenticationError("Signature does not match object")
        return SignedObject(bucket=bucket, path=claims["path"], download=bool(claims.get("download")))
