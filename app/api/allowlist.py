"""Allowlist administration API: who may sign in and with which role."""
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.api.deps import require_admin
from app.config import get_settings
from app.models.base import get_db
from app.models.user import ROLE_CUSTOMER
from app.services import auth_service
from app.services.auth_service import Principal
from app.utils.errors import AuthenticationError, InvalidRequestError, NotFoundError
from app.utils.logger import log

router = APIRouter(prefix="/api/admin/allowlist", tags=["admin"])


def require_allowlist_admin(request: Request, principal: Principal = Depends(require_admin)) -> Principal:
    """Admin role, plus the X-Admin-Password header when one is configured."""
    expected = get_settings().access_admin_password
    if expected:
        given = request.headers.get("x-admin-password") or ""
        if not secrets.compare_digest(given, expected):
            raise AuthenticationError("Bad admin password")
    return principal


class AllowedEmailIn(BaseModel):
    email: str
    display_name: Optional[str] = None
    role: Optional[str] = None


class AllowedEmailPatch(BaseModel):
    email: str
    display_name: Optional[str] = None
    role: Optional[str] = None


def _entry_out(e) -> dict:
    return {
        "email": e.email,
        "display_name": e.display_name,
        "role": e.role,
        "created_at": e.created_at.isoformat() if e.created_at else None,
    }


def _valid_email(raw) -> str:
    email = auth_service.normalize_email(raw)
    if not auth_service.is_valid_email(email):
        raise InvalidRequestError("Invalid email")
    return email


@router.get("")
async def list_allowlist(
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_allowlist_admin),
):
    """List allowlisted emails, newest first."""
    return {"ok": True, "rows": [_entry_out(e) for e in auth_service.list_allowed(db)]}


@router.post("")
async def upsert_allowlist(
    body: AllowedEmailIn,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_allowlist_admin),
):
    """Add or replace an entry; role defaults to customer."""
    email = _valid_email(body.email)
    role = auth_service.normalize_role(body.role) or ROLE_CUSTOMER
    display_name = (body.display_name or "").strip()
    auth_service.upsert_allowed(db, email, display_name, role)
    log.info(f"Allowlist: {principal.email} set {email} -> {role}")
    return {"ok": True}


@router.patch("")
async def patch_allowlist(
    body: AllowedEmailPatch,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_allowlist_admin),
):
    """Change role and/or display name of an existing entry."""
    email = _valid_email(body.email)
    fields = body.model_fields_set

    patch = {}
    if "role" in fields:
        role = auth_service.normalize_role(body.role)
        if not role:
            raise InvalidRequestError("Invalid role")
        patch["role"] = role
    if "display_name" in fields:
        patch["display_name"] = (body.display_name or "").strip() or None
    if not patch:
        raise InvalidRequestError("Nothing to update")

    if not auth_service.update_allowed(db, email, patch):
        raise NotFoundError("Email is not on the allowlist")
    return {"ok": True}


@router.delete("")
async def delete_allowlist(
    email: str = Query(""),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_allowlist_admin),
):
    email = auth_service.normalize_email(email)
    if not auth_service.is_valid_email(email):
        raise InvalidRequestError("Missing email")
    auth_service.delete_allowed(db, email)
    log.info(f"Allowlist: {principal.email} removed {email}")
    return {"ok": True}
