"""Authentication API (login, logout, current user)"""
from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.api.deps import current_principal, require_allowed
from app.models.base import get_db
from app.services import auth_service
from app.services.auth_service import Principal
from app.utils.errors import AuthenticationError, AuthorizationError
from app.config import get_settings

router = APIRouter(prefix="/auth", tags=["auth"])


# ── Schemas ──────────────────────────────────────────────

class LoginRequest(BaseModel):
    email: str
    password: str


def _principal_out(p: Principal) -> dict:
    return {
        "ok": True,
        "email": p.email,
        "role": p.role,
        "display_name": p.display_name,  # UI falls back to email when null
    }


# ── Auth endpoints ───────────────────────────────────────

@router.post("/login")
async def login(body: LoginRequest, db: Session = Depends(get_db)):
    """Authenticate and return a bearer token."""
    user = auth_service.authenticate(db, body.email, body.password)
    if not user:
        raise AuthenticationError("Invalid email or password")

    token = auth_service.create_session(db, user.id)
    principal = auth_service.resolve_principal(db, user)
    return {
        **_principal_out(principal),
        "token": token,
        "token_type": "bearer",
        "expires_in": get_settings().session_duration_hours * 3600,
    }


@router.post("/logout")
async def logout(request: Request, db: Session = Depends(get_db)):
    """Revoke the bearer token used for this request."""
    token = getattr(request.state, "token", None)
    if token:
        auth_service.delete_session(db, token)
    return {"ok": True}


@router.get("/me")
async def me(principal: Principal = Depends(current_principal)):
    """Return current user with allowlist role."""
    if not principal.is_allowed:
        raise AuthorizationError("Not allowed", details={"denied": True})
    return _principal_out(principal)


@router.post("/ensure-allowed")
async def ensure_allowed(principal: Principal = Depends(require_allowed)):
    """Succeeds only when the caller's email is on the allowlist."""
    return {"ok": True}
