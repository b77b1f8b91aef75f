"""Shared route dependencies: principal lookup and role gates."""
from fastapi import Request

from app.models.user import ROLE_ADMIN, ROLE_PURCHASER
from app.services.auth_service import Principal
from app.utils.errors import AuthenticationError, AuthorizationError


def current_principal(request: Request) -> Principal:
    """Dependency: principal attached by AuthMiddleware, or 401."""
    principal = getattr(request.state, "principal", None)
    if not principal:
        raise AuthenticationError("Not authenticated")
    return principal


def require_allowed(request: Request) -> Principal:
    """Dependency: caller must be on the email allowlist."""
    principal = current_principal(request)
    if not principal.is_allowed:
        raise AuthorizationError("Not allowed", details={"denied": True})
    return principal


def require_admin(request: Request) -> Principal:
    principal = current_principal(request)
    if not principal.is_admin:
        raise AuthorizationError("Admin access required")
    return principal


def require_purchasing(request: Request) -> Principal:
    """Dependency: purchaser or admin."""
    principal = current_principal(request)
    if principal.role not in (ROLE_ADMIN, ROLE_PURCHASER):
        raise AuthorizationError("Purchaser or admin access required")
    return principal
