"""Authentication middleware: resolves bearer tokens for every non-public path."""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from app.models.base import SessionLocal
from app.services import auth_service
from app.utils.errors import AuthenticationError, error_response

# Paths that never require authentication
PUBLIC_PREFIXES = (
    "/auth/login",
    "/health",
    "/robots.txt",
    "/docs",
    "/openapi.json",
    "/redoc",
    "/files/object/",  # signed URLs carry their own token
)


class AuthMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        path = request.url.path

        # Allow public paths through
        if path == "/" or any(path.startswith(p) for p in PUBLIC_PREFIXES):
            return await call_next(request)

        token = auth_service.bearer_token(request.headers.get("authorization"))
        if not token:
            return error_response(AuthenticationError("Missing Authorization token."))

        db = SessionLocal()
        try:
            principal = auth_service.principal_for_token(db, token)
        finally:
            db.close()

        if not principal:
            return error_response(AuthenticationError("Invalid session. Please log in again."))

        # Attach principal to request state for downstream use
        request.state.principal = principal
        request.state.token = token
        return await call_next(request)
