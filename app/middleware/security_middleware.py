"""Security middleware: anti-crawl header and cache control."""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


class SecurityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response: Response = await call_next(request)

        # --- Anti-crawl header on every response ---
        response.headers["X-Robots-Tag"] = "noindex, nofollow"

        # --- Cache-Control (file routes set their own) ---
        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type and "cache-control" not in response.headers:
            # API data: browser may store but must revalidate each time
            response.headers["Cache-Control"] = "private, no-cache"

        return response
