"""
Internal Ordering Portal
Main FastAPI application
"""
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from contextlib import asynccontextmanager

from app.config import get_settings
from app.utils.logger import log
from app.utils.errors import PortalError, error_response
from app import __version__

# Import routers
from app.api import health, auth, allowlist, products, orders, files
from app.middleware.auth_middleware import AuthMiddleware
from app.middleware.security_middleware import SecurityMiddleware

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    # Startup
    log.info(f"Starting {settings.app_name} v{__version__}")
    log.info(f"Environment: {settings.environment}")

    # Initialize database
    try:
        from app.models.base import init_db, SessionLocal
        init_db()
        log.info("Database initialized")

        # Seed initial admin user if configured
        from app.services import auth_service
        db = SessionLocal()
        try:
            auth_service.seed_initial_user(db)
        finally:
            db.close()
    except Exception as e:
        log.error(f"Database initialization error: {str(e)}")
        raise

    yield

    # Shutdown
    log.info("Shutting down application")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=__version__,
    description="""
    Internal ordering portal

    - Product catalog with documents, gallery images, accessories and spare parts
    - Bulk product import from spreadsheets (idempotent upserts)
    - Order submission and purchasing workflow
    - Email allowlist with roles (customer / purchaser / admin)
    - Signed URLs for product files
    """,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Security headers
app.add_middleware(SecurityMiddleware)

# Bearer-token authentication middleware
app.add_middleware(AuthMiddleware)


@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, exc: PortalError):
    if exc.status_code >= 500:
        log.error(f"{request.method} {request.url.path} failed: {exc.message} ({exc.details})")
    return error_response(exc)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies and parameters share the error envelope."""
    return JSONResponse(
        status_code=400,
        content={
            "ok": False,
            "error": "Invalid request body.",
            "code": "invalid_body",
            "details": jsonable_encoder(exc.errors()),
        },
    )


# Include routers
app.include_router(auth.router)
app.include_router(health.router, tags=["health"])
app.include_router(allowlist.router)
app.include_router(products.router)
app.include_router(orders.router)
app.include_router(files.router)


@app.get("/robots.txt", response_class=PlainTextResponse)
async def robots_txt():
    """Block all crawlers"""
    return "User-agent: *\nDisallow: /\n"


@app.get("/")
async def root():
    """Root endpoint with API information"""
    return {
        "app": settings.app_name,
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "login": "POST /auth/login",
            "me": "GET /auth/me",
            "products": "GET /api/products",
            "product_import": "POST /api/products/import",
            "product_import_preview": "POST /api/products/import/preview",
            "orders": "GET|POST /orders",
            "allowlist": "GET|POST|PATCH|DELETE /api/admin/allowlist",
            "signed_url": "GET /api/files/signed-url",
        },
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )
