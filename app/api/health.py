"""
Health check and status endpoints
"""
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app import __version__
from app.api.deps import require_admin
from app.config import get_settings
from app.models.base import get_db
from app.models.product import Product
from app.services.auth_service import Principal
from app.utils.logger import log

router = APIRouter()


@router.get("/health")
async def health_check():
    """Liveness probe (public)"""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": __version__,
    }


@router.get("/status")
async def get_status(
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin),
):
    """Database reachability, catalog size and import settings (admins)."""
    settings = get_settings()
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
        products = db.query(Product).count()
    except SQLAlchemyError as e:
        log.error(f"Status check: database unreachable: {e}")
        database = "unreachable"
        products = None

    return {
        "app_name": settings.app_name,
        "version": __version__,
        "environment": settings.environment,
        "database": database,
        "products": products,
        "import": {
            "chunk_size": settings.import_chunk_size,
            "atomic": settings.import_atomic,
        },
        "timestamp": datetime.utcnow().isoformat(),
    }
