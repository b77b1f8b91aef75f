"""
Product catalog and bulk import endpoints
"""
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.api.deps import require_admin, require_allowed
from app.config import get_settings
from app.models.base import get_db
from app.services.auth_service import Principal
from app.services.catalog_service import CatalogService
from app.services.product_import_service import ImportConfig, ImportRequest, ProductImportService
from app.services.product_sheet_reader import preview, read_sheet
from app.services.product_store import ProductStore
from app.utils.errors import EmptyBatchError
from app.utils.logger import log

router = APIRouter(tags=["products"])


class ProductPatch(BaseModel):
    name: Optional[str] = None
    list_price: Optional[float] = None
    is_active: Optional[bool] = None
    thumb_path: Optional[str] = None


def get_import_service(db: Session = Depends(get_db)) -> ProductImportService:
    settings = get_settings()
    store = ProductStore(db, chunk_size=settings.import_chunk_size)
    return ProductImportService(store, ImportConfig.from_settings(settings))


# ── Catalog ──────────────────────────────────────────────

@router.get("/api/products")
async def list_products(
    q: Optional[str] = Query(None, description="Search product number or name"),
    include_inactive: bool = Query(False),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_allowed),
):
    """Browse the catalog. Inactive products are visible to admins only."""
    service = CatalogService(db)
    result = service.list_products(
        q=q,
        include_inactive=include_inactive and principal.is_admin,
        limit=limit,
        offset=offset,
    )
    return {"ok": True, **result}


@router.get("/api/products/{product_id}")
async def get_product(
    product_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_allowed),
):
    """Product with documents, gallery, accessories and spare parts."""
    product = CatalogService(db).get_product(product_id, include_inactive=principal.is_admin)
    return {"ok": True, "product": product}


@router.patch("/api/admin/products/{product_id}")
async def update_product(
    product_id: int,
    body: ProductPatch,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin),
):
    patch = {k: getattr(body, k) for k in body.model_fields_set}
    product = CatalogService(db).update_product(product_id, patch)
    return {"ok": True, "product": product}


# ── Import ───────────────────────────────────────────────

@router.post("/api/products/import")
async def import_products(
    body: ImportRequest,
    principal: Principal = Depends(require_admin),
    service: ProductImportService = Depends(get_import_service),
):
    """
    Bulk import of spreadsheet rows.

    Rows are deduplicated by product_no (last row wins), products are
    upserted, and documents, gallery images and accessory / spare-part
    relations are upserted idempotently. Re-importing the same rows is safe.
    """
    if not body.rows:
        raise EmptyBatchError("No rows to import.")

    log.info(f"Product import requested by {principal.email}: {len(body.rows)} rows")
    summary = service.import_rows(body.rows)
    return summary.to_dict()


@router.post("/api/products/import/preview")
async def preview_import(
    file: UploadFile = File(..., description="Product sheet (.xlsx or .csv)"),
    principal: Principal = Depends(require_admin),
):
    """Parse a sheet and report duplicates, errors and warnings without importing."""
    content = await file.read()
    rows = read_sheet(content, file.filename or "")
    return preview(rows).to_dict()


@router.post("/api/products/import/upload")
async def upload_import(
    file: UploadFile = File(..., description="Product sheet (.xlsx or .csv)"),
    principal: Principal = Depends(require_admin),
    service: ProductImportService = Depends(get_import_service),
):
    """Parse a sheet and import its rows in one step."""
    content = await file.read()
    rows = read_sheet(content, file.filename or "")
    if not rows:
        raise EmptyBatchError("No rows to import.")

    log.info(f"Product sheet '{file.filename}' uploaded by {principal.email}: {len(rows)} rows")
    return service.import_rows(rows).to_dict()
