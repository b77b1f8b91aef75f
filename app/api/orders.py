"""Orders API"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.api.deps import current_principal, require_admin, require_allowed, require_purchasing
from app.config import get_settings
from app.models.base import get_db
from app.services.auth_service import Principal
from app.services.order_service import OrderService, order_out
from app.services.storage_service import StorageService
from app.utils.errors import AuthorizationError, NotFoundError

router = APIRouter(tags=["orders"])


class OrderLineIn(BaseModel):
    product_id: int
    qty: int = Field(..., ge=1)


class OrderIn(BaseModel):
    project_name: str
    project_no: Optional[str] = None
    contact_name: str
    contact_phone: Optional[str] = None
    contact_email: Optional[str] = None
    delivery_address: str
    delivery_postcode: Optional[str] = None
    delivery_city: Optional[str] = None
    comment: Optional[str] = None
    items: List[OrderLineIn] = Field(default_factory=list)


class StatusIn(BaseModel):
    status: str


@router.post("/orders", status_code=201)
async def submit_order(
    body: OrderIn,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_allowed),
):
    """Submit the cart as an order."""
    data = body.model_dump(exclude={"items"})
    lines = [line.model_dump() for line in body.items]
    order = OrderService(db).submit(principal, data, lines)
    return {"ok": True, "order": order_out(order, with_items=True)}


@router.get("/orders")
async def list_orders(
    status: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_allowed),
):
    """Own orders, newest first. Purchasers and admins see every order."""
    orders = OrderService(db).list_for(principal, status=status)
    return {"ok": True, "orders": [order_out(o) for o in orders]}


@router.get("/orders/{order_id}")
async def get_order(
    order_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_allowed),
):
    order = OrderService(db).get_for(principal, order_id)
    return {"ok": True, "order": order_out(order, with_items=True)}


@router.patch("/orders/{order_id}/status")
async def set_order_status(
    order_id: int,
    body: StatusIn,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_purchasing),
):
    order = OrderService(db).set_status(principal, order_id, body.status.strip().upper())
    return {"ok": True, "order": order_out(order)}


@router.get("/orders/{order_id}/confirmation-url")
async def confirmation_url(
    order_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(current_principal),
):
    """Signed URL (10 minutes) for the order confirmation PDF; owner only."""
    settings = get_settings()
    order = OrderService(db).get_for(principal, order_id)
    if order.created_by != principal.user_id:
        raise AuthorizationError("Forbidden")
    if not order.confirmation_file_path:
        raise NotFoundError("Not found")

    storage = StorageService(settings)
    url = storage.create_signed_url(
        settings.order_confirmations_bucket,
        order.confirmation_file_path,
        settings.order_confirmation_expires,
    )
    return {"ok": True, "url": url}


@router.delete("/api/admin/orders/{order_id}")
async def delete_order(
    order_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin),
):
    """Delete an order and its lines."""
    OrderService(db).delete(order_id)
    return {"ok": True}
