"""
Order submission and purchasing workflow
"""
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from app.models.order import Order, OrderItem, ORDER_STATUSES
from app.models.product import Product
from app.models.user import ROLE_ADMIN, ROLE_PURCHASER
from app.services.auth_service import Principal
from app.utils.errors import AuthorizationError, InvalidRequestError, NotFoundError
from app.utils.logger import log


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return str(value).strip() or None


def can_see_all_orders(principal: Principal) -> bool:
    return principal.role in (ROLE_ADMIN, ROLE_PURCHASER)


def order_total(order: Order) -> float:
    return round(sum((i.unit_price or 0) * i.qty for i in order.items), 2)


def order_out(order: Order, with_items: bool = False) -> Dict:
    out = {
        "id": order.id,
        "created_by": order.created_by,
        "created_at": order.created_at.isoformat() if order.created_at else None,
        "status": order.status if order.status in ORDER_STATUSES else "SUBMITTED",
        "project_name": order.project_name,
        "project_no": order.project_no,
        "contact_name": order.contact_name,
        "contact_phone": order.contact_phone,
        "contact_email": order.contact_email,
        "delivery_address": order.delivery_address,
        "delivery_postcode": order.delivery_postcode,
        "delivery_city": order.delivery_city,
        "comment": order.comment,
        "expected_delivery_date": order.expected_delivery_date,
        "delivery_info": order.delivery_info,
        "updated_at": order.updated_at.isoformat() if order.updated_at else None,
        "updated_by_name": order.updated_by_name,
        "total": order_total(order),
    }
    if with_items:
        out["items"] = [
            {
                "id": i.id,
                "product_id": i.product_id,
                "product_no": i.product_no,
                "name": i.name,
                "unit_price": i.unit_price,
                "qty": i.qty,
            }
            for i in order.items
        ]
    return out


class OrderService:
    def __init__(self, db: Session):
        self.db = db

    def submit(self, principal: Principal, data: Dict, lines: List[Dict]) -> Order:
        """Create an order plus lines, snapshotting product number, name and price."""
        for required in ("project_name", "contact_name", "delivery_address"):
            if not _clean(data.get(required)):
                raise InvalidRequestError(f"{required} is required")
        if not lines:
            raise InvalidRequestError("Order has no lines")

        product_ids = {line["product_id"] for line in lines}
        products = {
            p.id: p
            for p in self.db.query(Product).filter(Product.id.in_(product_ids)).all()
        }
        missing = sorted(pid for pid in product_ids if pid not in products)
        if missing:
            raise InvalidRequestError("Unknown products in order", details={"product_ids": missing})

        order = Order(
            created_by=principal.user_id,
            status="SUBMITTED",
            project_name=_clean(data.get("project_name")),
            project_no=_clean(data.get("project_no")),
            contact_name=_clean(data.get("contact_name")),
            contact_phone=_clean(data.get("contact_phone")),
            contact_email=_clean(data.get("contact_email")),
            delivery_address=_clean(data.get("delivery_address")),
            delivery_postcode=_clean(data.get("delivery_postcode")),
            delivery_city=_clean(data.get("delivery_city")),
            comment=_clean(data.get("comment")),
        )
        for line in lines:
            product = products[line["product_id"]]
            order.items.append(OrderItem(
                product_id=product.id,
                product_no=product.product_no,
                name=product.name,
                unit_price=product.list_price,
                qty=line["qty"],
            ))
        self.db.add(order)
        self.db.commit()
        self.db.refresh(order)
        log.info(f"Order {order.id} submitted by {principal.email} ({len(lines)} lines)")
        return order

    def list_for(self, principal: Principal, status: Optional[str] = None) -> List[Order]:
        query = self.db.query(Order)
        if not can_see_all_orders(principal):
            query = query.filter(Order.created_by == principal.user_id)
        if status:
            query = query.filter(Order.status == status)
        return query.order_by(Order.created_at.desc(), Order.id.desc()).all()

    def get_for(self, principal: Principal, order_id: int) -> Order:
        order = self.db.query(Order).filter(Order.id == order_id).first()
        if not order:
            raise NotFoundError("Order not found")
        if order.created_by != principal.user_id and not can_see_all_orders(principal):
            raise AuthorizationError("Not your order")
        return order

    def set_status(self, principal: Principal, order_id: int, status: str) -> Order:
        if status not in ORDER_STATUSES:
            raise InvalidRequestError("Invalid status", details={"allowed": list(ORDER_STATUSES)})
        order = self.db.query(Order).filter(Order.id == order_id).first()
        if not order:
            raise NotFoundError("Order not found")
        order.status = status
        order.updated_at = datetime.utcnow()
        order.updated_by_name = principal.display_name or principal.email
        self.db.commit()
        self.db.refresh(order)
        return order

    def delete(self, order_id: int) -> None:
        """Delete lines first, then the order."""
        order = self.db.query(Order).filter(Order.id == order_id).first()
        if not order:
            raise NotFoundError("Order not found")
        self.db.query(OrderItem).filter(OrderItem.order_id == order_id).delete()
        self.db.delete(order)
        self.db.commit()
        log.info(f"Order {order_id} deleted")
