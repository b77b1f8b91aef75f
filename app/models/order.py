"""Order models"""
from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from datetime import datetime

from app.models.base import Base


ORDER_STATUSES = (
    "SUBMITTED",
    "IN_REVIEW",
    "ORDERED",
    "CONFIRMED",
    "SHIPPING",
    "DELIVERED",
    "CANCELLED",
)


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String, nullable=False, default="SUBMITTED", index=True)

    project_name = Column(String, nullable=False)
    project_no = Column(String, nullable=True)

    contact_name = Column(String, nullable=False)
    contact_phone = Column(String, nullable=True)
    contact_email = Column(String, nullable=True)

    delivery_address = Column(String, nullable=False)
    delivery_postcode = Column(String, nullable=True)
    delivery_city = Column(String, nullable=True)

    comment = Column(Text, nullable=True)
    expected_delivery_date = Column(String, nullable=True)
    delivery_info = Column(Text, nullable=True)

    # Storage path in the order-confirmations bucket
    confirmation_file_path = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=True)
    updated_by_name = Column(String, nullable=True)

    items = relationship("OrderItem", back_populates="order", order_by="OrderItem.id")


class OrderItem(Base):
    """Order line; product data is snapshotted at submission"""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="SET NULL"), nullable=True)
    product_no = Column(String, nullable=False)
    name = Column(String, nullable=True)
    unit_price = Column(Float, nullable=True)
    qty = Column(Integer, nullable=False)

    order = relationship("Order", back_populates="items")
