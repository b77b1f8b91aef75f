"""Database models for the ordering portal"""

from app.models.product import (
    Product,
    ProductFile,
    ProductImage,
    ProductRelation,
    RelationType,
)

from app.models.user import (
    User,
    UserSession,
    AllowedEmail,
)

from app.models.order import (
    Order,
    OrderItem,
)

__all__ = [
    "Product",
    "ProductFile",
    "ProductImage",
    "ProductRelation",
    "RelationType",
    "User",
    "UserSession",
    "AllowedEmail",
    "Order",
    "OrderItem",
]
