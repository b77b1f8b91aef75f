"""
Product catalog models
Products plus the attachments, gallery images and cross-references the
bulk import maintains.
"""
import enum

from sqlalchemy import (
    Column, Integer, String, Float, DateTime, Boolean, ForeignKey,
    UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime

from app.models.base import Base


class RelationType(str, enum.Enum):
    ACCESSORY = "ACCESSORY"
    SPARE_PART = "SPARE_PART"


class Product(Base):
    """Catalog product keyed by its business product number"""
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    # Display casing as last imported
    product_no = Column(String, nullable=False)
    # Upper-cased product_no; carries the uniqueness used for matching
    product_no_key = Column(String, nullable=False, unique=True, index=True)

    name = Column(String, nullable=True, index=True)
    list_price = Column(Float, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    thumb_path = Column(String, nullable=True)  # bucket: product-images

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    files = relationship("ProductFile", back_populates="product", cascade="all, delete-orphan")
    images = relationship(
        "ProductImage",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductImage.sort_order",
    )


class ProductFile(Base):
    """Document attached to a product (bucket: product-files)"""
    __tablename__ = "product_files"
    __table_args__ = (
        UniqueConstraint("product_id", "relative_path", name="uq_product_files_product_path"),
    )

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    relative_path = Column(String, nullable=False)
    file_type = Column(String, nullable=False)
    title = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    product = relationship("Product", back_populates="files")


class ProductImage(Base):
    """Gallery image for a product"""
    __tablename__ = "product_images"
    __table_args__ = (
        UniqueConstraint("product_id", "storage_path", name="uq_product_images_product_path"),
    )

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    storage_bucket = Column(String, nullable=False)
    storage_path = Column(String, nullable=False)
    caption = Column(String, nullable=True)
    sort_order = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=datetime.utcnow)

    product = relationship("Product", back_populates="images")


class ProductRelation(Base):
    """Accessory / spare-part link between two products"""
    __tablename__ = "product_relations"
    __table_args__ = (
        UniqueConstraint(
            "product_id", "related_product_id", "relation_type",
            name="uq_product_relations_pair_type",
        ),
        CheckConstraint("product_id <> related_product_id", name="ck_product_relations_not_self"),
    )

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    related_product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    relation_type = Column(String, nullable=False)  # RelationType value
    sort_order = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=datetime.utcnow)

    related_product = relationship("Product", foreign_keys=[related_product_id])
