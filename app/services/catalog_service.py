"""
Catalog read/edit service
"""
import math
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.models.product import Product, ProductFile, ProductImage, ProductRelation, RelationType
from app.utils.errors import InvalidRequestError, NotFoundError


def product_out(p: Product) -> Dict:
    return {
        "id": p.id,
        "product_no": p.product_no,
        "name": p.name,
        "list_price": p.list_price,
        "is_active": p.is_active,
        "thumb_path": p.thumb_path,
    }


class CatalogService:
    def __init__(self, db: Session):
        self.db = db

    def list_products(
        self,
        q: Optional[str] = None,
        include_inactive: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> Dict:
        query = self.db.query(Product)
        if not include_inactive:
            query = query.filter(Product.is_active == True)
        term = (q or "").strip()
        if term:
            like = f"%{term.upper()}%"
            query = query.filter(or_(
                Product.product_no_key.like(like),
                func.upper(Product.name).like(like),
            ))
        total = query.count()
        rows = query.order_by(Product.product_no_key).offset(offset).limit(limit).all()
        return {"total": total, "products": [product_out(p) for p in rows]}

    def get_product(self, product_id: int, include_inactive: bool = False) -> Dict:
        product = self.db.query(Product).filter(Product.id == product_id).first()
        if not product or (not product.is_active and not include_inactive):
            raise NotFoundError("Product not found")

        files = (
            self.db.query(ProductFile)
            .filter(ProductFile.product_id == product.id)
            .order_by(ProductFile.title, ProductFile.id)
            .all()
        )
        images = (
            self.db.query(ProductImage)
            .filter(ProductImage.product_id == product.id)
            .order_by(ProductImage.sort_order, ProductImage.id)
            .all()
        )

        out = product_out(product)
        out["files"] = [
            {"id": f.id, "relative_path": f.relative_path, "file_type": f.file_type, "title": f.title}
            for f in files
        ]
        out["images"] = [
            {
                "id": i.id,
                "storage_bucket": i.storage_bucket,
                "storage_path": i.storage_path,
                "caption": i.caption,
                "sort_order": i.sort_order,
            }
            for i in images
        ]
        out["accessories"] = self._related(product.id, RelationType.ACCESSORY, include_inactive)
        out["spare_parts"] = self._related(product.id, RelationType.SPARE_PART, include_inactive)
        return out

    def _related(self, product_id: int, relation_type: RelationType, include_inactive: bool) -> List[Dict]:
        query = (
            self.db.query(ProductRelation, Product)
            .join(Product, Product.id == ProductRelation.related_product_id)
            .filter(
                ProductRelation.product_id == product_id,
                ProductRelation.relation_type == relation_type.value,
            )
        )
        if not include_inactive:
            query = query.filter(Product.is_active == True)
        rows = query.order_by(ProductRelation.sort_order, ProductRelation.id).all()
        return [{**product_out(p), "sort_order": rel.sort_order} for rel, p in rows]

    def update_product(self, product_id: int, patch: Dict) -> Dict:
        """Admin edit of name, list_price, is_active and thumb_path."""
        product = self.db.query(Product).filter(Product.id == product_id).first()
        if not product:
            raise NotFoundError("Product not found")

        if "list_price" in patch and patch["list_price"] is not None:
            if not math.isfinite(patch["list_price"]):
                raise InvalidRequestError("list_price is invalid")
        for key in ("name", "thumb_path"):
            if key in patch and patch[key] is not None:
                patch[key] = str(patch[key]).strip() or None
        if "is_active" in patch and patch["is_active"] is None:
            raise InvalidRequestError("is_active cannot be null")
        if not patch:
            raise InvalidRequestError("Nothing to update")

        for key, value in patch.items():
            setattr(product, key, value)
        product.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(product)
        return product_out(product)
