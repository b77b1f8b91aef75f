"""
Relational store access for the product import.

Bulk "insert or update by unique key" and "select by key set" over the
four catalog tables. Upserts use the dialect's ``INSERT ... ON CONFLICT DO
UPDATE`` so they are idempotent and race-safe under the declared unique
constraints. Every failing call rolls back its own transaction and raises
``StoreError``; earlier commits are left alone.
"""
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterable, Iterator, List, Sequence, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.product import Product, ProductFile, ProductImage, ProductRelation
from app.utils.errors import ConfigurationError, StoreError
from app.utils.logger import log


def _chunked(rows: Sequence[dict], size: int) -> Iterator[List[dict]]:
    for i in range(0, len(rows), size):
        yield list(rows[i:i + size])


class ProductStore:
    def __init__(self, db: Session, chunk_size: int = 500):
        self.db = db
        self.chunk_size = max(1, chunk_size)

    def _insert(self, table):
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            raise ConfigurationError(f"Upsert is not supported for database dialect '{dialect}'")
        return insert(table)

    @contextmanager
    def _guard(self, message: str):
        try:
            yield
        except SQLAlchemyError as exc:
            self.db.rollback()
            detail = str(getattr(exc, "orig", None) or exc)
            log.error(f"{message}: {detail}")
            raise StoreError(message, details=detail) from exc

    def commit(self) -> None:
        with self._guard("Commit failed"):
            self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    # ── Products ─────────────────────────────────────────────

    def upsert_products(self, rows: Sequence[dict]) -> List[Tuple[int, str]]:
        """Upsert on product_no_key; returns (id, product_no_key) per row.

        A ``None`` thumb_path never overwrites a stored value.
        """
        if not rows:
            return []
        table = Product.__table__
        result: List[Tuple[int, str]] = []
        with self._guard("Upsert into products failed"):
            for chunk in _chunked(rows, self.chunk_size):
                now = datetime.utcnow()
                values = [{**r, "created_at": now, "updated_at": now} for r in chunk]
                stmt = self._insert(table).values(values)
                stmt = stmt.on_conflict_do_update(
                    index_elements=[table.c.product_no_key],
                    set_={
                        "product_no": stmt.excluded.product_no,
                        "name": stmt.excluded.name,
                        "list_price": stmt.excluded.list_price,
                        "is_active": stmt.excluded.is_active,
                        "thumb_path": func.coalesce(stmt.excluded.thumb_path, table.c.thumb_path),
                        "updated_at": stmt.excluded.updated_at,
                    },
                ).returning(table.c.id, table.c.product_no_key)
                result.extend((row[0], row[1]) for row in self.db.execute(stmt))
        return result

    def find_products_by_keys(self, keys: Iterable[str]) -> List[Tuple[int, str]]:
        keys = list(keys)
        if not keys:
            return []
        table = Product.__table__
        found: List[Tuple[int, str]] = []
        with self._guard("Lookup of referenced products failed"):
            for i in range(0, len(keys), self.chunk_size):
                stmt = select(table.c.id, table.c.product_no_key).where(
                    table.c.product_no_key.in_(keys[i:i + self.chunk_size])
                )
                found.extend((row[0], row[1]) for row in self.db.execute(stmt))
        return found

    # ── Dependent collections ────────────────────────────────

    def _upsert(self, table, rows: Sequence[dict], keys: Sequence[str], message: str) -> int:
        if not rows:
            return 0
        update_cols = [c for c in rows[0].keys() if c not in keys]
        with self._guard(message):
            for chunk in _chunked(rows, self.chunk_size):
                stmt = self._insert(table).values(chunk)
                stmt = stmt.on_conflict_do_update(
                    index_elements=[table.c[k] for k in keys],
                    set_={c: stmt.excluded[c] for c in update_cols},
                )
                self.db.execute(stmt)
        return len(rows)

    def upsert_product_files(self, rows: Sequence[Dict]) -> int:
        return self._upsert(
            ProductFile.__table__, rows, ("product_id", "relative_path"),
            "Upsert into product_files failed",
        )

    def upsert_product_images(self, rows: Sequence[Dict]) -> int:
        return self._upsert(
            ProductImage.__table__, rows, ("product_id", "storage_path"),
            "Upsert into product_images failed",
        )

    def upsert_product_relations(self, rows: Sequence[Dict]) -> int:
        return self._upsert(
            ProductRelation.__table__, rows, ("product_id", "related_product_id", "relation_type"),
            "Upsert into product_relations failed",
        )
