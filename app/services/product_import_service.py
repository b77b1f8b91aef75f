"""
Bulk Product Import Service

Takes spreadsheet-derived rows and reconciles them into the catalog:

1. normalize and dedupe rows (last row per product number wins)
2. upsert base products and map product numbers to ids
3. resolve accessory / spare-part references that point outside the batch
4. upsert files, images and relations derived from each row

Store calls run strictly in that order. A failure aborts the batch; steps
that already committed stay committed unless ``ImportConfig.atomic`` is set.
"""
import math
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, Field, field_validator

from app.config import Settings
from app.models.product import RelationType
from app.services.product_store import ProductStore
from app.utils.errors import RowValidationError, StoreError
from app.utils.logger import log


# First data row sits below a single header row in the source sheet
HEADER_ROWS = 1

_REFERENCE_SPLIT = re.compile(r"[;,]")
_PATH_SPLIT = re.compile(r"[;,\n\r]+")


class ImportRow(BaseModel):
    """One spreadsheet row as posted by the client."""

    product_no: Optional[str] = ""
    name: Optional[str] = None
    list_price: Optional[Union[float, str]] = None
    is_active: Optional[bool] = None

    thumb_path: Optional[str] = None
    documents: Optional[str] = None
    gallery_images: Optional[str] = None

    accessories: Optional[str] = None
    spare_parts: Optional[str] = None

    @field_validator(
        "product_no", "name", "thumb_path", "documents",
        "gallery_images", "accessories", "spare_parts",
        mode="before",
    )
    @classmethod
    def _cell_to_text(cls, value: Any) -> Any:
        # Spreadsheet exports hand product numbers over as numbers
        if value is None:
            return None
        if isinstance(value, bool):
            return str(value).lower()
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        if isinstance(value, (int, float)):
            return str(value)
        return value

    @field_validator("product_no", mode="after")
    @classmethod
    def _none_product_no(cls, value: Optional[str]) -> str:
        return value or ""


class ImportRequest(BaseModel):
    rows: List[ImportRow] = Field(default_factory=list)


@dataclass(frozen=True)
class ImportConfig:
    images_bucket: str = "product-images"
    document_file_type: str = "dok"
    atomic: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "ImportConfig":
        return cls(
            images_bucket=settings.product_images_bucket,
            atomic=settings.import_atomic,
        )


@dataclass(frozen=True)
class NormalizedRow:
    source_row: int
    product_no: str
    name: Optional[str]
    list_price: Optional[float]
    is_active: bool
    thumb_path: Optional[str]
    documents: Tuple[str, ...] = ()
    gallery_images: Tuple[str, ...] = ()
    accessories: Tuple[str, ...] = ()
    spare_parts: Tuple[str, ...] = ()

    @property
    def key(self) -> str:
        return self.product_no.upper()


@dataclass(frozen=True)
class ResolvedIds:
    """Read-only map of upper-cased product number -> product id."""

    ids: Mapping[str, int] = field(default_factory=dict)

    def get(self, product_no: str) -> Optional[int]:
        return self.ids.get(product_no.strip().upper())

    def __len__(self) -> int:
        return len(self.ids)


@dataclass
class ImportSummary:
    rows_in: int = 0
    rows_deduped: int = 0
    products_upserted: int = 0
    files_upserted: int = 0
    images_upserted: int = 0
    relations_upserted: int = 0
    unresolved_references: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "ok": True,
            "rows_in": self.rows_in,
            "rows_deduped": self.rows_deduped,
            "products_upserted": self.products_upserted,
            "files_upserted": self.files_upserted,
            "images_upserted": self.images_upserted,
            "relations_upserted": self.relations_upserted,
        }


# ── Parsing helpers ──────────────────────────────────────────

def split_references(value: Optional[str]) -> List[str]:
    """Product-number lists: comma or semicolon separated."""
    if not value:
        return []
    return [x.strip() for x in _REFERENCE_SPLIT.split(str(value)) if x.strip()]


def split_paths(value: Optional[str]) -> List[str]:
    """Storage-path lists: comma, semicolon or line-break separated."""
    if not value:
        return []
    return [x.strip() for x in _PATH_SPLIT.split(str(value)) if x.strip()]


def path_title(path: str) -> Optional[str]:
    """Final path segment, or None for an empty path."""
    p = str(path or "").strip()
    if not p:
        return None
    return p.split("/")[-1] or p


def parse_list_price(value: Union[float, str, None], row_number: int, product_no: str) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, str):
        if not value.strip():
            return None
        try:
            # float() would accept digit grouping like "1_000"
            if "_" in value:
                raise ValueError(value)
            price = float(value.strip())
        except ValueError:
            raise RowValidationError(row_number, product_no, "list_price is invalid.", value)
    else:
        price = float(value)
    if not math.isfinite(price):
        raise RowValidationError(row_number, product_no, "list_price is invalid.", value)
    return price


def _text_or_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return str(value).strip() or None


def normalize_rows(rows: Sequence[ImportRow]) -> List[NormalizedRow]:
    """Trim, dedupe (last row per product number wins) and validate.

    Raises RowValidationError for the first surviving row whose price is
    unusable, reporting its position in the original input.
    """
    latest: Dict[str, Tuple[int, ImportRow, str]] = {}
    for index, row in enumerate(rows):
        product_no = (row.product_no or "").strip()
        if not product_no:
            continue
        latest[product_no.upper()] = (index + 1 + HEADER_ROWS, row, product_no)

    normalized = []
    for row_number, row, product_no in sorted(latest.values(), key=lambda t: t[0]):
        normalized.append(NormalizedRow(
            source_row=row_number,
            product_no=product_no,
            name=_text_or_none(row.name),
            list_price=parse_list_price(row.list_price, row_number, product_no),
            is_active=True if row.is_active is None else bool(row.is_active),
            thumb_path=_text_or_none(row.thumb_path),
            documents=tuple(split_paths(row.documents)),
            gallery_images=tuple(split_paths(row.gallery_images)),
            accessories=tuple(split_references(row.accessories)),
            spare_parts=tuple(split_references(row.spare_parts)),
        ))
    return normalized


# ── Dependent record derivation ──────────────────────────────

def derive_file_records(rows: Sequence[NormalizedRow], resolved: ResolvedIds, file_type: str) -> List[Dict]:
    records = []
    seen = set()
    for row in rows:
        product_id = resolved.get(row.product_no)
        if product_id is None:
            continue
        for path in row.documents:
            if (product_id, path) in seen:
                continue
            seen.add((product_id, path))
            records.append({
                "product_id": product_id,
                "relative_path": path,
                "file_type": file_type,
                "title": path_title(path),
            })
    return records


def derive_image_records(rows: Sequence[NormalizedRow], resolved: ResolvedIds, bucket: str) -> List[Dict]:
    records = []
    for row in rows:
        product_id = resolved.get(row.product_no)
        if product_id is None:
            continue
        seen = set()
        sort = 0
        for path in row.gallery_images:
            if path in seen:
                continue
            seen.add(path)
            sort += 1
            records.append({
                "product_id": product_id,
                "storage_bucket": bucket,
                "storage_path": path,
                "caption": None,
                "sort_order": sort,
            })
    return records


def derive_relation_records(rows: Sequence[NormalizedRow], resolved: ResolvedIds) -> List[Dict]:
    records = []
    for row in rows:
        product_id = resolved.get(row.product_no)
        if product_id is None:
            continue
        for relation_type, references in (
            (RelationType.ACCESSORY, row.accessories),
            (RelationType.SPARE_PART, row.spare_parts),
        ):
            seen = set()
            sort = 0
            for no in references:
                related_id = resolved.get(no)
                if related_id is None or related_id == product_id or related_id in seen:
                    continue
                seen.add(related_id)
                sort += 1
                records.append({
                    "product_id": product_id,
                    "related_product_id": related_id,
                    "relation_type": relation_type.value,
                    "sort_order": sort,
                })
    return records


def _referenced_keys(rows: Sequence[NormalizedRow]) -> List[str]:
    keys = {}
    for row in rows:
        for no in row.accessories + row.spare_parts:
            keys.setdefault(no.upper(), None)
    return list(keys)


class ProductImportService:
    def __init__(self, store: ProductStore, config: ImportConfig):
        self.store = store
        self.config = config

    def import_rows(self, rows: Sequence[ImportRow]) -> ImportSummary:
        """Run the whole pipeline; returns counts on success."""
        summary = ImportSummary(rows_in=len(rows))

        normalized = normalize_rows(rows)
        summary.rows_deduped = len(normalized)
        log.info(f"Product import: {summary.rows_in} rows in, {summary.rows_deduped} after dedupe")

        try:
            resolved, summary.products_upserted = self._upsert_products(normalized)
            resolved, summary.unresolved_references = self._resolve_references(normalized, resolved)

            files = derive_file_records(normalized, resolved, self.config.document_file_type)
            summary.files_upserted = self.store.upsert_product_files(files)
            self._step_done()

            images = derive_image_records(normalized, resolved, self.config.images_bucket)
            summary.images_upserted = self.store.upsert_product_images(images)
            self._step_done()

            relations = derive_relation_records(normalized, resolved)
            summary.relations_upserted = self.store.upsert_product_relations(relations)
            self._step_done()

            if self.config.atomic:
                self.store.commit()
        except StoreError:
            if self.config.atomic:
                self.store.rollback()
            raise

        log.info(
            f"Product import done: products={summary.products_upserted} "
            f"files={summary.files_upserted} images={summary.images_upserted} "
            f"relations={summary.relations_upserted}"
        )
        return summary

    def _step_done(self) -> None:
        if not self.config.atomic:
            self.store.commit()

    def _upsert_products(self, rows: Sequence[NormalizedRow]) -> Tuple[ResolvedIds, int]:
        payload = [
            {
                "product_no": r.product_no,
                "product_no_key": r.key,
                "name": r.name,
                "list_price": r.list_price,
                "is_active": r.is_active,
                "thumb_path": r.thumb_path,
            }
            for r in rows
        ]
        upserted = self.store.upsert_products(payload)
        self._step_done()
        ids = {key.strip().upper(): product_id for product_id, key in upserted if key and product_id is not None}
        return ResolvedIds(MappingProxyType(ids)), len(upserted)

    def _resolve_references(self, rows: Sequence[NormalizedRow], resolved: ResolvedIds) -> Tuple[ResolvedIds, List[str]]:
        """Extend the id map with referenced products outside the batch."""
        missing = [key for key in _referenced_keys(rows) if key not in resolved.ids]
        if not missing:
            return resolved, []

        ids = dict(resolved.ids)
        for product_id, key in self.store.find_products_by_keys(missing):
            if key and product_id is not None:
                ids[key.strip().upper()] = product_id

        unresolved = [key for key in missing if key not in ids]
        if unresolved:
            log.warning(f"Product import: skipping {len(unresolved)} unknown references: {unresolved[:20]}")
        return ResolvedIds(MappingProxyType(ids)), unresolved
