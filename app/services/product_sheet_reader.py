"""
Product spreadsheet reader

Reads the first sheet of an .xlsx workbook (or a .csv file) with pandas and
turns every data row into an ``ImportRow``. Expected columns:

    product_no, name, list_price, is_active, thumb_path,
    documents, gallery_images, accessories, spare_parts

``preview`` mirrors the checks the import performs and adds softer ones
(separator-only lists, thumbnail given as a URL) so an admin can fix the
sheet before submitting it.
"""
import io
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pandas as pd

from app.services.product_import_service import HEADER_ROWS, ImportRow
from app.utils.errors import InvalidRequestError

COLUMNS = [
    "product_no", "name", "list_price", "is_active", "thumb_path",
    "documents", "gallery_images", "accessories", "spare_parts",
]
MEDIA_COLUMNS = ("thumb_path", "documents", "gallery_images")

_TRUE = {"1", "true", "ja", "yes", "y"}
_FALSE = {"0", "false", "nei", "no", "n"}
_LIST_SPLIT = re.compile(r"[;,\n\r]+")


@dataclass
class SheetPreview:
    rows: List[ImportRow] = field(default_factory=list)
    deduped: List[ImportRow] = field(default_factory=list)
    duplicates: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self, sample: int = 20) -> Dict:
        return {
            "ok": not self.errors,
            "rows_in": len(self.rows),
            "rows_deduped": len(self.deduped),
            "duplicates": self.duplicates,
            "errors": self.errors,
            "warnings": self.warnings,
            "sample": [r.model_dump() for r in self.deduped[:sample]],
        }


# ── Cell conversion ──────────────────────────────────────────

def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and not value.strip()


def cell_text(value: Any) -> Optional[str]:
    if _is_blank(value):
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def cell_number(value: Any):
    """Numbers pass through; strings accept a comma decimal separator.

    Unparseable text is returned unchanged so the import reports it.
    """
    if _is_blank(value):
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip().replace(",", ".", 1)
    try:
        return float(text)
    except ValueError:
        return str(value).strip()


def cell_bool(value: Any) -> Optional[bool]:
    if _is_blank(value):
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    s = str(value).strip().lower()
    if s in _TRUE:
        return True
    if s in _FALSE:
        return False
    return None


def cell_list(value: Any) -> Optional[str]:
    """Normalise a multi-value cell to a comma-joined string."""
    text = cell_text(value)
    if text is None:
        return None
    parts = [p.strip() for p in _LIST_SPLIT.split(text) if p.strip()]
    # Separator-only cells are kept as-is so preview can flag them
    return ",".join(parts) if parts else text


def record_to_row(record: Dict[str, Any]) -> ImportRow:
    is_active = cell_bool(record.get("is_active"))
    return ImportRow(
        product_no=cell_text(record.get("product_no")) or "",
        name=cell_text(record.get("name")),
        list_price=cell_number(record.get("list_price")),
        is_active=True if is_active is None else is_active,
        thumb_path=cell_text(record.get("thumb_path")),
        documents=cell_list(record.get("documents")),
        gallery_images=cell_list(record.get("gallery_images")),
        accessories=cell_list(record.get("accessories")),
        spare_parts=cell_list(record.get("spare_parts")),
    )


# ── Reading ──────────────────────────────────────────────────

def read_sheet(content: bytes, filename: str) -> List[ImportRow]:
    """Parse an uploaded workbook into import rows (input order kept)."""
    name = (filename or "").lower()
    try:
        if name.endswith(".csv"):
            df = pd.read_csv(io.BytesIO(content), dtype=object, keep_default_na=False, encoding="utf-8-sig")
        elif name.endswith((".xlsx", ".xlsm")):
            df = pd.read_excel(io.BytesIO(content), sheet_name=0, dtype=object)
        else:
            raise InvalidRequestError("Unsupported file type. Use .xlsx or .csv")
    except InvalidRequestError:
        raise
    except Exception as e:
        raise InvalidRequestError("Could not read spreadsheet", details=str(e))

    df.columns = [str(c).strip().lower() for c in df.columns]
    if "product_no" not in df.columns:
        raise InvalidRequestError(
            "Missing product_no column",
            details={"expected": COLUMNS, "found": list(df.columns)},
        )

    return [record_to_row(rec) for rec in df.to_dict(orient="records")]


def _separator_only(value: Optional[str], pattern: str) -> bool:
    text = (value or "").strip()
    return bool(text) and not re.sub(pattern, "", text).strip()


def preview(rows: List[ImportRow]) -> SheetPreview:
    result = SheetPreview(rows=list(rows))

    latest: Dict[str, ImportRow] = {}
    counts: Dict[str, int] = {}
    for i, row in enumerate(rows):
        row_no = i + 1 + HEADER_ROWS
        pn = (row.product_no or "").strip()
        if not pn:
            result.errors.append(f"Row {row_no}: product_no is missing.")
            continue
        key = pn.upper()
        counts[key] = counts.get(key, 0) + 1
        latest[key] = row

        if row.list_price is not None and isinstance(row.list_price, str):
            result.errors.append(f"Row {row_no}: list_price is invalid.")
        for col in ("accessories", "spare_parts"):
            if _separator_only(getattr(row, col), r"[;,]"):
                result.errors.append(f"Row {row_no}: {col} looks like an empty list (separators only).")
        for col in ("documents", "gallery_images"):
            if _separator_only(getattr(row, col), r"[;,\n\r]"):
                result.errors.append(f"Row {row_no}: {col} looks like an empty list (separators only).")
        tp = (row.thumb_path or "").strip().lower()
        if tp.startswith(("http://", "https://")):
            result.errors.append(
                f"Row {row_no}: thumb_path looks like a URL. Use a storage path (e.g. products/...)."
            )

    result.deduped = list(latest.values())
    result.duplicates = [k for k, c in counts.items() if c > 1]
    if result.duplicates:
        result.warnings.append(
            f"The sheet contains {len(result.duplicates)} duplicate product_no values. "
            "The last occurrence is used."
        )

    has_media = any((getattr(r, c) or "").strip() for r in rows for c in MEDIA_COLUMNS)
    if rows and not has_media:
        result.warnings.append(
            "No rows contain thumb_path/documents/gallery_images. "
            "If this is unexpected, check the column names."
        )
    return result
