#!/usr/bin/env python3
"""
Product Import Script

Imports a product sheet (.xlsx or .csv) into the catalog using the same
pipeline as POST /api/products/import.

Expected columns:
    product_no, name, list_price, is_active, thumb_path,
    documents, gallery_images, accessories, spare_parts

Usage:
    python scripts/import_products.py --file imports/products.xlsx
    python scripts/import_products.py --file imports/products.csv --dry-run
"""
import sys
import argparse
from pathlib import Path

# Add parent to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.config import get_settings
from app.models.base import SessionLocal, init_db
from app.services.product_import_service import ImportConfig, ProductImportService
from app.services.product_sheet_reader import preview, read_sheet
from app.services.product_store import ProductStore
from app.utils.errors import PortalError


def print_preview(result) -> None:
    print(f"\n{'='*60}")
    print("PREVIEW")
    print(f"{'='*60}")
    print(f"Rows in sheet:     {len(result.rows):,}")
    print(f"Rows after dedupe: {len(result.deduped):,}")
    if result.duplicates:
        print(f"Duplicates (last row wins): {', '.join(result.duplicates[:20])}")
    for warning in result.warnings:
        print(f"  WARNING: {warning}")
    for error in result.errors:
        print(f"  ERROR: {error}")


def import_file(file_path: str, dry_run: bool = False) -> int:
    """Import one sheet; returns a process exit code"""
    path = Path(file_path)
    if not path.is_file():
        print(f"File not found: {file_path}")
        return 1

    print(f"\nReading {path.name}...")
    rows = read_sheet(path.read_bytes(), path.name)
    result = preview(rows)
    print_preview(result)

    if dry_run:
        print("\nDry run, nothing imported.")
        return 0 if not result.errors else 1

    if not rows:
        print("\nNo rows to import.")
        return 1

    settings = get_settings()
    init_db()
    db = SessionLocal()
    try:
        store = ProductStore(db, chunk_size=settings.import_chunk_size)
        service = ProductImportService(store, ImportConfig.from_settings(settings))
        summary = service.import_rows(rows)
    finally:
        db.close()

    print(f"\n{'='*60}")
    print("IMPORT COMPLETE")
    print(f"{'='*60}")
    print(f"Products upserted:  {summary.products_upserted:,}")
    print(f"Files upserted:     {summary.files_upserted:,}")
    print(f"Images upserted:    {summary.images_upserted:,}")
    print(f"Relations upserted: {summary.relations_upserted:,}")
    if summary.unresolved_references:
        print(f"Unknown references skipped: {', '.join(summary.unresolved_references[:20])}")
    return 0


def main():
    parser = argparse.ArgumentParser(description='Import a product sheet into the catalog')
    parser.add_argument('--file', '-f', required=True, help='Sheet to import (.xlsx or .csv)')
    parser.add_argument('--dry-run', action='store_true', help='Only preview the sheet')

    args = parser.parse_args()

    try:
        code = import_file(args.file, dry_run=args.dry_run)
    except PortalError as e:
        print(f"\nImport failed ({e.code}): {e.message}")
        if e.details:
            print(f"Details: {e.details}")
        code = 1
    sys.exit(code)


if __name__ == '__main__':
    main()
