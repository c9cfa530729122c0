#!/usr/bin/env python3
"""
Price List Import — loads a supplier / EPC rate sheet into the catalog.

Rows are upserted by item name: an existing catalog item keeps its id and
has its rate, GST, unit, category and pricing convention refreshed.

Usage:
    python scripts/import_price_list.py "RATE LIST.xlsx"
    python scripts/import_price_list.py rates.csv --dry-run
    python scripts/import_price_list.py rates.csv --gst 12
"""
import argparse
import asyncio
import os
import sys
from decimal import Decimal

sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "backend"))

from sqlalchemy import select  # noqa: E402

from app.db import AsyncSessionLocal, Base, engine  # noqa: E402
from app.models.orm_models import CatalogItemRecord  # noqa: E402
from app.services.logging_config import setup_logging  # noqa: E402
from app.services.price_list_importer import ImportedPriceRow, PriceListImporter  # noqa: E402

# ANSI colors
GREEN = "\033[92m"
YELLOW = "\033[93m"
CYAN = "\033[96m"
RESET = "\033[0m"


def _apply(record: CatalogItemRecord, row: ImportedPriceRow) -> None:
    record.unit_price = row.unit_price
    record.tax_rate = row.tax_rate
    record.uom = row.uom
    record.category = row.category
    record.pricing_unit = row.pricing_convention.to_wire()
    record.sr_no = row.sr_no
    if row.brand:
        record.brand = row.brand
    if row.description:
        record.description = row.description
    record.is_active = True


async def upsert_rows(rows, create_tables: bool = False):
    if create_tables:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    created = 0
    updated = 0
    async with AsyncSessionLocal() as session:
        async with session.begin():
            for row in rows:
                result = await session.execute(
                    select(CatalogItemRecord).where(CatalogItemRecord.name == row.name)
                )
                existing = result.scalars().first()
                if existing is not None:
                    _apply(existing, row)
                    updated += 1
                else:
                    record = CatalogItemRecord(name=row.name, margin_rate=row.margin_rate)
                    _apply(record, row)
                    session.add(record)
                    created += 1
    await engine.dispose()
    return created, updated


def main():
    parser = argparse.ArgumentParser(description="Import a price list into the catalog")
    parser.add_argument("path", help="Excel (.xlsx/.xls) or CSV rate sheet")
    parser.add_argument("--gst", type=Decimal, default=None,
                        help="Default GST %% for rows without a GST column (default 18)")
    parser.add_argument("--dry-run", action="store_true", help="Parse and print, do not write")
    parser.add_argument("--create-tables", action="store_true", help="Run create_all() first")
    args = parser.parse_args()

    setup_logging(level=os.getenv("LOG_LEVEL", "INFO"), json_output=False)

    importer = PriceListImporter() if args.gst is None else PriceListImporter(default_tax_rate=args.gst / 100)
    rows = importer.read(args.path)
    print(f"{CYAN}Parsed {len(rows)} rows from {args.path}{RESET}")

    if args.dry_run:
        for row in rows:
            print(
                f"  {row.source_row:>4}  {row.name[:48]:<48} {row.category:<20} "
                f"{row.pricing_convention.to_wire():<12} {row.unit_price}"
            )
        return

    if not rows:
        print(f"{YELLOW}Nothing to import.{RESET}")
        return

    created, updated = asyncio.run(upsert_rows(rows, create_tables=args.create_tables))
    print(f"{GREEN}Created {created}, updated {updated} catalog items.{RESET}")


if __name__ == "__main__":
    main()
