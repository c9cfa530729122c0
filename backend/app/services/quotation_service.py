"""
Quotation service — the create / add-version / BOM boundaries over an async
SQLAlchemy session.

Each call runs inside the caller's session transaction (get_db commits on
success, rolls back on any exception), so the closed-quotation scan used for
version numbering and the insert of the new version are one unit of work.
On PostgreSQL the client's rows are additionally serialised with a
transaction-scoped advisory lock.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.orm_models import (
    CatalogItemRecord,
    Quotation,
    QuotationLineItem,
    QuotationVersion,
)
from app.models.pricing_types import (
    CatalogItem,
    QuotationLine,
    QuotationSnapshot,
    QuotationStatus,
    QuotationTotals,
    SystemConfiguration,
    VersionSnapshot,
)
from app.services.bom_engine import BOMResult, SolarBOMEngine
from app.services.catalog_engine import CatalogIndex
from app.services.pricing_engine import aggregate_lines, price_line
from app.services.quotation_errors import FinalVersionConflict, QuotationNotFound
from app.services.version_policy import next_version_label

logger = logging.getLogger("solar-epc-quotations")

_BOM_ENGINE = SolarBOMEngine()


@dataclass(frozen=True)
class RequestedLine:
    """One manual line on a create / add-version request. Rates are fractions."""
    item_id: str
    quantity: Decimal = Decimal("1")
    margin_rate: Optional[Decimal] = None
    tax_rate: Optional[Decimal] = None


# ── Catalog ───────────────────────────────────────────────────────────────────

async def list_catalog_records(db: AsyncSession, active_only: bool = True) -> List[CatalogItemRecord]:
    query = select(CatalogItemRecord)
    if active_only:
        query = query.where(CatalogItemRecord.is_active.is_(True))
    result = await db.execute(query.order_by(CatalogItemRecord.name, CatalogItemRecord.id))
    return list(result.scalars().all())


async def load_catalog(db: AsyncSession) -> CatalogIndex:
    """Read the active catalog once; the engines only ever see this snapshot."""
    records = await list_catalog_records(db)
    return CatalogIndex(r.to_domain() for r in records)


async def add_catalog_item(db: AsyncSession, item: CatalogItem) -> CatalogItemRecord:
    record = CatalogItemRecord(
        name=item.name,
        description=item.description,
        brand=item.brand,
        unit_price=item.unit_price,
        tax_rate=item.tax_rate,
        margin_rate=item.margin_rate,
        uom=item.uom or None,
        category=item.category or None,
        pricing_unit=item.pricing_convention.to_wire(),
    )
    if item.id:
        record.id = item.id
    db.add(record)
    await db.flush()
    logger.info("Catalog item added: %s (%s)", record.name, record.id)
    return record


async def _resolve_catalog(db: AsyncSession, item_ids: Iterable[str]) -> CatalogIndex:
    ids = sorted(set(item_ids))
    if not ids:
        return CatalogIndex(())
    result = await db.execute(select(CatalogItemRecord).where(CatalogItemRecord.id.in_(ids)))
    index = CatalogIndex(r.to_domain() for r in result.scalars().all())
    index.require(*ids)
    return index


# ── Pricing ───────────────────────────────────────────────────────────────────

async def price_requested_lines(
    db: AsyncSession, requested: Sequence[RequestedLine]
) -> List[QuotationLine]:
    """
    Resolve every item id first, then price each line.

    Any unknown id or negative quantity aborts the whole batch; a partially
    priced quotation is never persisted.
    """
    index = await _resolve_catalog(db, (r.item_id for r in requested))
    return [
        price_line(index.get(r.item_id), r.quantity, r.margin_rate, r.tax_rate)
        for r in requested
    ]


def _build_version(
    label: str,
    sequence: int,
    lines: Sequence[QuotationLine],
    totals: QuotationTotals,
    brand: Optional[str],
    is_final: bool,
) -> QuotationVersion:
    return QuotationVersion(
        sequence=sequence,
        version=label,
        brand=brand,
        is_final=is_final,
        subtotal=totals.subtotal,
        margin_total=totals.margin_total,
        tax_total=totals.tax_total,
        grand_total=totals.grand_total,
        lines=[
            QuotationLineItem(
                position=pos,
                item_id=line.item_id,
                name=line.name,
                description=line.description,
                head=line.head or None,
                unit=line.unit or None,
                pricing_unit=line.pricing_convention.to_wire(),
                quantity=line.quantity,
                unit_price=line.unit_price,
                margin_rate=line.margin_rate,
                tax_rate=line.tax_rate,
                base_amount=line.base_amount,
                margin_amount=line.margin_amount,
                tax_amount=line.tax_amount,
                line_total=line.line_total,
            )
            for pos, line in enumerate(lines, start=1)
        ],
    )


# ── Quotations ────────────────────────────────────────────────────────────────

async def _lock_client(db: AsyncSession, client_id: str) -> None:
    if db.get_bind().dialect.name != "postgresql":
        return
    await db.execute(
        text("SELECT pg_advisory_xact_lock(hashtext(:key))"),
        {"key": f"quotation-version:{client_id}"},
    )


async def _closed_quotation_snapshots(db: AsyncSession, client_id: str) -> List[QuotationSnapshot]:
    result = await db.execute(
        select(Quotation)
        .where(
            Quotation.client_id == client_id,
            Quotation.status.in_([QuotationStatus.WON.value, QuotationStatus.LOST.value]),
        )
        .options(selectinload(Quotation.versions))
    )
    return [
        QuotationSnapshot(
            status=q.status,
            versions=[VersionSnapshot(v.version, v.sequence, bool(v.is_final)) for v in q.versions],
        )
        for q in result.scalars().all()
    ]


async def get_quotation(db: AsyncSession, quotation_id: str) -> Quotation:
    """Load one quotation with its versions and their lines; QuotationNotFound otherwise."""
    result = await db.execute(
        select(Quotation)
        .where(Quotation.id == quotation_id)
        .options(selectinload(Quotation.versions).selectinload(QuotationVersion.lines))
        .execution_options(populate_existing=True)
    )
    quotation = result.scalar_one_or_none()
    if quotation is None:
        raise QuotationNotFound(quotation_id)
    return quotation


async def list_quotations(db: AsyncSession, client_id: Optional[str] = None) -> List[Quotation]:
    query = select(Quotation).options(selectinload(Quotation.versions))
    if client_id:
        query = query.where(Quotation.client_id == client_id)
    result = await db.execute(query.order_by(Quotation.created_at.desc(), Quotation.id))
    return list(result.scalars().all())


async def create_quotation(
    db: AsyncSession,
    client_id: str,
    title: str,
    items: Sequence[RequestedLine],
    version: Optional[str] = None,
    brand: Optional[str] = None,
) -> Quotation:
    """
    Price the requested lines, assign a version label and persist the new
    quotation with its first version.

    The label is the caller's when given, otherwise the next major lineage
    after the client's closed (WON / LOST) quotations.
    """
    lines = await price_requested_lines(db, items)
    totals = aggregate_lines(lines)

    await _lock_client(db, client_id)
    prior = await _closed_quotation_snapshots(db, client_id)
    label = next_version_label(prior, version)

    quotation = Quotation(
        client_id=client_id,
        title=title,
        status=QuotationStatus.DRAFT.value,
        versions=[_build_version(label, 1, lines, totals, brand, is_final=False)],
    )
    db.add(quotation)
    await db.flush()

    logger.info(
        "Quotation created: version %s, %d lines, grand total %s",
        label, len(lines), totals.grand_total,
        extra={"quotation_id": quotation.id, "client_id": client_id},
    )
    return await get_quotation(db, quotation.id)


async def add_version(
    db: AsyncSession,
    quotation_id: str,
    items: Sequence[RequestedLine],
    version: str,
    brand: Optional[str] = None,
    is_final: bool = False,
) -> Quotation:
    """
    Append an immutable priced version to an existing quotation.

    The label is always caller-supplied. A second final version is rejected
    with FinalVersionConflict; existing versions are never modified.
    """
    label = (version or "").strip()
    if not label:
        raise ValueError("A version label is required when adding a version")

    quotation = await get_quotation(db, quotation_id)
    if is_final:
        existing = next((v for v in quotation.versions if v.is_final), None)
        if existing is not None:
            raise FinalVersionConflict(quotation_id, existing.version)

    lines = await price_requested_lines(db, items)
    totals = aggregate_lines(lines)

    next_sequence = max((v.sequence for v in quotation.versions), default=0) + 1
    quotation.versions.append(
        _build_version(label, next_sequence, lines, totals, brand, is_final)
    )
    await db.flush()

    logger.info(
        "Quotation version %s added (sequence %d, final=%s)",
        label, next_sequence, is_final,
        extra={"quotation_id": quotation_id, "client_id": quotation.client_id},
    )
    return await get_quotation(db, quotation_id)


async def update_quotation(
    db: AsyncSession,
    quotation_id: str,
    title: Optional[str] = None,
    status: Optional[QuotationStatus] = None,
) -> Quotation:
    quotation = await get_quotation(db, quotation_id)
    if title is not None:
        quotation.title = title
    if status is not None:
        quotation.status = QuotationStatus(status).value
    await db.flush()
    logger.info(
        "Quotation updated: status=%s", quotation.status,
        extra={"quotation_id": quotation_id, "client_id": quotation.client_id},
    )
    return await get_quotation(db, quotation_id)


async def delete_quotation(db: AsyncSession, quotation_id: str) -> None:
    """Delete a quotation; its versions and lines go with it."""
    quotation = await get_quotation(db, quotation_id)
    await db.delete(quotation)
    await db.flush()
    logger.info(
        "Quotation deleted",
        extra={"quotation_id": quotation_id, "client_id": quotation.client_id},
    )


# ── BOM ───────────────────────────────────────────────────────────────────────

async def generate_bom(db: AsyncSession, system: SystemConfiguration) -> BOMResult:
    catalog = await load_catalog(db)
    return _BOM_ENGINE.generate(system, catalog)


def bom_line_summary(result: BOMResult) -> List[dict]:
    return _BOM_ENGINE.line_summary(result)
