"""Catalog API routes — list, add item, generate BOM."""
import logging
from decimal import Decimal
from typing import Optional
from fastapi import APIRouter, HTTPException, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from app.db import get_db
from app.models.orm_models import CatalogItemRecord
from app.models.pricing_types import CatalogItem, PricingConvention, SystemConfiguration
from app.services import quotation_service
from app.services.pricing_engine import aggregate_lines
from app.services.quotation_errors import CatalogItemNotFound, QuotationEngineError

router = APIRouter(prefix="/api/catalog", tags=["Catalog"])
logger = logging.getLogger("solar-epc-catalog")


# ── Pydantic Models ─────────────────────────────────────────────────────────

class CatalogItemCreate(BaseModel):
    id: Optional[str] = None
    name: str = Field(min_length=1)
    unit_price: Decimal = Field(ge=0)
    tax_rate: Optional[Decimal] = Field(default=None, ge=0)      # fraction: 0.18 = 18 %
    margin_rate: Optional[Decimal] = Field(default=None, ge=0)   # fraction
    pricing_unit: str = "PER_UNIT"                               # PER_UNIT | RS_PER_WATT | RS_PER_KW
    category: str = ""
    uom: str = ""
    brand: Optional[str] = None
    description: Optional[str] = None


class BOMRequest(BaseModel):
    system_capacity_kw: Decimal
    module_wattage: Decimal
    module_item_id: str
    inverter_item_id: str
    structure_item_id: str


def _catalog_item_dict(item: CatalogItemRecord) -> dict:
    return {
        "id": item.id,
        "name": item.name,
        "brand": item.brand,
        "description": item.description,
        "category": item.category,
        "uom": item.uom,
        "unit_price": item.unit_price,
        "tax_rate": item.tax_rate,
        "margin_rate": item.margin_rate,
        "pricing_unit": item.pricing_unit,
        "is_active": item.is_active,
    }


def _engine_error(e: QuotationEngineError) -> HTTPException:
    if isinstance(e, CatalogItemNotFound):
        return HTTPException(
            status_code=422,
            detail={"error": "CATALOG_ITEM_NOT_FOUND", "message": str(e), "item_ids": e.item_ids},
        )
    return HTTPException(status_code=422, detail=str(e))


@router.get("/items")
async def list_catalog(
    include_inactive: bool = Query(False, description="Include retired items"),
    db: AsyncSession = Depends(get_db),
):
    """List catalog items in name order."""
    items = await quotation_service.list_catalog_records(db, active_only=not include_inactive)
    return {
        "total": len(items),
        "items": [_catalog_item_dict(item) for item in items],
    }


@router.post("/items")
async def create_catalog_item(
    req: CatalogItemCreate,
    db: AsyncSession = Depends(get_db),
):
    """Add one catalog item."""
    try:
        convention = PricingConvention.from_wire(req.pricing_unit)
        item = CatalogItem(
            id=req.id or "",
            name=req.name,
            unit_price=req.unit_price,
            tax_rate=req.tax_rate,
            margin_rate=req.margin_rate,
            pricing_convention=convention,
            category=req.category,
            uom=req.uom,
            brand=req.brand,
            description=req.description,
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    record = await quotation_service.add_catalog_item(db, item)
    return _catalog_item_dict(record)


@router.post("/bom")
async def generate_bom(
    req: BOMRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Generate the ordered, priced BOM for a solar system against the active
    catalog. Lines carry item_id + quantity so they can be posted straight
    back as quotation items.
    """
    system = SystemConfiguration(
        target_capacity_kw=req.system_capacity_kw,
        module_wattage=req.module_wattage,
        module_item_id=req.module_item_id,
        inverter_item_id=req.inverter_item_id,
        structure_item_id=req.structure_item_id,
    )
    try:
        result = await quotation_service.generate_bom(db, system)
    except QuotationEngineError as e:
        raise _engine_error(e)

    totals = aggregate_lines(result.lines)
    return {
        "system": {
            "requested_capacity_kw": system.target_capacity_kw,
            "module_wattage": system.module_wattage,
            "number_of_modules": result.sizing.number_of_modules,
            "actual_system_watts": result.sizing.actual_system_watts,
            "actual_system_kw": result.sizing.actual_system_kw,
        },
        "lines": quotation_service.bom_line_summary(result),
        "skipped_categories": [c.label for c in result.skipped_categories],
        "totals": {
            "subtotal": totals.subtotal,
            "margin_total": totals.margin_total,
            "tax_total": totals.tax_total,
            "grand_total": totals.grand_total,
        },
    }
