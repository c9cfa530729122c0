"""
Quotation API routes

POST   /api/quotations                 — create quotation (auto version label unless given)
GET    /api/quotations                 — list quotations with their versions (?client_id=)
GET    /api/quotations/{id}            — one quotation with versions, lines, effective version
POST   /api/quotations/{id}/versions   — add an immutable priced version
PUT    /api/quotations/{id}            — update title / status (DRAFT | WON | LOST)
DELETE /api/quotations/{id}            — delete quotation with its versions and lines
"""
import logging
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import get_db
from app.models.orm_models import Quotation, QuotationLineItem, QuotationVersion
from app.models.pricing_types import QuotationStatus
from app.services import quotation_service
from app.services.quotation_errors import (
    CatalogItemNotFound,
    FinalVersionConflict,
    QuotationNotFound,
)
from app.services.quotation_service import RequestedLine
from app.services.version_policy import effective_version

router = APIRouter(prefix="/api/quotations", tags=["Quotations"])
logger = logging.getLogger("solar-epc-quotation-routes")


# ── Pydantic Models ─────────────────────────────────────────────────────────

class LineItemRequest(BaseModel):
    item_id: str
    quantity: Optional[Decimal] = None           # omitted → 1
    margin_percent: Optional[Decimal] = None     # 10 = 10 %; omitted → catalog margin
    tax_percent: Optional[Decimal] = None        # omitted → catalog tax

    def to_requested_line(self) -> RequestedLine:
        return RequestedLine(
            item_id=self.item_id,
            quantity=self.quantity if self.quantity is not None else Decimal("1"),
            margin_rate=self.margin_percent / 100 if self.margin_percent is not None else None,
            tax_rate=self.tax_percent / 100 if self.tax_percent is not None else None,
        )


class QuotationCreateRequest(BaseModel):
    client_id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    items: List[LineItemRequest] = []
    version: Optional[str] = None
    brand: Optional[str] = None


class VersionCreateRequest(BaseModel):
    items: List[LineItemRequest] = []
    version: str = Field(min_length=1)
    brand: Optional[str] = None
    is_final: bool = False


class QuotationUpdateRequest(BaseModel):
    title: Optional[str] = None
    status: Optional[QuotationStatus] = None


# ── Serialisation ───────────────────────────────────────────────────────────

def _line_dict(line: QuotationLineItem) -> dict:
    return {
        "position": line.position,
        "item_id": line.item_id,
        "name": line.name,
        "description": line.description,
        "head": line.head,
        "unit": line.unit,
        "pricing_unit": line.pricing_unit,
        "quantity": line.quantity,
        "unit_price": line.unit_price,
        "margin_rate": line.margin_rate,
        "tax_rate": line.tax_rate,
        "base_amount": line.base_amount,
        "margin_amount": line.margin_amount,
        "tax_amount": line.tax_amount,
        "line_total": line.line_total,
    }


def _version_dict(version: QuotationVersion, include_lines: bool = True) -> dict:
    data = {
        "id": version.id,
        "sequence": version.sequence,
        "version": version.version,
        "brand": version.brand,
        "is_final": version.is_final,
        "subtotal": version.subtotal,
        "margin_total": version.margin_total,
        "tax_total": version.tax_total,
        "grand_total": version.grand_total,
        "created_at": version.created_at.isoformat() if version.created_at else None,
    }
    if include_lines:
        data["lines"] = [_line_dict(line) for line in version.lines]
    return data


def _quotation_dict(quotation: Quotation, include_lines: bool = True) -> dict:
    effective = effective_version(quotation.versions)
    return {
        "id": quotation.id,
        "client_id": quotation.client_id,
        "title": quotation.title,
        "status": quotation.status,
        "created_at": quotation.created_at.isoformat() if quotation.created_at else None,
        "updated_at": quotation.updated_at.isoformat() if quotation.updated_at else None,
        "effective_version": effective.version if effective is not None else None,
        "versions": [_version_dict(v, include_lines) for v in quotation.versions],
    }


def _raise_http(e: Exception):
    if isinstance(e, QuotationNotFound):
        raise HTTPException(status_code=404, detail=str(e))
    if isinstance(e, FinalVersionConflict):
        raise HTTPException(
            status_code=409,
            detail={
                "error": "FINAL_VERSION_EXISTS",
                "message": str(e),
                "existing_version": e.existing_label,
            },
        )
    if isinstance(e, CatalogItemNotFound):
        raise HTTPException(
            status_code=422,
            detail={"error": "CATALOG_ITEM_NOT_FOUND", "message": str(e), "item_ids": e.item_ids},
        )
    raise HTTPException(status_code=422, detail=str(e))


# ── Endpoints ───────────────────────────────────────────────────────────────

@router.post("")
async def create_quotation(
    req: QuotationCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    """Price the items and persist a new quotation with its first version."""
    try:
        quotation = await quotation_service.create_quotation(
            db,
            client_id=req.client_id,
            title=req.title,
            items=[i.to_requested_line() for i in req.items],
            version=req.version,
            brand=req.brand,
        )
    except (QuotationNotFound, FinalVersionConflict, ValueError) as e:
        _raise_http(e)
    return _quotation_dict(quotation)


@router.get("")
async def list_quotations(
    client_id: Optional[str] = Query(None, description="Filter by client"),
    db: AsyncSession = Depends(get_db),
):
    quotations = await quotation_service.list_quotations(db, client_id)
    return {
        "total": len(quotations),
        "quotations": [_quotation_dict(q, include_lines=False) for q in quotations],
    }


@router.get("/{quotation_id}")
async def get_quotation(
    quotation_id: str,
    db: AsyncSession = Depends(get_db),
):
    try:
        quotation = await quotation_service.get_quotation(db, quotation_id)
    except QuotationNotFound as e:
        _raise_http(e)
    return _quotation_dict(quotation)


@router.post("/{quotation_id}/versions")
async def add_version(
    quotation_id: str,
    req: VersionCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    """Append a priced version; the label is always caller-supplied here."""
    try:
        quotation = await quotation_service.add_version(
            db,
            quotation_id,
            items=[i.to_requested_line() for i in req.items],
            version=req.version,
            brand=req.brand,
            is_final=req.is_final,
        )
    except (QuotationNotFound, FinalVersionConflict, ValueError) as e:
        _raise_http(e)
    return _quotation_dict(quotation)


@router.put("/{quotation_id}")
async def update_quotation(
    quotation_id: str,
    req: QuotationUpdateRequest,
    db: AsyncSession = Depends(get_db),
):
    try:
        quotation = await quotation_service.update_quotation(
            db, quotation_id, title=req.title, status=req.status
        )
    except QuotationNotFound as e:
        _raise_http(e)
    return _quotation_dict(quotation)


@router.delete("/{quotation_id}")
async def delete_quotation(
    quotation_id: str,
    db: AsyncSession = Depends(get_db),
):
    try:
        await quotation_service.delete_quotation(db, quotation_id)
    except QuotationNotFound as e:
        _raise_http(e)
    return {"status": "deleted", "id": quotation_id}
