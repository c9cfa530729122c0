"""ORM Models for the Solar EPC quotation engine — SQLAlchemy 2.0"""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional
from sqlalchemy import (
    String, Text, Boolean, Integer, Numeric, DateTime,
    ForeignKey, UniqueConstraint, Index
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func
from app.db import Base
from app.models.pricing_types import CatalogItem, PricingConvention


def gen_uuid():
    return str(uuid.uuid4())


# ── CATALOG ───────────────────────────────────────────────────────────────────
class CatalogItemRecord(Base):
    __tablename__ = "catalog_items"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=gen_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    brand: Mapped[Optional[str]] = mapped_column(String(100))
    sku: Mapped[Optional[str]] = mapped_column(String(100))
    sr_no: Mapped[Optional[int]] = mapped_column(Integer)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False, default=Decimal("0"))
    # Fractions: 0.18 = 18 %
    tax_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(8, 6))
    margin_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(8, 6))
    uom: Mapped[Optional[str]] = mapped_column(String(20))
    category: Mapped[Optional[str]] = mapped_column(String(100))
    # Wire spelling: PER_UNIT | RS_PER_WATT | RS_PER_KW
    pricing_unit: Mapped[str] = mapped_column(String(20), nullable=False, default="PER_UNIT")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ix_catalog_items_category", "category"),
        Index("ix_catalog_items_name", "name"),
    )

    def to_domain(self) -> CatalogItem:
        """Snapshot this row as an immutable engine record."""
        return CatalogItem(
            id=self.id,
            name=self.name,
            unit_price=self.unit_price if self.unit_price is not None else Decimal("0"),
            tax_rate=self.tax_rate,
            margin_rate=self.margin_rate,
            pricing_convention=PricingConvention.from_wire(self.pricing_unit),
            category=self.category or "",
            uom=self.uom or "",
            brand=self.brand,
            description=self.description,
        )


# ── QUOTATIONS ────────────────────────────────────────────────────────────────
class Quotation(Base):
    __tablename__ = "quotations"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=gen_uuid)
    client_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="DRAFT")  # DRAFT | WON | LOST
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
    versions: Mapped[list["QuotationVersion"]] = relationship(
        "QuotationVersion",
        back_populates="quotation",
        order_by="QuotationVersion.sequence",
        cascade="all, delete-orphan",
    )


class QuotationVersion(Base):
    """Immutable priced snapshot; corrections create a new version."""
    __tablename__ = "quotation_versions"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=gen_uuid)
    quotation_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("quotations.id", ondelete="CASCADE"), nullable=False
    )
    # Creation order within the quotation (1, 2, 3 ...)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    version: Mapped[str] = mapped_column(String(50), nullable=False)
    brand: Mapped[Optional[str]] = mapped_column(String(100))
    is_final: Mapped[bool] = mapped_column(Boolean, default=False)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(18, 6), default=Decimal("0"))
    margin_total: Mapped[Decimal] = mapped_column(Numeric(18, 6), default=Decimal("0"))
    tax_total: Mapped[Decimal] = mapped_column(Numeric(18, 6), default=Decimal("0"))
    grand_total: Mapped[Decimal] = mapped_column(Numeric(18, 6), default=Decimal("0"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    quotation: Mapped["Quotation"] = relationship("Quotation", back_populates="versions")
    lines: Mapped[list["QuotationLineItem"]] = relationship(
        "QuotationLineItem",
        back_populates="version",
        order_by="QuotationLineItem.position",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        UniqueConstraint("quotation_id", "sequence", name="uq_quotation_version_sequence"),
    )


class QuotationLineItem(Base):
    __tablename__ = "quotation_line_items"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=gen_uuid)
    quotation_version_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("quotation_versions.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    # No FK: a line keeps its priced snapshot even if the catalog row goes away
    item_id: Mapped[str] = mapped_column(String(36), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    head: Mapped[Optional[str]] = mapped_column(String(100))
    unit: Mapped[Optional[str]] = mapped_column(String(20))
    pricing_unit: Mapped[str] = mapped_column(String(20), nullable=False, default="PER_UNIT")
    quantity: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False)
    margin_rate: Mapped[Decimal] = mapped_column(Numeric(8, 6), nullable=False)
    tax_rate: Mapped[Decimal] = mapped_column(Numeric(8, 6), nullable=False)
    base_amount: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    margin_amount: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    line_total: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    version: Mapped["QuotationVersion"] = relationship("QuotationVersion", back_populates="lines")
