"""
Domain records for the quotation pricing & BOM engine.

Every record is a closed, explicitly-fielded frozen dataclass. Money, rates
and quantities are Decimals; floats and strings are converted on the way in
so that 0.1 stays 0.1.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple

from app.services.quotation_errors import InvalidCatalogItem

ZERO = Decimal("0")


def to_decimal(value) -> Decimal:
    """Convert int / float / str / Decimal to Decimal without float noise."""
    if isinstance(value, Decimal):
        return value
    if value is None:
        return ZERO
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


# ── Pricing convention ────────────────────────────────────────────────────────

class PricingConvention(str, Enum):
    """Unit basis against which a catalog item's quantity is interpreted."""
    PER_UNIT = "PER_UNIT"
    PER_WATT = "PER_WATT"
    PER_KW = "PER_KW"

    @classmethod
    def from_wire(cls, value: Optional[str]) -> "PricingConvention":
        """
        Parse canonical or historical spellings.

        PER_UNIT | PER_WATT | RS_PER_WATT | PER_KW | RS_PER_KW; blank means PER_UNIT.
        """
        if value is None:
            return cls.PER_UNIT
        if isinstance(value, cls):
            return value
        key = str(value).strip().upper()
        if not key:
            return cls.PER_UNIT
        if key.startswith("RS_"):
            key = key[3:]
        try:
            return cls(key)
        except ValueError:
            raise ValueError(f"Unknown pricing convention: {value!r}") from None

    def to_wire(self) -> str:
        return _WIRE_NAMES[self]


_WIRE_NAMES = {
    PricingConvention.PER_UNIT: "PER_UNIT",
    PricingConvention.PER_WATT: "RS_PER_WATT",
    PricingConvention.PER_KW: "RS_PER_KW",
}


# ── Component categories (BOM dispatch keys) ──────────────────────────────────

def _normalise_label(label: str) -> str:
    return re.sub(r"[\s_\-]+", " ", label).strip().lower()


class ComponentCategory(str, Enum):
    """Categories the BOM generator dispatches on; value is the display label."""
    SOLAR_MODULES = "Solar Modules"
    INVERTERS = "Inverters"
    MOUNTING_STRUCTURE = "Mounting Structure"
    ACDB = "ACDB"
    DCDB = "DCDB"
    EARTHING = "Earthing"
    LIGHTNING_ARRESTOR = "Lightning Arrestor"
    CABLES = "Cables"
    CONNECTORS = "Connectors"

    @property
    def label(self) -> str:
        return self.value

    @classmethod
    def from_label(cls, label: Optional[str]) -> Optional["ComponentCategory"]:
        if not label:
            return None
        return _CATEGORY_BY_KEY.get(_normalise_label(label))


_CATEGORY_BY_KEY = {_normalise_label(c.value): c for c in ComponentCategory}


# ── Catalog ───────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class CatalogItem:
    """A sellable unit, read-only to the pricing engine."""
    id: str
    name: str
    unit_price: Decimal
    tax_rate: Optional[Decimal] = None
    margin_rate: Optional[Decimal] = None
    pricing_convention: PricingConvention = PricingConvention.PER_UNIT
    category: str = ""
    uom: str = ""
    brand: Optional[str] = None
    description: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "unit_price", to_decimal(self.unit_price))
        if self.tax_rate is not None:
            object.__setattr__(self, "tax_rate", to_decimal(self.tax_rate))
        if self.margin_rate is not None:
            object.__setattr__(self, "margin_rate", to_decimal(self.margin_rate))
        object.__setattr__(
            self, "pricing_convention", PricingConvention.from_wire(self.pricing_convention)
        )
        for name in ("unit_price", "tax_rate", "margin_rate"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise InvalidCatalogItem(f"{name} must be non-negative for item {self.id}; got {value}")

    @property
    def category_tag(self) -> Optional[ComponentCategory]:
        return ComponentCategory.from_label(self.category)


# ── BOM input / derived sizing ────────────────────────────────────────────────

@dataclass(frozen=True)
class SystemConfiguration:
    target_capacity_kw: Decimal
    module_wattage: Decimal
    module_item_id: str
    inverter_item_id: str
    structure_item_id: str

    def __post_init__(self):
        object.__setattr__(self, "target_capacity_kw", to_decimal(self.target_capacity_kw))
        object.__setattr__(self, "module_wattage", to_decimal(self.module_wattage))


@dataclass(frozen=True)
class SystemSizing:
    """Capacity rounded up to a whole number of modules; authoritative downstream."""
    number_of_modules: int
    actual_system_watts: Decimal
    actual_system_kw: Decimal


# ── Priced lines and totals ───────────────────────────────────────────────────

@dataclass(frozen=True)
class QuotationLine:
    item_id: str
    name: str
    quantity: Decimal
    unit_price: Decimal
    margin_rate: Decimal
    tax_rate: Decimal
    base_amount: Decimal
    margin_amount: Decimal
    tax_amount: Decimal
    line_total: Decimal
    pricing_convention: PricingConvention = PricingConvention.PER_UNIT
    head: str = ""
    unit: str = ""
    description: Optional[str] = None


@dataclass(frozen=True)
class QuotationTotals:
    subtotal: Decimal = ZERO
    margin_total: Decimal = ZERO
    tax_total: Decimal = ZERO
    grand_total: Decimal = ZERO


# ── Quotation lifecycle & versions ────────────────────────────────────────────

class QuotationStatus(str, Enum):
    DRAFT = "DRAFT"
    WON = "WON"
    LOST = "LOST"

    @property
    def is_closed(self) -> bool:
        return self in (QuotationStatus.WON, QuotationStatus.LOST)


@dataclass(frozen=True)
class VersionLabel:
    """Deal lineage (major) plus free-form iteration suffix (minor)."""
    major: int
    minor: str = "0"

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}" if self.minor else str(self.major)


@dataclass(frozen=True)
class VersionSnapshot:
    label: str
    sequence: int = 0
    is_final: bool = False


@dataclass(frozen=True)
class QuotationSnapshot:
    """What the version policy needs to know about one prior quotation."""
    status: QuotationStatus
    versions: Tuple[VersionSnapshot, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "status", QuotationStatus(self.status))
        object.__setattr__(self, "versions", tuple(self.versions))

    @property
    def latest_version(self) -> Optional[VersionSnapshot]:
        # Ties on sequence fall back to position (creation order)
        if not self.versions:
            return None
        _, latest = max(enumerate(self.versions), key=lambda p: (p[1].sequence, p[0]))
        return latest
