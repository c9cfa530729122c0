"""
Solar BOM Engine — generates the priced line-item Bill of Materials for a
grid-tied rooftop system from its capacity and the selected catalog items.

Sizing rounds the requested capacity up to a whole number of modules; that
*actual* capacity drives every downstream quantity.

Emission order (governs document display order):
  1. Solar modules                 — qty = actual system watts
  2. Inverter                      — qty = 1
  3. Mounting structure            — qty = actual kW × 45 kg/kW
  4. Balance of System (BOS table) — first catalog item per category
  5. Remaining per-kW items        — qty = actual kW, catalog order

A BOS category with no catalog item is skipped and reported, not raised.
"""
import logging
import math
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Set, Tuple, Union

from app import config
from app.models.pricing_types import (
    CatalogItem,
    ComponentCategory,
    PricingConvention,
    QuotationLine,
    SystemConfiguration,
    SystemSizing,
)
from app.services.catalog_engine import CatalogIndex
from app.services.pricing_engine import price_line
from app.services.quotation_errors import InvalidConfiguration

logger = logging.getLogger("solar-epc-bom")


# ── Balance-of-System table ───────────────────────────────────────────────────
# (category, display unit, quantity rule for PER_UNIT-priced items)

BOSRule = Callable[[SystemSizing], Decimal]

BOS_TABLE: Tuple[Tuple[ComponentCategory, str, BOSRule], ...] = (
    (ComponentCategory.ACDB, config.UNIT_WATT_PEAK, lambda s: s.actual_system_watts),
    (ComponentCategory.DCDB, config.UNIT_WATT_PEAK, lambda s: s.actual_system_watts),
    (ComponentCategory.EARTHING, config.UNIT_NOS, lambda s: config.EARTHING_PITS_QTY),
    (ComponentCategory.LIGHTNING_ARRESTOR, config.UNIT_NOS, lambda s: config.LIGHTNING_ARRESTOR_QTY),
    (ComponentCategory.CABLES, config.UNIT_METRE, lambda s: s.actual_system_kw * config.CABLE_METRES_PER_KW),
    (
        ComponentCategory.CONNECTORS,
        config.UNIT_NOS,
        lambda s: Decimal(s.number_of_modules) / config.MODULES_PER_CONNECTOR,
    ),
)


@dataclass(frozen=True)
class BOMResult:
    lines: Tuple[QuotationLine, ...]
    sizing: SystemSizing
    skipped_categories: Tuple[ComponentCategory, ...] = field(default_factory=tuple)


def derive_system_sizing(config_in: SystemConfiguration) -> SystemSizing:
    """
    numberOfModules = ceil(target_kW × 1000 / module_W)
    actualWatts     = numberOfModules × module_W
    actualKw        = actualWatts / 1000

    Raises InvalidConfiguration when capacity or wattage is not positive.
    """
    if config_in.target_capacity_kw <= 0:
        raise InvalidConfiguration(
            f"System capacity must be positive; received {config_in.target_capacity_kw} kW"
        )
    if config_in.module_wattage <= 0:
        raise InvalidConfiguration(
            f"Module wattage must be positive; received {config_in.module_wattage} W"
        )

    target_watts = config_in.target_capacity_kw * 1000
    number_of_modules = math.ceil(target_watts / config_in.module_wattage)
    actual_watts = number_of_modules * config_in.module_wattage
    return SystemSizing(
        number_of_modules=number_of_modules,
        actual_system_watts=actual_watts,
        actual_system_kw=actual_watts / 1000,
    )


def quantity_for_convention(
    item: CatalogItem,
    sizing: SystemSizing,
    per_unit_quantity: Decimal,
) -> Decimal:
    """Interpret an item's quantity by its pricing convention."""
    convention = item.pricing_convention
    if convention is PricingConvention.PER_WATT:
        return sizing.actual_system_watts
    if convention is PricingConvention.PER_KW:
        return sizing.actual_system_kw
    if convention is PricingConvention.PER_UNIT:
        return per_unit_quantity
    raise ValueError(f"Unhandled pricing convention {convention!r} on item {item.id}")


class SolarBOMEngine:

    def generate(
        self,
        system: SystemConfiguration,
        catalog: Union[CatalogIndex, Iterable[CatalogItem]],
    ) -> BOMResult:
        """
        Generate the ordered, priced BOM for one system configuration.

        Pure: identical (system, catalog) inputs produce identical results and
        a changed configuration replaces the previous line set entirely.

        Raises InvalidConfiguration (before any line is built) for bad sizing
        inputs or selected item ids missing from the catalog.
        """
        index = catalog if isinstance(catalog, CatalogIndex) else CatalogIndex(catalog)
        sizing = derive_system_sizing(system)
        module_item, inverter_item, structure_item = index.require(
            system.module_item_id, system.inverter_item_id, system.structure_item_id
        )

        lines: List[QuotationLine] = []
        emitted: Set[str] = set()

        def emit(item: CatalogItem, quantity: Decimal, head: str, unit: str) -> None:
            lines.append(price_line(item, quantity, head=head, unit=unit))
            emitted.add(item.id)

        # ── Core components ───────────────────────────────────────────────────
        emit(module_item, sizing.actual_system_watts, "SOLAR MODULE", config.UNIT_WATT_PEAK)
        emit(inverter_item, config.INVERTER_QTY, "INVERTER", config.UNIT_NOS)
        emit(
            structure_item,
            sizing.actual_system_kw * config.STRUCTURE_KG_PER_KW,
            "MODULE MOUNTING STRUCTURE",
            config.UNIT_KG,
        )

        # ── Balance of System ─────────────────────────────────────────────────
        skipped: List[ComponentCategory] = []
        for category, unit, rule in BOS_TABLE:
            bos_item = index.first_in(category)
            if bos_item is None:
                skipped.append(category)
                continue
            qty = quantity_for_convention(bos_item, sizing, rule(sizing))
            emit(bos_item, qty, category.label.upper(), unit)

        if skipped:
            logger.warning(
                "BOS categories without catalog items skipped: %s",
                ", ".join(c.label for c in skipped),
            )

        # ── Installation & other per-kW charges ───────────────────────────────
        for kw_item in index.with_convention(PricingConvention.PER_KW):
            if kw_item.id in emitted:
                continue
            head = kw_item.category.upper() if kw_item.category else "OTHER"
            emit(kw_item, sizing.actual_system_kw, head, config.UNIT_KW)

        logger.info(
            "BOM generated: %d modules, %s kW actual, %d lines",
            sizing.number_of_modules, sizing.actual_system_kw, len(lines),
        )
        return BOMResult(lines=tuple(lines), sizing=sizing, skipped_categories=tuple(skipped))

    def line_summary(self, result: BOMResult) -> List[Dict[str, object]]:
        """Flatten BOM lines to plain dicts (API / export friendly)."""
        return [_line_to_dict(line) for line in result.lines]


def _line_to_dict(line: QuotationLine) -> Dict[str, object]:
    return {
        "item_id": line.item_id,
        "name": line.name,
        "head": line.head,
        "unit": line.unit,
        "description": line.description,
        "pricing_unit": line.pricing_convention.to_wire(),
        "quantity": line.quantity,
        "unit_price": line.unit_price,
        "margin_rate": line.margin_rate,
        "tax_rate": line.tax_rate,
        "base_amount": line.base_amount,
        "margin_amount": line.margin_amount,
        "tax_amount": line.tax_amount,
        "line_total": line.line_total,
    }
