"""
Line-item pricing calculator and quotation aggregator.

The base/margin/tax arithmetic lives here and nowhere else:

    base_amount   = unit_price × quantity
    margin_amount = base_amount × margin_rate
    tax_amount    = base_amount × tax_rate
    line_total    = base_amount + margin_amount + tax_amount

Margin and tax are both taken on the base amount, never on each other.
No rounding is applied; totals are exact Decimal sums of their lines.
"""
import logging
from decimal import Decimal
from typing import Iterable, Optional

from app.models.pricing_types import (
    ZERO,
    CatalogItem,
    QuotationLine,
    QuotationTotals,
    to_decimal,
)
from app.services.quotation_errors import InvalidQuantity

logger = logging.getLogger("solar-epc-pricing")


def _effective_rate(override, catalog_rate: Optional[Decimal]) -> Decimal:
    if override is not None:
        return to_decimal(override)
    if catalog_rate is not None:
        return catalog_rate
    return ZERO


def price_line(
    item: CatalogItem,
    quantity,
    margin_override=None,
    tax_override=None,
    *,
    head: Optional[str] = None,
    unit: Optional[str] = None,
) -> QuotationLine:
    """
    Price one (item, quantity) pair against the catalog snapshot.

    Args:
        item            — catalog snapshot record; its unit_price is used as-is
        quantity        — count, watts or kW depending on the item's convention
        margin_override — fraction replacing the catalog margin rate
        tax_override    — fraction replacing the catalog tax rate
        head / unit     — display labels (default: upper-cased category / item uom)

    Raises InvalidQuantity when quantity < 0.
    """
    qty = to_decimal(quantity)
    if qty < 0:
        raise InvalidQuantity(item.id, qty)

    margin_rate = _effective_rate(margin_override, item.margin_rate)
    tax_rate = _effective_rate(tax_override, item.tax_rate)
    if margin_rate < 0 or tax_rate < 0:
        raise ValueError(
            f"Rate overrides must be non-negative for item {item.id} "
            f"(margin={margin_rate}, tax={tax_rate})"
        )

    unit_price = item.unit_price
    base_amount = unit_price * qty
    margin_amount = base_amount * margin_rate
    tax_amount = base_amount * tax_rate

    return QuotationLine(
        item_id=item.id,
        name=item.name,
        quantity=qty,
        unit_price=unit_price,
        margin_rate=margin_rate,
        tax_rate=tax_rate,
        base_amount=base_amount,
        margin_amount=margin_amount,
        tax_amount=tax_amount,
        line_total=base_amount + margin_amount + tax_amount,
        pricing_convention=item.pricing_convention,
        head=head if head is not None else (item.category or "OTHER").upper(),
        unit=unit if unit is not None else (item.uom or ""),
        description=item.description,
    )


def aggregate_lines(lines: Iterable[QuotationLine]) -> QuotationTotals:
    """Sum priced lines; an empty set yields all-zero totals."""
    subtotal = ZERO
    margin_total = ZERO
    tax_total = ZERO
    count = 0
    for line in lines:
        subtotal += line.base_amount
        margin_total += line.margin_amount
        tax_total += line.tax_amount
        count += 1

    totals = QuotationTotals(
        subtotal=subtotal,
        margin_total=margin_total,
        tax_total=tax_total,
        grand_total=subtotal + margin_total + tax_total,
    )
    logger.debug("aggregated %d lines → grand total %s", count, totals.grand_total)
    return totals
