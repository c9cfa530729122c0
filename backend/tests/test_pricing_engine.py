"""
test_pricing_engine.py — Unit tests for price_line and aggregate_lines.

Tests cover:
  - Base / margin / tax arithmetic (margin and tax both on base, never compounded)
  - Rate resolution: override → catalog rate → 0
  - Quantity guard (negative → InvalidQuantity), zero quantity allowed
  - Exact Decimal arithmetic (no float drift, no rounding)
  - Aggregation: 100/200/300 @ 10 % margin, 5 % tax → 600 / 60 / 30 / 690
  - Empty line set → all-zero totals

All tests are pure unit tests; no database or external services required.
"""

from decimal import Decimal
import pytest

from app.models.pricing_types import CatalogItem, PricingConvention
from app.services.pricing_engine import aggregate_lines, price_line
from app.services.quotation_errors import InvalidQuantity


def _item(price, tax=None, margin=None, **kw):
    return CatalogItem(id=kw.pop("id", "item-1"), name=kw.pop("name", "Test Item"),
                       unit_price=price, tax_rate=tax, margin_rate=margin, **kw)


# ===========================================================================
# Class 1: Line arithmetic
# ===========================================================================

class TestPriceLine:
    """price_line computes every money field from the catalog snapshot."""

    def test_base_margin_tax_on_base(self):
        """1000 × 2 = 2000 base; 10 % margin = 200; 18 % tax = 360 (on base, not base+margin)."""
        line = price_line(_item(1000, tax="0.18", margin="0.10"), 2)
        assert line.base_amount == Decimal("2000")
        assert line.margin_amount == Decimal("200")
        assert line.tax_amount == Decimal("360")
        assert line.line_total == Decimal("2560")

    def test_line_total_identity(self):
        line = price_line(_item("37.5", tax="0.05", margin="0.125"), "13.3")
        assert line.line_total == line.base_amount + line.margin_amount + line.tax_amount
        assert line.margin_amount == line.base_amount * line.margin_rate
        assert line.tax_amount == line.base_amount * line.tax_rate

    def test_catalog_rates_used_without_override(self):
        line = price_line(_item(100, tax="0.18", margin="0.2"), 1)
        assert line.margin_rate == Decimal("0.2")
        assert line.tax_rate == Decimal("0.18")

    def test_overrides_replace_catalog_rates(self):
        line = price_line(_item(100, tax="0.18", margin="0.2"), 1, Decimal("0.05"), Decimal("0.12"))
        assert line.margin_rate == Decimal("0.05")
        assert line.tax_rate == Decimal("0.12")
        assert line.line_total == Decimal("117")

    def test_zero_override_is_not_ignored(self):
        """An explicit 0 override wins over a non-zero catalog rate."""
        line = price_line(_item(100, tax="0.18", margin="0.2"), 1, 0, 0)
        assert line.margin_amount == 0
        assert line.tax_amount == 0
        assert line.line_total == Decimal("100")

    def test_missing_rates_default_to_zero(self):
        line = price_line(_item(250), 4)
        assert line.margin_rate == 0
        assert line.tax_rate == 0
        assert line.line_total == Decimal("1000")

    def test_float_inputs_do_not_drift(self):
        """0.1 × 3 stays exactly 0.3 — floats enter through str()."""
        line = price_line(_item(0.1), 3)
        assert line.base_amount == Decimal("0.3")

    def test_no_rounding_applied(self):
        line = price_line(_item("0.333"), 1, margin_override=Decimal("0.1"))
        assert line.margin_amount == Decimal("0.0333")

    def test_zero_quantity_allowed(self):
        line = price_line(_item(500, tax="0.18"), 0)
        assert line.base_amount == 0
        assert line.line_total == 0

    def test_negative_quantity_rejected(self):
        with pytest.raises(InvalidQuantity) as exc:
            price_line(_item(500, id="cab-4"), -1)
        assert exc.value.item_id == "cab-4"
        assert exc.value.quantity == Decimal("-1")

    def test_invalid_quantity_is_a_value_error(self):
        with pytest.raises(ValueError):
            price_line(_item(500), Decimal("-0.01"))

    def test_negative_override_rejected(self):
        with pytest.raises(ValueError):
            price_line(_item(500), 1, margin_override=Decimal("-0.1"))

    def test_snapshot_fields_copied(self):
        item = _item(20, id="mod-630", name="630 Wp Module", category="Solar Modules",
                     uom="WP", pricing_convention=PricingConvention.PER_WATT)
        line = price_line(item, 15120)
        assert line.item_id == "mod-630"
        assert line.name == "630 Wp Module"
        assert line.unit_price == Decimal("20")
        assert line.pricing_convention is PricingConvention.PER_WATT
        assert line.head == "SOLAR MODULES"
        assert line.unit == "WP"

    def test_head_defaults_to_other_without_category(self):
        assert price_line(_item(10), 1).head == "OTHER"

    def test_explicit_head_and_unit(self):
        line = price_line(_item(10), 1, head="INVERTER", unit="NOS")
        assert (line.head, line.unit) == ("INVERTER", "NOS")


# ===========================================================================
# Class 2: Aggregation
# ===========================================================================

class TestAggregateLines:
    """aggregate_lines is a pure, exact, order-independent sum."""

    def test_three_line_scenario(self):
        """Bases 100 / 200 / 300 at 10 % margin and 5 % tax → 600 / 60 / 30 / 690."""
        lines = [
            price_line(_item(base, id=f"i{base}"), 1, Decimal("0.10"), Decimal("0.05"))
            for base in (100, 200, 300)
        ]
        totals = aggregate_lines(lines)
        assert totals.subtotal == Decimal("600")
        assert totals.margin_total == Decimal("60")
        assert totals.tax_total == Decimal("30")
        assert totals.grand_total == Decimal("690")

    def test_grand_total_equals_sum_of_line_totals(self):
        lines = [
            price_line(_item("19.99", tax="0.18", margin="0.07"), "3.5"),
            price_line(_item("1234.5", tax="0.05"), 2),
            price_line(_item("0.01", margin="0.5"), 7),
        ]
        totals = aggregate_lines(lines)
        assert totals.grand_total == sum(l.line_total for l in lines)

    def test_order_independent(self):
        lines = [price_line(_item(p, tax="0.18", id=str(p)), q) for p, q in ((10, 3), (7, 2), (99, 1))]
        assert aggregate_lines(lines) == aggregate_lines(list(reversed(lines)))

    def test_empty_lines_yield_zero_totals(self):
        totals = aggregate_lines([])
        assert totals.subtotal == 0
        assert totals.margin_total == 0
        assert totals.tax_total == 0
        assert totals.grand_total == 0

    def test_accepts_generator(self):
        totals = aggregate_lines(price_line(_item(50), 2) for _ in range(3))
        assert totals.subtotal == Decimal("300")
