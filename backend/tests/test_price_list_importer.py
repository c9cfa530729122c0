"""
test_price_list_importer.py — Unit tests for PriceListImporter.

Tests cover:
  - Header row located by keyword beneath a title block
  - Row filtering (blank, purely numeric, < 3 character names)
  - Rate cleaning ('₹ 21.50', '55,000/-'), GST percent vs fraction, 18 % default
  - Category and pricing-convention inference
  - Conversion to CatalogItem

CSV input is supplied through io.StringIO; no files or database required.
"""

import io
from decimal import Decimal
import pytest

from app.models.pricing_types import ComponentCategory, PricingConvention
from app.services.price_list_importer import (
    PriceListImporter,
    infer_category,
    infer_pricing_convention,
    parse_number,
)


RATE_SHEET = """SOLAR EPC RATE LIST 2024
Sr No,Item Name,Make,Unit,Rate,GST
1,630Wp TOPCon Bifacial Module,Waaree,WP,"₹ 21.50",12
2,SUN-10K-G04,Deye,NOS,"55,000/-",18
3,Module Mounting Structure,,KG,95,
4,Installation & Commissioning,,KW,4000,0.18
,,,,,
5,12,,NOS,10,18
6,LA,,NOS,10,18
7,ESE Lightning Arrestor,,NOS,4500,18
8,Chemical Earthing Kit,,NOS,not quoted,18
"""


@pytest.fixture
def parsed_rows():
    return PriceListImporter().read(io.StringIO(RATE_SHEET))


# ===========================================================================
# Class 1: Sheet parsing
# ===========================================================================

class TestReadSheet:

    def test_kept_rows(self, parsed_rows):
        assert [r.name for r in parsed_rows] == [
            "630Wp TOPCon Bifacial Module",
            "SUN-10K-G04",
            "Module Mounting Structure",
            "Installation & Commissioning",
            "ESE Lightning Arrestor",
            "Chemical Earthing Kit",
        ]

    def test_module_row(self, parsed_rows):
        module = parsed_rows[0]
        assert module.unit_price == Decimal("21.50")
        assert module.tax_rate == Decimal("0.12")
        assert module.margin_rate == Decimal("0")
        assert module.pricing_convention is PricingConvention.PER_WATT
        assert module.category == "Solar Modules"
        assert module.brand == "Waaree"
        assert module.sr_no == 1
        assert module.source_row == 3

    def test_rate_with_separators_and_suffix(self, parsed_rows):
        inverter = parsed_rows[1]
        assert inverter.unit_price == Decimal("55000")
        assert inverter.category == "Inverters"
        assert inverter.pricing_convention is PricingConvention.PER_UNIT

    def test_missing_gst_uses_default(self, parsed_rows):
        assert parsed_rows[2].tax_rate == Decimal("0.18")
        assert parsed_rows[2].category == "Mounting Structure"

    def test_fractional_gst_kept(self, parsed_rows):
        install = parsed_rows[3]
        assert install.tax_rate == Decimal("0.18")
        assert install.pricing_convention is PricingConvention.PER_KW
        assert install.category == "Other"

    def test_unparsable_rate_is_zero(self, parsed_rows):
        assert parsed_rows[-1].unit_price == Decimal("0")

    def test_custom_default_gst(self):
        rows = PriceListImporter(default_tax_rate=Decimal("0.05")).read(io.StringIO(RATE_SHEET))
        assert rows[2].tax_rate == Decimal("0.05")

    def test_no_header_returns_empty(self, caplog):
        sheet = "Item,Price\nPanel,10\n"
        with caplog.at_level("WARNING", logger="solar-epc-importer"):
            assert PriceListImporter().read(io.StringIO(sheet)) == []
        assert "header not found" in caplog.text

    def test_csv_path(self, tmp_path):
        path = tmp_path / "rates.csv"
        path.write_text(RATE_SHEET, encoding="utf-8")
        assert len(PriceListImporter().read(str(path))) == 6

    def test_binary_buffer(self):
        rows = PriceListImporter().read(io.BytesIO(RATE_SHEET.encode("utf-8")))
        assert rows[0].unit_price == Decimal("21.50")

    def test_to_catalog_item(self, parsed_rows):
        item = parsed_rows[4].to_catalog_item("la-1")
        assert item.id == "la-1"
        assert item.category_tag is ComponentCategory.LIGHTNING_ARRESTOR
        assert item.unit_price == Decimal("4500")
        assert item.uom == "NOS"


# ===========================================================================
# Class 2: Inference helpers
# ===========================================================================

class TestInference:

    @pytest.mark.parametrize("name, expected", [
        ("545 Wp Mono PERC Panel", "Solar Modules"),
        ("Module Mounting Structure (HDG)", "Mounting Structure"),
        ("SG 10K Inverter", "Inverters"),
        ("SG 33K", "Inverters"),
        ("ACDB 3 Phase 63A", "ACDB"),
        ("DCDB 2 In 2 Out", "DCDB"),
        ("GI Strip 25x3", "Earthing"),
        ("Cable Tray 100mm", "Cable Trays"),
        ("DC 1C x 4 SQMM Cu", "Cables"),
        ("MC4 Connector Pair", "Connectors"),
        ("LA Pole 3m", "LA Poles"),
        ("Net Meter Bi-directional", "Net Meter"),
        ("Walkway Grating", "Walkway"),
        ("Stationery", "Other"),
    ])
    def test_infer_category(self, name, expected):
        assert infer_category(name) == expected

    @pytest.mark.parametrize("unit, expected", [
        ("WP", PricingConvention.PER_WATT),
        ("Per Watt", PricingConvention.PER_WATT),
        ("kW", PricingConvention.PER_KW),
        ("NOS", PricingConvention.PER_UNIT),
        ("", PricingConvention.PER_UNIT),
        (None, PricingConvention.PER_UNIT),
    ])
    def test_infer_pricing_convention(self, unit, expected):
        assert infer_pricing_convention(unit) is expected

    @pytest.mark.parametrize("raw, expected", [
        ("1,250.50", Decimal("1250.50")),
        ("₹ 21.50", Decimal("21.50")),
        ("55,000/-", Decimal("55000")),
        (95, Decimal("95")),
        ("", None),
        ("n/a", None),
        (None, None),
    ])
    def test_parse_number(self, raw, expected):
        assert parse_number(raw) == expected
