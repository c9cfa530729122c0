"""
Price-list importer — reads a supplier / EPC rate sheet (Excel or CSV) into
catalog records.

Rate sheets carry a title block above the real header, so the header row is
located by keyword ("sr no", "item name", "unit", "rate") rather than
assumed to be row 0. Category and pricing convention are inferred:

  category            — keyword rules on the item name
  pricing convention  — unit contains WP/WATT → PER_WATT, KW → PER_KW,
                        anything else → PER_UNIT
"""
import csv
import io
import logging
import os
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional, Tuple, Union

import pandas as pd

from app import config
from app.models.pricing_types import CatalogItem, PricingConvention

logger = logging.getLogger("solar-epc-importer")

Source = Union[str, os.PathLike, io.IOBase]

# Ordered: first match wins, so the narrower phrases sit above the broad ones.
_CATEGORY_RULES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("Cable Trays", ("CABLE TRAY", "FRP TRAY")),
    ("Net Meter", ("NET METER", "NETMETER")),
    ("LA Poles", ("LA POLE",)),
    ("Mounting Structure", ("STRUCTURE", "ELEVATED", "MONO RAIL", "60 X 40", "80 X 40")),
    ("Solar Modules", ("MODULE", "PANEL", "BI FACIAL", "BIFACIAL", "TOPCON", "MONO PERC")),
    ("Inverters", ("INVERTER", "INV -", "INV-")),
    ("ACDB", ("ACDB",)),
    ("DCDB", ("DCDB",)),
    ("Earthing", ("EARTHING", "EARTH", "ERTH", "GI STRIP")),
    ("Lightning Arrestor", ("LIGHTNING", "LA ", "ESE")),
    ("Connectors", ("MC4", "CONNECTOR")),
    ("Cables", ("CABLE", "DC 1C", "SQMM", "WIRE")),
    ("Monitoring", ("MONITORING", "DATALOGGER")),
    ("Civil Works", ("CIVIL", "FOUNDATION")),
    ("Conduits", ("CONDUIT", "PVC PIPE")),
    ("Walkway", ("WALKWAY", "WALK WAY")),
    ("Fasteners", ("BASE PLATE", "BOLT", "CLAMP", "FASTENER")),
)

# Inverter model codes ("SG 10K", "SUN-10K-G04") carry a kW rating
_INVERTER_MODEL = re.compile(r"\b(SG|SUN)\b.*\d+\s?K\b", re.IGNORECASE)

_COLUMN_ALIASES: Dict[str, Tuple[str, ...]] = {
    "sr_no": ("sr no", "sr. no", "sr no.", "s no", "sl no"),
    "name": ("item name", "item", "name"),
    "make": ("make", "brand"),
    "description": ("description", "specification"),
    "unit": ("unit", "uom"),
    "rate": ("rate", "unit price", "price"),
    "gst": ("gst", "gst %", "tax", "tax %"),
}

_NUMERIC_ONLY = re.compile(r"^\d+\.?\d*$")
_NUMBER = re.compile(r"-?\d+(?:\.\d+)?|-?\.\d+")


def infer_category(name: str) -> str:
    upper = f" {name.upper()} "
    for category, keywords in _CATEGORY_RULES:
        if any(k in upper for k in keywords):
            return category
    if _INVERTER_MODEL.search(name):
        return "Inverters"
    return "Other"


def infer_pricing_convention(unit: Optional[str]) -> PricingConvention:
    if not unit:
        return PricingConvention.PER_UNIT
    u = unit.strip().upper()
    if "WP" in u or "WATT" in u:
        return PricingConvention.PER_WATT
    if "KW" in u:
        return PricingConvention.PER_KW
    return PricingConvention.PER_UNIT


def parse_number(value) -> Optional[Decimal]:
    """'₹ 1,250.50/-' → Decimal('1250.50'); blanks and garbage → None."""
    if value is None:
        return None
    match = _NUMBER.search(str(value).replace(",", ""))
    if not match:
        return None
    try:
        return Decimal(match.group(0))
    except InvalidOperation:
        return None


def _normalise(cell) -> str:
    return re.sub(r"\s+", " ", str(cell if cell is not None else "")).strip().lower()


@dataclass(frozen=True)
class ImportedPriceRow:
    name: str
    unit_price: Decimal
    tax_rate: Decimal
    margin_rate: Decimal
    pricing_convention: PricingConvention
    category: str
    uom: Optional[str] = None
    brand: Optional[str] = None
    description: Optional[str] = None
    sr_no: Optional[int] = None
    source_row: int = 0

    def to_catalog_item(self, item_id: str) -> CatalogItem:
        return CatalogItem(
            id=item_id,
            name=self.name,
            unit_price=self.unit_price,
            tax_rate=self.tax_rate,
            margin_rate=self.margin_rate,
            pricing_convention=self.pricing_convention,
            category=self.category,
            uom=self.uom or "",
            brand=self.brand,
            description=self.description,
        )


class PriceListImporter:

    def __init__(
        self,
        default_tax_rate: Decimal = config.DEFAULT_IMPORT_TAX_RATE,
        default_margin_rate: Decimal = config.DEFAULT_IMPORT_MARGIN_RATE,
        header_keywords: Tuple[str, ...] = config.PRICE_LIST_HEADER_KEYWORDS,
    ):
        self.default_tax_rate = default_tax_rate
        self.default_margin_rate = default_margin_rate
        self.header_keywords = header_keywords

    # ── Reading ──────────────────────────────────────────────────────────────

    def read_frame(self, source: Source, filename: Optional[str] = None) -> pd.DataFrame:
        """Load a sheet headerless; .xlsx/.xls via openpyxl, everything else as CSV."""
        is_path = isinstance(source, (str, os.PathLike))
        name = (filename or (os.fspath(source) if is_path else "")).lower()
        if name.endswith((".xlsx", ".xls")):
            frame = pd.read_excel(source, header=None, dtype=object)
            return frame.fillna("")

        # Title blocks make CSV rows ragged, which read_csv rejects; go via csv.reader
        if is_path:
            with open(source, newline="", encoding="utf-8-sig") as fh:
                records = list(csv.reader(fh))
        elif isinstance(source, io.TextIOBase):
            records = list(csv.reader(source))
        else:
            records = list(csv.reader(io.TextIOWrapper(source, encoding="utf-8-sig", newline="")))
        return pd.DataFrame(records, dtype=object).fillna("")

    def read(self, source: Source, filename: Optional[str] = None) -> List[ImportedPriceRow]:
        return self.parse_frame(self.read_frame(source, filename))

    # ── Parsing ──────────────────────────────────────────────────────────────

    def find_header_row(self, frame: pd.DataFrame) -> int:
        for idx, row in enumerate(frame.itertuples(index=False)):
            row_text = " ".join(_normalise(cell) for cell in row)
            if all(k in row_text for k in self.header_keywords):
                return idx
        return -1

    def _map_columns(self, header: List[str]) -> Dict[str, int]:
        columns: Dict[str, int] = {}
        for field_name, aliases in _COLUMN_ALIASES.items():
            for pos, cell in enumerate(header):
                if cell in aliases:
                    columns[field_name] = pos
                    break
        return columns

    def parse_frame(self, frame: pd.DataFrame) -> List[ImportedPriceRow]:
        header_idx = self.find_header_row(frame)
        if header_idx < 0:
            logger.warning("Price list header not found (need: %s)", ", ".join(self.header_keywords))
            return []

        header = [_normalise(c) for c in frame.iloc[header_idx].tolist()]
        columns = self._map_columns(header)
        if "name" not in columns:
            logger.warning("Price list header has no item name column: %s", header)
            return []

        def cell(values: list, key: str) -> str:
            pos = columns.get(key)
            if pos is None or pos >= len(values):
                return ""
            return str(values[pos]).strip()

        rows: List[ImportedPriceRow] = []
        skipped = 0
        for offset, values in enumerate(frame.iloc[header_idx + 1:].values.tolist()):
            name = cell(values, "name")
            if not name or _NUMERIC_ONLY.match(name) or len(name) < 3:
                skipped += 1
                continue

            unit = cell(values, "unit") or None
            rate = parse_number(cell(values, "rate"))
            gst = parse_number(cell(values, "gst"))
            if gst is None:
                tax_rate = self.default_tax_rate
            else:
                tax_rate = gst / 100 if gst > 1 else gst
            sr_no = parse_number(cell(values, "sr_no"))

            rows.append(ImportedPriceRow(
                name=name,
                unit_price=rate if rate is not None and rate >= 0 else Decimal("0"),
                tax_rate=tax_rate,
                margin_rate=self.default_margin_rate,
                pricing_convention=infer_pricing_convention(unit),
                category=infer_category(name),
                uom=unit,
                brand=cell(values, "make") or None,
                description=cell(values, "description") or None,
                sr_no=int(sr_no) if sr_no is not None else None,
                source_row=header_idx + offset + 2,
            ))

        logger.info("Price list parsed: %d rows kept, %d skipped", len(rows), skipped)
        return rows
