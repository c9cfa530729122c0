"""Exceptions raised by the quotation pricing & BOM engine."""
from typing import List


class QuotationEngineError(Exception):
    """Base class for every error the engine reports to its caller."""


class InvalidConfiguration(QuotationEngineError, ValueError):
    """
    Raised before any BOM line is generated when the system configuration
    cannot be sized (capacity or module wattage not positive) or when it
    references a catalog item that is not in the snapshot.
    """


class CatalogItemNotFound(InvalidConfiguration):
    def __init__(self, item_ids: List[str]):
        self.item_ids = list(item_ids)
        super().__init__(f"Catalog item(s) not found: {', '.join(self.item_ids)}")


class InvalidQuantity(QuotationEngineError, ValueError):
    def __init__(self, item_id: str, quantity):
        self.item_id = item_id
        self.quantity = quantity
        super().__init__(f"Quantity must be >= 0 for item {item_id}; received {quantity}")


class InvalidCatalogItem(QuotationEngineError, ValueError):
    """Negative unit price, tax rate or margin rate on a catalog record."""


class QuotationNotFound(QuotationEngineError, LookupError):
    def __init__(self, quotation_id: str):
        self.quotation_id = quotation_id
        super().__init__(f"Quotation {quotation_id} not found")


class FinalVersionConflict(QuotationEngineError):
    """
    Raised when a final version is added to a quotation that already has one.

    Versions are immutable, so the existing final flag is never moved; the
    caller must start a new quotation or add a non-final version.
    """
    def __init__(self, quotation_id: str, existing_label: str):
        self.quotation_id = quotation_id
        self.existing_label = existing_label
        super().__init__(
            f"Quotation {quotation_id} already has final version {existing_label}"
        )
