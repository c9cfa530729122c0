from typing import Dict, Iterable, List, Optional
import logging

from app.models.pricing_types import CatalogItem, ComponentCategory, PricingConvention
from app.services.quotation_errors import CatalogItemNotFound

logger = logging.getLogger("solar-epc-catalog")


class CatalogIndex:
    """
    Immutable view over one catalog snapshot.

    Builds the id lookup and the category tag index once, so the BOM
    generator dispatches on ComponentCategory rather than on free-text
    category strings. Catalog order is preserved everywhere.
    """
    def __init__(self, items: Iterable[CatalogItem]):
        self._items: List[CatalogItem] = list(items)
        self._by_id: Dict[str, CatalogItem] = {}
        self._by_tag: Dict[ComponentCategory, List[CatalogItem]] = {}

        for item in self._items:
            if item.id in self._by_id:
                logger.warning("Duplicate catalog id %s — keeping first occurrence", item.id)
                continue
            self._by_id[item.id] = item
            tag = item.category_tag
            if tag is not None:
                self._by_tag.setdefault(tag, []).append(item)

    def __len__(self) -> int:
        return len(self._by_id)

    def __iter__(self):
        return iter(self._items)

    def get(self, item_id: str) -> Optional[CatalogItem]:
        return self._by_id.get(item_id)

    def require(self, *item_ids: str) -> List[CatalogItem]:
        """Resolve ids in order; raise CatalogItemNotFound listing every missing id."""
        missing = [i for i in item_ids if i not in self._by_id]
        if missing:
            raise CatalogItemNotFound(missing)
        return [self._by_id[i] for i in item_ids]

    def in_category(self, category: ComponentCategory) -> List[CatalogItem]:
        return list(self._by_tag.get(category, ()))

    def first_in(self, category: ComponentCategory) -> Optional[CatalogItem]:
        matches = self._by_tag.get(category)
        return matches[0] if matches else None

    def with_convention(self, convention: PricingConvention) -> List[CatalogItem]:
        return [i for i in self._by_id.values() if i.pricing_convention is convention]
