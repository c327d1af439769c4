"""
Shipping Threshold Advisor

Suggests catalog products that would close the gap to free shipping.
"""

import logging
from typing import Iterable, Optional

from pydantic import BaseModel

from ..core.config import Settings
from ..core.debounce import cart_content_hash
from ..models.pricing import PriceQuote
from ..models.product import CatalogProduct
from .commerce_client import CommerceAPIError, CommerceClient

logger = logging.getLogger(__name__)


class Suggestion(BaseModel):
    """Product proposed to reach the free-shipping threshold"""
    product_id: str
    name: str
    price: float
    image: str
    distance: float  # |remaining - price|


def cart_product_ids(entries: Iterable) -> set[str]:
    """Product ids already in the cart, including bundle sub-products"""
    ids = set()
    for entry in entries:
        if entry.kind == "bundle":
            ids.add(entry.bundle_id)
            ids.update(item.product_id for item in entry.items)
        else:
            ids.add(entry.product_id)
    return ids


def suggest_products(
    remaining: float,
    catalog: Iterable[CatalogProduct],
    entries: Iterable,
    limit: int = 3,
    flexibility_ratio: float = 0.3,
    flexibility_cap: float = 30.0,
) -> list[Suggestion]:
    """
    Rank catalog products by how closely their price closes the gap.

    A candidate may overshoot the remaining amount by at most
    ``min(remaining * flexibility_ratio, flexibility_cap)``.
    """
    if remaining <= 0:
        return []

    excluded = cart_product_ids(entries)
    ceiling = remaining + min(remaining * flexibility_ratio, flexibility_cap)

    candidates = []
    for product in catalog:
        if product.id in excluded:
            continue
        price = product.list_price
        if price <= 0 or price > ceiling:
            continue
        candidates.append(
            Suggestion(
                product_id=product.id,
                name=product.name,
                price=price,
                image=product.image_url,
                distance=round(abs(remaining - price), 2),
            )
        )

    candidates.sort(key=lambda s: (s.distance, s.price))
    return candidates[:limit]


class ShippingAdvisor:
    """Caches suggestions until the cart content or the amount left to free shipping changes"""

    def __init__(self, client: CommerceClient, settings: Settings):
        self._client = client
        self._settings = settings
        self._cache_key: Optional[tuple[str, float]] = None
        self.suggestions: list[Suggestion] = []
        self.catalog_fetches = 0

    def reset(self) -> None:
        self._cache_key = None
        self.suggestions = []

    async def suggest(self, entries, quote: PriceQuote) -> list[Suggestion]:
        """Suggestions for the cart, recomputed when its content hash or remaining amount changes"""
        entries = list(entries)
        if not entries or quote.is_free_shipping or quote.remaining_for_free_shipping <= 0:
            self.reset()
            return []

        # A coupon can move the remaining amount without touching the content
        cache_key = (cart_content_hash(entries), round(quote.remaining_for_free_shipping, 2))
        if cache_key == self._cache_key and self.suggestions:
            logger.debug("Cart unchanged, reusing free-shipping suggestions")
            return self.suggestions

        self._cache_key = cache_key
        self.catalog_fetches += 1
        try:
            catalog = await self._client.get_products()
        except CommerceAPIError as e:
            logger.warning(f"Error fetching products for suggestions: {e.message}")
            self.suggestions = []
            return []

        self.suggestions = suggest_products(
            quote.remaining_for_free_shipping,
            catalog,
            entries,
            limit=self._settings.suggestion_limit,
            flexibility_ratio=self._settings.suggestion_flexibility_ratio,
            flexibility_cap=self._settings.suggestion_flexibility_cap,
        )
        logger.debug(f"Found {len(self.suggestions)} free-shipping suggestions")
        return self.suggestions
