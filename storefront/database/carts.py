"""
Cart storage

The cart store is the only owner of cart state. Every mutation goes through
one of its methods, is written through to the durable store before the
method returns, and only then is announced to listeners. Readers get
immutable snapshots, never the live list.
"""

import logging
from typing import Callable, Optional

from pydantic import TypeAdapter, ValidationError

from ..core.storage import CART_KEY, DurableStore
from ..models.cart import (
    BundleEntry,
    BundleKey,
    CartEntry,
    CartItemInput,
    CartNotification,
    EntryKey,
    NotificationKind,
    ResolvedSubItem,
    SimpleEntry,
    VariantKey,
)
from ..models.product import BundleDefinition, PLACEHOLDER_IMAGE

logger = logging.getLogger(__name__)

_entries_adapter = TypeAdapter(list[CartEntry])

MIN_QUANTITY = 1


class CartError(Exception):
    """Base exception for cart errors"""
    pass


class InvalidQuantity(CartError):
    """Quantity is not a non-negative integer"""
    pass


class EntryNotFound(CartError):
    """No cart entry matches the given key"""

    def __init__(self, key: EntryKey):
        super().__init__(f"Item not found in cart: {key!r}")
        self.key = key


def clamp_quantity(quantity: int, maximum: int = 10) -> int:
    """Apply the storefront's [1, maximum] quantity policy"""
    return max(MIN_QUANTITY, min(maximum, quantity))


class CartStore:
    """Session-scoped cart with write-through persistence"""

    def __init__(self, store: DurableStore):
        self._store = store
        self._entries: list = self._load()
        self._listeners: list[Callable[[CartNotification], None]] = []
        self.revision = 0

    def _load(self) -> list:
        raw = self._store.get(CART_KEY)
        if not raw:
            return []
        try:
            return _entries_adapter.validate_json(raw)
        except ValidationError:
            logger.exception("Error loading cart from durable store, starting empty")
            return []

    def _commit(self, entries: list, notification: CartNotification) -> CartNotification:
        self._store.set(CART_KEY, _entries_adapter.dump_json(entries).decode("utf-8"))
        self._entries = entries
        self.revision += 1
        self._notify(notification)
        return notification

    def _notify(self, notification: CartNotification) -> None:
        for listener in list(self._listeners):
            listener(notification)

    def subscribe(self, listener: Callable[[CartNotification], None]) -> Callable[[], None]:
        """Register a listener for cart notifications; returns an unsubscribe callable"""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ==================== Mutations ====================

    def add_item(self, item: CartItemInput) -> Optional[CartNotification]:
        """Add a simple item, merging with an existing line of the same variant"""
        if item.quantity < 0:
            raise InvalidQuantity(f"Quantity must not be negative: {item.quantity}")
        if item.quantity == 0:
            logger.debug(f"Ignoring zero-quantity add for {item.product_id}")
            return None

        key = item.key
        existing = self._find_simple(key)

        if existing is not None:
            index, entry = existing
            entries = list(self._entries)
            entries[index] = entry.model_copy(update={"quantity": entry.quantity + item.quantity})
            return self._commit(
                entries,
                CartNotification(
                    kind=NotificationKind.QUANTITY_UPDATED,
                    message=f"{item.name} quantity updated in cart!",
                    key=key,
                ),
            )

        entry = SimpleEntry(
            key=key,
            name=item.name,
            unit_price=item.price,
            quantity=item.quantity,
            image=item.image,
            fit=item.fit,
        )
        return self._commit(
            [*self._entries, entry],
            CartNotification(kind=NotificationKind.ADDED, message=f"{item.name} added to cart!", key=key),
        )

    def add_bundle(self, bundle: BundleDefinition, resolved: list[ResolvedSubItem]) -> CartNotification:
        """Add a bundle as one atomic entry, or bump the quantity of the existing one"""
        key = BundleKey(bundle_id=bundle.id)
        existing = self._find(key)

        if existing is not None:
            index, entry = existing
            entries = list(self._entries)
            entries[index] = entry.model_copy(update={"quantity": entry.quantity + 1})
            return self._commit(
                entries,
                CartNotification(
                    kind=NotificationKind.QUANTITY_UPDATED,
                    message=f"{bundle.name} bundle quantity updated in cart!",
                    key=key,
                ),
            )

        entry = BundleEntry(
            bundle_id=bundle.id,
            bundle_name=bundle.name,
            unit_price=bundle.bundle_price,
            quantity=1,
            image=resolved[0].image if resolved and resolved[0].image else PLACEHOLDER_IMAGE,
            items=tuple(resolved),
        )
        return self._commit(
            [*self._entries, entry],
            CartNotification(kind=NotificationKind.ADDED, message=f"{bundle.name} bundle added to cart!", key=key),
        )

    def remove_item(self, key: EntryKey) -> CartNotification:
        """Remove an entry entirely; bundles go as one unit"""
        existing = self._find(key)
        if existing is None:
            raise EntryNotFound(key)

        index, entry = existing
        entries = [e for i, e in enumerate(self._entries) if i != index]
        name = entry.bundle_name if entry.kind == "bundle" else entry.name
        return self._commit(
            entries,
            CartNotification(kind=NotificationKind.REMOVED, message=f"{name} removed from cart", key=key),
        )

    def set_quantity(self, key: EntryKey, quantity: int) -> CartNotification:
        """Replace an entry's quantity; anything below 1 removes the entry"""
        if quantity < MIN_QUANTITY:
            return self.remove_item(key)

        existing = self._find(key)
        if existing is None:
            raise EntryNotFound(key)

        index, entry = existing
        entries = list(self._entries)
        entries[index] = entry.model_copy(update={"quantity": quantity})
        name = entry.bundle_name if entry.kind == "bundle" else entry.name
        return self._commit(
            entries,
            CartNotification(
                kind=NotificationKind.QUANTITY_UPDATED,
                message=f"{name} quantity updated in cart!",
                key=key,
            ),
        )

    def clear(self) -> CartNotification:
        """Empty the cart and evict the durable snapshot"""
        self._store.clear(CART_KEY)
        self._entries = []
        self.revision += 1
        notification = CartNotification(kind=NotificationKind.CLEARED, message="Cart cleared")
        self._notify(notification)
        logger.info("Cart cleared")
        return notification

    # ==================== Reads ====================

    def snapshot(self) -> tuple:
        """Current ordered entries; entries are immutable"""
        return tuple(self._entries)

    def get(self, key: EntryKey):
        existing = self._find(key)
        return existing[1] if existing else None

    @property
    def count(self) -> int:
        """Number of distinct lines"""
        return len(self._entries)

    @property
    def total_quantity(self) -> int:
        return sum(entry.quantity for entry in self._entries)

    def is_bundle_in_cart(self, bundle_id: str) -> bool:
        return self._find(BundleKey(bundle_id=bundle_id)) is not None

    def _find(self, key: EntryKey):
        if isinstance(key, VariantKey):
            return self._find_simple(key)
        for index, entry in enumerate(self._entries):
            if entry.kind == "bundle" and entry.bundle_id == key.bundle_id:
                return index, entry
        return None

    def _find_simple(self, key: VariantKey):
        for index, entry in enumerate(self._entries):
            if entry.kind == "simple" and entry.key == key:
                return index, entry
        return None
