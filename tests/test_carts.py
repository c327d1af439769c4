"""Tests for the cart store: merging, removal, persistence and notifications."""

import json

import pytest

from storefront.core.storage import CART_KEY, MemoryStore
from storefront.database.carts import (
    CartStore,
    EntryNotFound,
    InvalidQuantity,
    clamp_quantity,
)
from storefront.models.cart import BundleKey, CartItemInput, NotificationKind, VariantKey
from storefront.models.product import BundleDefinition
from storefront.services.bundle_resolver import resolve


def _bundle(fake_client):
    return fake_client.bundles[0]


class TestAddItem:
    def test_adds_new_line(self, cart, shirt):
        notification = cart.add_item(shirt)
        assert cart.count == 1
        assert notification.kind == NotificationKind.ADDED
        assert notification.message == "Linen Shirt added to cart!"

    def test_same_variant_merges(self, cart, shirt):
        cart.add_item(shirt)
        notification = cart.add_item(shirt.model_copy(update={"quantity": 2}))
        assert cart.count == 1
        assert cart.snapshot()[0].quantity == 3
        assert notification.kind == NotificationKind.QUANTITY_UPDATED
        assert notification.message == "Linen Shirt quantity updated in cart!"

    def test_different_size_is_separate_line(self, cart, shirt):
        cart.add_item(shirt)
        cart.add_item(shirt.model_copy(update={"size": "L"}))
        assert cart.count == 2
        keys = {entry.key for entry in cart.snapshot()}
        assert VariantKey.of("p-shirt", "M", "White") in keys
        assert VariantKey.of("p-shirt", "L", "White") in keys

    def test_missing_variant_uses_default(self, cart):
        cart.add_item(CartItemInput(product_id="p-belt", name="Leather Belt", price=45.0))
        assert cart.snapshot()[0].key == VariantKey(product_id="p-belt", size="default", color="default")

    def test_zero_quantity_is_noop(self, cart, shirt):
        assert cart.add_item(shirt.model_copy(update={"quantity": 0})) is None
        assert cart.count == 0
        assert cart.revision == 0

    def test_negative_quantity_raises(self, cart, shirt):
        with pytest.raises(InvalidQuantity):
            cart.add_item(shirt.model_copy(update={"quantity": -1}))
        assert cart.count == 0

    def test_price_snapshot_kept_on_merge(self, cart, shirt):
        cart.add_item(shirt)
        cart.add_item(shirt.model_copy(update={"price": 99.0}))
        assert cart.snapshot()[0].unit_price == 120.0

    def test_insertion_order_preserved(self, cart, shirt):
        cart.add_item(CartItemInput(product_id="p-belt", name="Leather Belt", price=45.0))
        cart.add_item(shirt)
        assert [entry.product_id for entry in cart.snapshot()] == ["p-belt", "p-shirt"]


class TestBundles:
    def test_bundle_is_one_entry(self, cart, fake_client, summer_selections):
        bundle = _bundle(fake_client)
        notification = cart.add_bundle(bundle, resolve(bundle, summer_selections))
        entry = cart.snapshot()[0]
        assert cart.count == 1
        assert entry.kind == "bundle"
        assert entry.unit_price == 150.0
        assert len(entry.items) == 2
        assert entry.image == "/img/tee.jpg"
        assert notification.message == "Summer Set bundle added to cart!"

    def test_adding_bundle_again_bumps_quantity(self, cart, fake_client, summer_selections):
        bundle = _bundle(fake_client)
        resolved = resolve(bundle, summer_selections)
        cart.add_bundle(bundle, resolved)
        notification = cart.add_bundle(bundle, resolved)
        assert cart.count == 1
        assert cart.snapshot()[0].quantity == 2
        assert notification.message == "Summer Set bundle quantity updated in cart!"

    def test_bundle_without_images_uses_placeholder(self, cart):
        bundle = BundleDefinition(id="b-1", name="Plain", bundle_price=10.0)
        cart.add_bundle(bundle, [])
        assert cart.snapshot()[0].image == "/placeholder.svg"

    def test_remove_bundle_removes_all_sub_items(self, cart, fake_client, summer_selections, shirt):
        bundle = _bundle(fake_client)
        cart.add_item(shirt)
        cart.add_bundle(bundle, resolve(bundle, summer_selections))
        cart.remove_item(BundleKey(bundle_id="b-summer"))
        assert cart.count == 1
        assert not cart.is_bundle_in_cart("b-summer")

    def test_bundle_and_simple_item_of_same_product_do_not_merge(self, cart, fake_client, summer_selections):
        bundle = _bundle(fake_client)
        cart.add_bundle(bundle, resolve(bundle, summer_selections))
        cart.add_item(CartItemInput(product_id="p-tee", name="Tee", price=80.0, size="L", color="Black"))
        assert cart.count == 2


class TestQuantityAndRemoval:
    def test_set_quantity_replaces(self, cart, shirt):
        cart.add_item(shirt)
        cart.set_quantity(shirt.key, 5)
        assert cart.snapshot()[0].quantity == 5

    def test_set_quantity_zero_removes(self, cart, shirt):
        cart.add_item(shirt)
        notification = cart.set_quantity(shirt.key, 0)
        assert cart.count == 0
        assert notification.kind == NotificationKind.REMOVED

    def test_set_quantity_unknown_key_raises(self, cart):
        with pytest.raises(EntryNotFound):
            cart.set_quantity(VariantKey.of("missing"), 2)

    def test_remove_unknown_key_raises(self, cart):
        with pytest.raises(EntryNotFound):
            cart.remove_item(BundleKey(bundle_id="nope"))

    def test_clear_empties_cart(self, cart, shirt, store):
        cart.add_item(shirt)
        notification = cart.clear()
        assert cart.count == 0
        assert store.get(CART_KEY) is None
        assert notification.kind == NotificationKind.CLEARED

    def test_clamp_quantity(self):
        assert clamp_quantity(0) == 1
        assert clamp_quantity(4) == 4
        assert clamp_quantity(25) == 10
        assert clamp_quantity(25, maximum=20) == 20


class TestPersistence:
    def test_every_mutation_is_written_through(self, cart, shirt, store):
        cart.add_item(shirt)
        persisted = json.loads(store.get(CART_KEY))
        assert persisted[0]["kind"] == "simple"
        assert persisted[0]["quantity"] == 1

    def test_rehydrates_equal_cart(self, store, shirt, fake_client, summer_selections):
        cart = CartStore(store)
        bundle = _bundle(fake_client)
        cart.add_item(shirt)
        cart.add_bundle(bundle, resolve(bundle, summer_selections))

        restored = CartStore(store)
        assert [e.model_dump() for e in restored.snapshot()] == [e.model_dump() for e in cart.snapshot()]

    def test_corrupt_snapshot_starts_empty(self):
        store = MemoryStore()
        store.set(CART_KEY, "{not json")
        cart = CartStore(store)
        assert cart.count == 0

    def test_failed_write_leaves_cart_unchanged(self, shirt):
        class BrokenStore(MemoryStore):
            def set(self, key, value):
                raise OSError("disk full")

        cart = CartStore(BrokenStore())
        with pytest.raises(OSError):
            cart.add_item(shirt)
        assert cart.count == 0
        assert cart.revision == 0


class TestNotifications:
    def test_listeners_receive_each_mutation(self, cart, shirt):
        received = []
        cart.subscribe(received.append)
        cart.add_item(shirt)
        cart.set_quantity(shirt.key, 3)
        cart.remove_item(shirt.key)
        assert [n.kind for n in received] == [
            NotificationKind.ADDED,
            NotificationKind.QUANTITY_UPDATED,
            NotificationKind.REMOVED,
        ]

    def test_unsubscribe(self, cart, shirt):
        received = []
        unsubscribe = cart.subscribe(received.append)
        unsubscribe()
        cart.add_item(shirt)
        assert received == []

    def test_snapshot_is_detached(self, cart, shirt):
        cart.add_item(shirt)
        before = cart.snapshot()
        cart.set_quantity(shirt.key, 4)
        assert before[0].quantity == 1
