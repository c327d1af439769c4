"""Shared fixtures: settings, stores and an in-memory commerce backend."""

import asyncio
from typing import Optional

import pytest

from storefront.core.config import Settings
from storefront.core.storage import MemoryStore
from storefront.database.carts import CartStore
from storefront.models.cart import CartItemInput, VariationSelection
from storefront.models.checkout import (
    Address,
    CustomerDetails,
    PaymentSession,
    PaymentStatus,
    PaymentStatusReport,
)
from storefront.models.pricing import AppliedCoupon, BundleDiscount, ShippingCalculation
from storefront.models.product import BundleDefinition, CatalogProduct
from storefront.services.commerce_client import CommerceAPIError, CouponRejected


def _product(pid, name, price, image=None, variants=None):
    return CatalogProduct.model_validate(
        {
            "_id": pid,
            "title": name,
            "basePrice": price,
            "image": image,
            "variants": variants or [],
        }
    )


class FakeCommerceClient:
    """In-memory stand-in for the remote commerce API"""

    def __init__(self):
        self.products = [
            _product("p-shirt", "Linen Shirt", 120.0, image="/img/shirt.jpg"),
            _product("p-belt", "Leather Belt", 45.0),
            _product("p-socks", "Wool Socks", 15.0),
            _product("p-cap", "Cap", 60.0),
            _product("p-scarf", "Silk Scarf", 85.0),
        ]
        self.bundles = [
            BundleDefinition.model_validate(
                {
                    "_id": "b-summer",
                    "name": "Summer Set",
                    "bundlePrice": 150.0,
                    "originalPrice": 200.0,
                    "products": [
                        {
                            "_id": "p-tee",
                            "title": "Tee",
                            "basePrice": 80.0,
                            "image": "/img/tee.jpg",
                            "variants": [
                                {"size": "L", "color": {"name": "Black"}, "priceOverride": 90.0},
                            ],
                        },
                        {"_id": "p-shorts", "title": "Shorts", "basePrice": 120.0},
                    ],
                }
            )
        ]
        self.free_shipping_at: Optional[float] = 200.0
        self.shipping_cost = 25.0
        self.bundle_discount = BundleDiscount()
        self.coupons: dict[str, float] = {}

        self.shipping_error: Optional[CommerceAPIError] = None
        self.discount_error: Optional[CommerceAPIError] = None
        self.coupon_error: Optional[CommerceAPIError] = None
        self.order_error: Optional[Exception] = None
        self.payment_error: Optional[Exception] = None
        self.status_error: Optional[CommerceAPIError] = None
        self.products_error: Optional[CommerceAPIError] = None

        self.payment_status: Optional[PaymentStatus] = PaymentStatus.PAID
        self.delay = 0.0
        self.coupon_delay = 0.0

        self.orders: list = []
        self.payment_sessions: list[PaymentSession] = []
        self.shipping_calls: list[float] = []
        self.discount_calls: list[list[dict]] = []
        self.coupon_calls: list[tuple[str, float]] = []
        self.product_calls = 0
        self.closed = False

    async def get_products(self, category=None):
        self.product_calls += 1
        if self.products_error:
            raise self.products_error
        return list(self.products)

    async def get_bundles(self, category=None):
        return list(self.bundles)

    async def get_bundle(self, bundle_id):
        for bundle in self.bundles:
            if bundle.id == bundle_id:
                return bundle
        raise CommerceAPIError(f"Bundle not found: {bundle_id}", status_code=404)

    async def calculate_bundle_discount(self, cart_items):
        self.discount_calls.append(cart_items)
        if self.discount_error:
            raise self.discount_error
        discount = self.bundle_discount
        if self.delay:
            await asyncio.sleep(self.delay)
        return discount

    async def calculate_shipping(self, subtotal, region="US", weight=0):
        self.shipping_calls.append(subtotal)
        if self.shipping_error:
            raise self.shipping_error
        is_free = self.free_shipping_at is not None and subtotal >= self.free_shipping_at
        calculation = ShippingCalculation(
            is_free_shipping=is_free,
            shipping_cost=0.0 if is_free else self.shipping_cost,
            remaining_for_free_shipping=max(0.0, (self.free_shipping_at or 0) - subtotal),
            free_shipping_at=self.free_shipping_at,
        )
        if self.delay:
            await asyncio.sleep(self.delay)
        return calculation

    async def validate_coupon(self, code, cart_total, items):
        self.coupon_calls.append((code, cart_total))
        if self.coupon_error:
            raise self.coupon_error
        if self.coupon_delay:
            await asyncio.sleep(self.coupon_delay)
        if code not in self.coupons:
            raise CouponRejected("Invalid coupon code", status_code=400)
        return AppliedCoupon(code=code, discount_amount=self.coupons[code], cart_total=cart_total)

    async def create_order(self, order):
        if self.order_error:
            raise self.order_error
        self.orders.append(order)
        return f"order-{len(self.orders)}"

    async def create_payment_session(self, order_id, return_url):
        if self.payment_error:
            raise self.payment_error
        session = PaymentSession(
            order_id=order_id,
            payment_url=f"https://pay.example/{order_id}",
            return_url=return_url,
        )
        self.payment_sessions.append(session)
        return session

    async def get_payment_status(self, order_id):
        if self.status_error:
            raise self.status_error
        return PaymentStatusReport(
            order_id=order_id,
            order_number="ORD-1001",
            total=145.0,
            payment_status=self.payment_status,
        )

    async def close(self):
        self.closed = True


@pytest.fixture()
def settings():
    return Settings(debounce_seconds=0, storage_dir=None, _env_file=None)


@pytest.fixture()
def fake_client():
    return FakeCommerceClient()


@pytest.fixture()
def store():
    return MemoryStore()


@pytest.fixture()
def cart(store):
    return CartStore(store)


@pytest.fixture()
def shirt():
    return CartItemInput(product_id="p-shirt", name="Linen Shirt", price=120.0, size="M", color="White")


@pytest.fixture()
def summer_selections():
    return {
        "p-tee": VariationSelection(size="L", color="Black"),
        "p-shorts": VariationSelection(size="M", color="Navy"),
    }


@pytest.fixture()
def customer():
    return CustomerDetails(
        first_name="Amal",
        last_name="Haddad",
        email="amal@example.com",
        phone="+971500000000",
        address=Address(street="1 Marina Walk", city="Dubai", state="Dubai", postal_code="00000"),
    )
