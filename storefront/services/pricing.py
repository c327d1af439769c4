"""
Price Quote Engine

``compute_quote`` is a pure function of a cart snapshot and the external
pricing inputs. ``PricingSession`` owns those inputs for one shopper and
keeps them in step with the cart: network refreshes are debounced, and a
result computed for a superseded cart is dropped rather than applied.
"""

import asyncio
import logging
from typing import Iterable, Optional

from ..core.config import Settings
from ..core.debounce import Debouncer, cart_content_hash
from ..database.carts import CartStore
from ..models.cart import CartNotification, NotificationKind
from ..models.pricing import AppliedCoupon, BundleDiscount, PriceQuote, ShippingRule
from .commerce_client import CommerceAPIError, CommerceClient, CouponRejected

logger = logging.getLogger(__name__)


def _money(value: float) -> float:
    return round(value, 2)


def compute_subtotal(entries: Iterable) -> float:
    """Sum of unit price x quantity; bundles count at their bundle price"""
    return _money(sum(entry.unit_price * entry.quantity for entry in entries))


def compute_quote(
    entries: Iterable,
    shipping_rule: ShippingRule,
    coupon: Optional[AppliedCoupon] = None,
    bundle_discount: Optional[BundleDiscount] = None,
    currency: str = "AED",
) -> PriceQuote:
    """Full price breakdown for a cart snapshot"""
    entries = list(entries)
    subtotal = compute_subtotal(entries)

    bundle_amount = 0.0
    if bundle_discount is not None:
        bundle_amount = _money(min(max(bundle_discount.discount_amount, 0.0), subtotal))

    coupon_amount = 0.0
    if coupon is not None:
        coupon_amount = _money(min(max(coupon.discount_amount, 0.0), subtotal - bundle_amount))

    discounted = _money(subtotal - bundle_amount - coupon_amount)
    threshold = shipping_rule.free_shipping_at
    is_free_shipping = discounted >= threshold
    remaining = _money(max(0.0, threshold - discounted))

    # Nothing ships for an empty cart
    if not entries or is_free_shipping:
        shipping_cost = 0.0
    else:
        shipping_cost = _money(shipping_rule.cost)

    bundle_savings = sum(
        max(0.0, entry.value - entry.unit_price) * entry.quantity
        for entry in entries
        if entry.kind == "bundle"
    )

    return PriceQuote(
        subtotal=subtotal,
        bundle_discount_amount=bundle_amount,
        coupon_discount_amount=coupon_amount,
        coupon_code=coupon.code if coupon is not None and coupon_amount > 0 else None,
        shipping_cost=shipping_cost,
        is_free_shipping=is_free_shipping,
        free_shipping_threshold=threshold,
        remaining_for_free_shipping=remaining,
        total=max(0.0, _money(discounted + shipping_cost)),
        bundle_value_savings=_money(bundle_savings),
        item_count=len(entries),
        total_quantity=sum(entry.quantity for entry in entries),
        currency=currency,
    )


def discount_items(entries: Iterable) -> list[dict]:
    """Simple items eligible for the cross-item bundle promotion"""
    return [
        {"productId": entry.product_id, "price": entry.unit_price, "quantity": entry.quantity}
        for entry in entries
        if entry.kind == "simple"
    ]


def coupon_items(entries: Iterable) -> list[dict]:
    """Cart lines as sent to the coupon service"""
    items = []
    for entry in entries:
        if entry.kind == "bundle":
            items.append({
                "productId": entry.bundle_id,
                "name": entry.bundle_name,
                "price": entry.unit_price,
                "quantity": entry.quantity,
                "isBundle": True,
            })
        else:
            items.append({
                "productId": entry.product_id,
                "name": entry.name,
                "price": entry.unit_price,
                "quantity": entry.quantity,
                "size": entry.key.size,
                "color": entry.key.color,
            })
    return items


class PricingSession:
    """
    Pricing inputs for one shopper, kept consistent with the cart.

    The bundle discount and shipping rule come from the network and fall
    back to conservative defaults on failure. The quote itself is always
    recomputed from the live cart snapshot, so it is never stale.
    """

    def __init__(self, cart: CartStore, client: CommerceClient, settings: Settings):
        self._cart = cart
        self._client = client
        self._settings = settings
        self.fallback_rule = ShippingRule(
            free_shipping_at=settings.fallback_free_shipping_at,
            cost=settings.fallback_shipping_cost,
            region=settings.shipping_region,
        )
        self.shipping_rule = self.fallback_rule
        self.bundle_discount = BundleDiscount()
        self.coupon: Optional[AppliedCoupon] = None
        self.coupon_error: Optional[str] = None

        self._issued = 0
        self._applied = 0
        self.applied_revision: Optional[int] = None

        self._debouncer = Debouncer(settings.debounce_seconds, self.refresh)
        cart.subscribe(self._on_cart_changed)

    def _on_cart_changed(self, notification: CartNotification) -> None:
        if notification.kind == NotificationKind.CLEARED:
            self.coupon = None
            self.coupon_error = None
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # No event loop (synchronous caller); the next settled_quote() refreshes
            return
        self.schedule_refresh()

    def quote(self) -> PriceQuote:
        """Quote for the current snapshot and the latest applied inputs"""
        return compute_quote(
            self._cart.snapshot(),
            self.shipping_rule,
            coupon=self.coupon,
            bundle_discount=self.bundle_discount,
            currency=self._settings.currency,
        )

    def schedule_refresh(self) -> None:
        """Debounced refresh keyed by the cart content hash"""
        self._debouncer.trigger(cart_content_hash(self._cart.snapshot()))

    async def settle(self) -> None:
        """Wait for any scheduled refresh to finish"""
        await self._debouncer.wait()

    async def settled_quote(self) -> PriceQuote:
        """Quote once pending refreshes finish; refreshes if the inputs lag the cart"""
        await self.settle()
        if self.applied_revision != self._cart.revision:
            return await self.refresh()
        return self.quote()

    async def refresh(self) -> PriceQuote:
        """Fetch bundle discount and shipping for the current cart"""
        self._issued += 1
        ticket = self._issued
        revision = self._cart.revision
        entries = self._cart.snapshot()

        if not entries:
            bundle_discount, shipping_rule = BundleDiscount(), self.shipping_rule
        else:
            subtotal = compute_subtotal(entries)
            bundle_discount, shipping_rule = await asyncio.gather(
                self._fetch_bundle_discount(entries),
                self._fetch_shipping_rule(subtotal),
            )

        if revision != self._cart.revision or ticket < self._applied:
            logger.debug(f"Discarding stale pricing result for cart revision {revision}")
            return self.quote()

        self._applied = ticket
        self.applied_revision = revision
        self.bundle_discount = bundle_discount
        self.shipping_rule = shipping_rule

        if self.coupon is not None and entries:
            await self._revalidate_coupon(revision)

        return self.quote()

    async def _fetch_bundle_discount(self, entries) -> BundleDiscount:
        items = discount_items(entries)
        if not items:
            return BundleDiscount()
        try:
            return await self._client.calculate_bundle_discount(items)
        except CommerceAPIError as e:
            logger.warning(f"Error calculating bundle discount, using none: {e.message}")
            return BundleDiscount()

    async def _fetch_shipping_rule(self, subtotal: float) -> ShippingRule:
        region = self._settings.shipping_region
        try:
            calculation = await self._client.calculate_shipping(subtotal, region=region)
        except CommerceAPIError as e:
            logger.warning(f"Error calculating shipping, using standard rule: {e.message}")
            return self.fallback_rule

        threshold = calculation.free_shipping_at
        if threshold is None:
            threshold = self.shipping_rule.free_shipping_at

        # A free-shipping answer carries a zero cost; keep the known below-threshold cost
        cost = calculation.shipping_cost if calculation.shipping_cost > 0 else self.shipping_rule.cost

        return ShippingRule(free_shipping_at=threshold, cost=cost, region=region)

    # ==================== Coupons ====================

    async def apply_coupon(self, code: str) -> Optional[AppliedCoupon]:
        """Validate and apply a coupon; failures are recorded in ``coupon_error``"""
        code = code.strip()
        if not code:
            self.coupon_error = "Please enter a coupon code"
            return None

        revision = self._cart.revision
        entries = self._cart.snapshot()
        subtotal = compute_subtotal(entries)

        try:
            coupon = await self._client.validate_coupon(code, subtotal, coupon_items(entries))
        except CouponRejected as e:
            logger.info(f"Coupon {code} rejected: {e.message}")
            self.coupon = None
            self.coupon_error = e.message or "Invalid coupon code"
            return None
        except CommerceAPIError as e:
            logger.error(f"Error applying coupon {code}: {e.message}")
            self.coupon = None
            self.coupon_error = "Failed to apply coupon. Please try again."
            return None

        self.coupon = coupon
        self.coupon_error = None
        logger.info(f"Coupon {coupon.code} applied: -{coupon.discount_amount}")

        if revision != self._cart.revision:
            # Validated against a superseded cart; the next settled quote must re-check it
            self.applied_revision = None
            if not self._cart.count:
                self.coupon = None
                return None
            await self._revalidate_coupon(self._cart.revision)
        return self.coupon

    def remove_coupon(self) -> None:
        self.coupon = None
        self.coupon_error = None

    async def _revalidate_coupon(self, revision: int) -> None:
        coupon = self.coupon
        entries = self._cart.snapshot()
        subtotal = compute_subtotal(entries)
        if coupon is None or coupon.cart_total == subtotal:
            return

        try:
            refreshed = await self._client.validate_coupon(coupon.code, subtotal, coupon_items(entries))
        except CouponRejected as e:
            if revision == self._cart.revision:
                logger.info(f"Coupon {coupon.code} invalidated by cart change: {e.message}")
                self.coupon = None
                self.coupon_error = f"Coupon {coupon.code} is no longer valid: {e.message}. Please apply a coupon again."
            return
        except CommerceAPIError as e:
            if revision == self._cart.revision:
                logger.warning(f"Could not re-check coupon {coupon.code}, removing it: {e.message}")
                self.coupon = None
                self.coupon_error = f"Could not re-check coupon {coupon.code}. Please apply it again."
            return

        if revision == self._cart.revision and self.coupon is coupon:
            self.coupon = refreshed
