"""
Checkout Orchestrator

Drives one checkout attempt: customer validation, order creation, payment
session creation, and resolution of the payment outcome after the shopper
returns from the gateway.

The cart survives order submission and payment-session creation. It is
only cleared when the shopper lands back on the payment-return screen, or
when a stored order is later confirmed as paid.
"""

import logging
from typing import Iterable, Optional
from urllib.parse import urlencode

from ..core.config import Settings
from ..core.storage import LAST_ORDER_KEY, DurableStore
from ..database.carts import CartStore
from ..models.checkout import (
    BundleComponent,
    CheckoutResult,
    CheckoutState,
    CustomerDetails,
    DisplayStatus,
    OrderLine,
    OrderRequest,
    PaymentResolution,
    PaymentStatus,
    PaymentStatusReport,
)
from ..models.pricing import PriceQuote
from .commerce_client import CommerceAPIError, CommerceClient
from .pricing import PricingSession

logger = logging.getLogger(__name__)

_BUSY_STATES = (CheckoutState.ORDER_SUBMITTING, CheckoutState.PAYMENT_INITIATING)


class CheckoutError(Exception):
    """Checkout cannot proceed from the current state"""
    pass


class CheckoutInProgress(CheckoutError):
    """A submission is already waiting on the network"""
    pass


class EmptyCart(CheckoutError):
    """Nothing to order"""
    pass


class CustomerIncomplete(CheckoutError):
    """Required customer fields are empty"""

    def __init__(self, missing: list[str]):
        super().__init__(f"Please fill in all required customer fields: {', '.join(missing)}")
        self.missing = missing


def _label(value: str, fallback: str) -> str:
    return fallback if not value or value == "default" else value


def build_order_lines(entries: Iterable) -> list[OrderLine]:
    """Order lines for a cart snapshot; each bundle stays one line with its sub-items"""
    lines = []
    for entry in entries:
        if entry.kind == "bundle":
            lines.append(
                OrderLine(
                    product_id=entry.bundle_id,
                    product_name=entry.bundle_name,
                    quantity=entry.quantity,
                    price=entry.unit_price,
                    is_bundle=True,
                    bundle_items=[
                        BundleComponent(
                            product_id=item.product_id,
                            product_name=item.name,
                            size=item.size,
                            color=item.color,
                            quantity=item.quantity,
                            price=item.unit_price,
                        )
                        for item in entry.items
                    ],
                )
            )
        else:
            lines.append(
                OrderLine(
                    product_id=entry.product_id,
                    product_name=entry.name or "Unknown Product",
                    size=_label(entry.key.size, "Standard"),
                    color=_label(entry.key.color, "Default"),
                    quantity=entry.quantity,
                    price=entry.unit_price,
                )
            )
    return lines


def build_order_request(
    customer: CustomerDetails,
    entries: Iterable,
    quote: PriceQuote,
    currency: str,
) -> OrderRequest:
    """Order for the cart snapshot, priced by its quote"""
    return OrderRequest(
        customer=customer,
        items=build_order_lines(entries),
        coupon_code=quote.coupon_code,
        discount_amount=quote.discount_amount,
        subtotal=quote.subtotal,
        shipping_cost=quote.shipping_cost,
        total=quote.total,
        currency=currency,
    )


class CheckoutOrchestrator:
    """State machine over a single checkout attempt"""

    def __init__(
        self,
        cart: CartStore,
        pricing: PricingSession,
        client: CommerceClient,
        store: DurableStore,
        settings: Settings,
    ):
        self._cart = cart
        self._pricing = pricing
        self._client = client
        self._store = store
        self._settings = settings

        self.state = CheckoutState.COLLECTING
        self.customer = CustomerDetails()
        self.order_id: Optional[str] = None
        self.payment_url: Optional[str] = None
        self.error_message: Optional[str] = None
        self.resolution: Optional[PaymentResolution] = None

    @property
    def last_order_id(self) -> Optional[str]:
        return self._store.get(LAST_ORDER_KEY)

    def return_url(self, order_id: str) -> str:
        return f"{self._settings.payment_return_url}?{urlencode({'orderId': order_id})}"

    def _result(self) -> CheckoutResult:
        return CheckoutResult(
            success=self.error_message is None,
            state=self.state,
            order_id=self.order_id,
            payment_url=self.payment_url,
            error_message=self.error_message,
        )

    def update_customer(self, customer: CustomerDetails) -> list[str]:
        """Record customer details; returns the required fields still empty"""
        if self.state in _BUSY_STATES:
            raise CheckoutInProgress("Checkout is already being processed")

        self.customer = customer
        missing = customer.missing_fields()
        if self.state in (CheckoutState.COLLECTING, CheckoutState.VALIDATED):
            self.state = CheckoutState.COLLECTING if missing else CheckoutState.VALIDATED
        return missing

    async def submit(self) -> CheckoutResult:
        """Create the order and open a payment session for it"""
        if self.state in _BUSY_STATES:
            raise CheckoutInProgress("Checkout is already being processed")
        if self.state == CheckoutState.COLLECTING:
            raise CustomerIncomplete(self.customer.missing_fields())
        if self.state != CheckoutState.VALIDATED:
            raise CheckoutError(f"Cannot submit checkout while {self.state.value}")

        if not self._cart.count:
            raise EmptyCart("Your cart is empty.")

        self.state = CheckoutState.ORDER_SUBMITTING
        self.error_message = None

        try:
            # Quote and snapshot are taken together, with no suspension in between
            quote = await self._pricing.settled_quote()
            entries = self._cart.snapshot()
            if not entries:
                self.state = CheckoutState.VALIDATED
                raise EmptyCart("Your cart is empty.")
            order = build_order_request(self.customer, entries, quote, self._settings.currency)
            logger.info(f"Submitting order: {len(order.items)} lines, total {order.total} {order.currency}")

            order_id = await self._client.create_order(order)
        except CheckoutError:
            raise
        except CommerceAPIError as e:
            self.state = CheckoutState.VALIDATED
            self.error_message = f"Failed to create order: {e.message or 'Unknown error'}"
            logger.error(self.error_message)
            return self._result()
        except Exception as e:
            self.state = CheckoutState.VALIDATED
            self.error_message = f"Failed to create order: {e}"
            logger.exception("Unexpected error while submitting order")
            return self._result()
        else:
            self.order_id = order_id
            self._store.set(LAST_ORDER_KEY, order_id)
            logger.info(f"Order {order_id} created")
            return await self._open_payment_session()
        finally:
            # Never leave the attempt stuck in flight (e.g. on cancellation)
            if self.state == CheckoutState.ORDER_SUBMITTING:
                self.state = CheckoutState.VALIDATED

    async def retry_payment(self) -> CheckoutResult:
        """Shopper-initiated retry of the payment session for the existing order"""
        if self.state != CheckoutState.PAYMENT_FAILED or not self.order_id:
            raise CheckoutError("There is no failed payment to retry")
        self.error_message = None
        return await self._open_payment_session()

    async def _open_payment_session(self) -> CheckoutResult:
        self.state = CheckoutState.PAYMENT_INITIATING
        try:
            session = await self._client.create_payment_session(self.order_id, self.return_url(self.order_id))
        except CommerceAPIError as e:
            # The order exists server-side with no payment attempt; it is not voided here
            self.state = CheckoutState.PAYMENT_FAILED
            self.error_message = f"Failed to create payment: {e.message or 'Unknown error'}"
            logger.error(f"Order {self.order_id} has no payment session: {e.message}")
            return self._result()
        except Exception as e:
            self.state = CheckoutState.PAYMENT_FAILED
            self.error_message = f"Failed to create payment: {e}"
            logger.exception(f"Unexpected error opening payment for order {self.order_id}")
            return self._result()
        else:
            self.payment_url = session.payment_url
            self.state = CheckoutState.REDIRECTED
            logger.info(f"Redirecting order {self.order_id} to payment gateway")
            return self._result()
        finally:
            if self.state == CheckoutState.PAYMENT_INITIATING:
                self.state = CheckoutState.PAYMENT_FAILED

    def restart(self) -> CheckoutState:
        """Abandon the current attempt and start a new one with the same customer"""
        if self.state in _BUSY_STATES:
            raise CheckoutInProgress("Checkout is already being processed")
        self.order_id = None
        self.payment_url = None
        self.error_message = None
        self.resolution = None
        self.state = CheckoutState.VALIDATED if not self.customer.missing_fields() else CheckoutState.COLLECTING
        return self.state

    # ==================== Payment return ====================

    def begin_return(self, order_id: Optional[str] = None) -> Optional[str]:
        """
        Shopper arrived back from the gateway.

        Clears the cart straight away, before the payment status is known,
        and returns the order id to resolve (the redirect parameter, else the
        last stored order id).
        """
        resolved_id = order_id or self.last_order_id
        self._cart.clear()
        if resolved_id:
            self.order_id = resolved_id
        else:
            logger.error("No order ID found in redirect or durable store")
        return resolved_id

    async def resolve_return(self, order_id: Optional[str] = None) -> PaymentResolution:
        """Clear the cart and resolve the payment status for the returning shopper"""
        resolved_id = self.begin_return(order_id)
        resolution = PaymentResolution(order_id=resolved_id, display_status=DisplayStatus.PROCESSING)

        if resolved_id:
            try:
                report = await self._client.get_payment_status(resolved_id)
            except CommerceAPIError as e:
                logger.error(f"Payment status lookup failed for order {resolved_id}: {e.message}")
            else:
                resolution = PaymentResolution(
                    order_id=resolved_id,
                    order_number=report.order_number,
                    total=report.total,
                    payment_status=report.payment_status,
                    display_status=DisplayStatus.for_payment(report.payment_status),
                )
                if report.payment_status == PaymentStatus.PAID:
                    self._store.clear(LAST_ORDER_KEY)

        self.state = CheckoutState.RESOLVED
        self.resolution = resolution
        logger.info(f"Payment return for order {resolved_id}: {resolution.display_status.value}")
        return resolution

    async def check_pending_order(self) -> Optional[PaymentStatusReport]:
        """Clear the cart once a previously placed order is confirmed as paid"""
        order_id = self.last_order_id
        if not order_id:
            return None

        try:
            report = await self._client.get_payment_status(order_id)
        except CommerceAPIError as e:
            logger.warning(f"Error checking order completion for {order_id}: {e.message}")
            return None

        if report.payment_status == PaymentStatus.PAID:
            logger.info(f"Order {order_id} completed, clearing cart")
            self._cart.clear()
            self._store.clear(LAST_ORDER_KEY)
        return report
