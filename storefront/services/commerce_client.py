"""
Commerce API Client

Async HTTP client for the remote storefront backend: catalog and bundles,
bundle-discount and shipping calculation, coupon validation, order creation,
and the payment gateway endpoints.

Every response body is decoded through a pydantic model; a body that does
not fit raises ``CommerceAPIError`` like any other failed call.
"""

import logging
from typing import Any, Optional

import httpx
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from ..models.checkout import (
    OrderRequest,
    PaymentSession,
    PaymentStatus,
    PaymentStatusReport,
)
from ..models.pricing import AppliedCoupon, BundleDiscount, ShippingCalculation
from ..models.product import BundleDefinition, CatalogProduct

logger = logging.getLogger(__name__)


class CommerceAPIError(Exception):
    """Base exception for commerce API errors"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @property
    def is_transient(self) -> bool:
        """Network failures and server errors, as opposed to rejections"""
        return self.status_code is None or self.status_code >= 500


class CouponRejected(CommerceAPIError):
    """Coupon service refused the code"""
    pass


# ==================== Wire models ====================

class _Wire(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)


class _NamedRef(_Wire):
    name: Optional[str] = None


class _BundleDiscountBody(_Wire):
    has_bundle_discount: Optional[bool] = Field(default=None, alias="hasBundleDiscount")
    discount_amount: Optional[float] = Field(default=None, alias="discountAmount")
    discount_percentage: Optional[float] = Field(default=None, alias="discountPercentage")
    bundle: Optional[_NamedRef] = None


class _ShippingRuleRef(_Wire):
    free_shipping_at: Optional[float] = Field(default=None, alias="freeShippingAt")


class _ShippingBody(_Wire):
    is_free_shipping: Optional[bool] = Field(default=None, alias="isFreeShipping")
    shipping_cost: Optional[float] = Field(default=None, alias="shippingCost")
    remaining_for_free_shipping: Optional[float] = Field(default=None, alias="remainingForFreeShipping")
    rule: Optional[_ShippingRuleRef] = None


class _CouponRef(_Wire):
    code: Optional[str] = None
    discount_percentage: Optional[float] = Field(default=None, alias="discountPercentage")


class _CouponBody(_Wire):
    discount_amount: Optional[float] = Field(default=None, alias="discountAmount")
    discount_percentage: Optional[float] = Field(default=None, alias="discountPercentage")
    coupon: Optional[_CouponRef] = None


class _OrderBody(_Wire):
    order_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("_id", "orderId", "id"))


class _PaymentBody(_Wire):
    payment_url: Optional[str] = Field(default=None, alias="paymentUrl")
    session_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("sessionId", "orderReference", "reference", "paymentReference"),
    )


class _PaymentStatusBody(_Wire):
    order_number: Optional[str] = Field(default=None, alias="orderNumber")
    total: Optional[float] = None
    payment_status: Optional[str] = Field(default=None, alias="paymentStatus")


_products_adapter = TypeAdapter(list[CatalogProduct])
_bundles_adapter = TypeAdapter(list[BundleDefinition])


def _decode(model, data: Any, what: str):
    """Validate a response payload, turning a malformed body into CommerceAPIError"""
    try:
        if isinstance(model, TypeAdapter):
            return model.validate_python(data)
        return model.model_validate(data)
    except (ValidationError, ValueError, TypeError) as e:
        logger.error(f"Malformed {what} response: {e}")
        raise CommerceAPIError(f"Malformed {what} response") from e


class CommerceClient:
    """
    Client for the storefront backend API.

    Usage:
        client = CommerceClient(settings.api_base_url, auth_token=token)
        bundles = await client.get_bundles("men")
        order_id = await client.create_order(order)
        session = await client.create_payment_session(order_id, return_url)
    """

    PAYMENT_CREATE_PATH = "/payments/ngenius/create/{order_id}"

    def __init__(
        self,
        base_url: str,
        auth_token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize commerce client.

        Args:
            base_url: Base URL of the backend API
            auth_token: Opaque shopper credential, sent as a bearer token
            timeout: Request timeout in seconds
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self._auth_token = auth_token
        self._http_client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def close(self) -> None:
        """Close HTTP client"""
        await self._http_client.aclose()

    def _headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self._auth_token:
            headers["Authorization"] = f"Bearer {self._auth_token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        body: Optional[dict] = None,
        params: Optional[dict] = None,
    ) -> Any:
        """Make an HTTP request and return the decoded JSON body"""
        url = f"{self.base_url}{path}"

        try:
            response = await self._http_client.request(
                method=method,
                url=url,
                headers=self._headers(),
                json=body,
                params=params,
            )
        except httpx.HTTPError as e:
            logger.error(f"Request failed: {method} {url} - {e}")
            raise CommerceAPIError(f"Network error: {e}") from e

        if response.status_code >= 400:
            message = self._error_message(response)
            logger.error(f"Request failed: {response.status_code} - {message}")
            raise CommerceAPIError(message, status_code=response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise CommerceAPIError(f"Invalid JSON from {path}", status_code=response.status_code) from e

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            return response.text or f"HTTP error! status: {response.status_code}"
        if isinstance(payload, dict):
            return str(payload.get("message") or payload.get("error") or "Unknown error")
        return "Unknown error"

    @staticmethod
    def _data(payload: Any) -> Any:
        """Unwrap the ``{success, data, message}`` envelope"""
        if isinstance(payload, dict) and "data" in payload:
            if payload.get("success") is False:
                raise CommerceAPIError(str(payload.get("message") or "Request was not successful"))
            return payload["data"]
        return payload

    # ==================== Catalog APIs ====================

    async def get_products(self, category: Optional[str] = None) -> list[CatalogProduct]:
        """Get all public products, optionally filtered by category"""
        params = {"category": category} if category else None
        data = self._data(await self._request("GET", "/products/public/all", params=params))
        return _decode(_products_adapter, data or [], "product list")

    async def get_product(self, product_id: str) -> CatalogProduct:
        """Get product details"""
        data = self._data(await self._request("GET", f"/products/public/{product_id}"))
        if not data:
            raise CommerceAPIError(f"Product not found: {product_id}", status_code=404)
        return _decode(CatalogProduct, data, "product")

    async def get_bundles(self, category: Optional[str] = None) -> list[BundleDefinition]:
        """Get active bundles, optionally for one category"""
        path = f"/bundles/public/active/{category}" if category else "/bundles/public/active"
        data = self._data(await self._request("GET", path))
        return _decode(_bundles_adapter, data or [], "bundle list")

    async def get_bundle(self, bundle_id: str) -> BundleDefinition:
        """Find an active bundle by id"""
        for bundle in await self.get_bundles():
            if bundle.id == bundle_id:
                return bundle
        raise CommerceAPIError(f"Bundle not found: {bundle_id}", status_code=404)

    # ==================== Pricing APIs ====================

    async def calculate_bundle_discount(self, cart_items: list[dict]) -> BundleDiscount:
        """
        Calculate the cross-item bundle discount.

        Args:
            cart_items: ``{productId, price, quantity}`` for each simple item
        """
        data = self._data(
            await self._request(
                "POST",
                "/bundles/public/calculate-discount",
                body={"cartItems": cart_items},
            )
        )
        if not data:
            return BundleDiscount()

        body = _decode(_BundleDiscountBody, data, "bundle discount")
        return BundleDiscount(
            has_bundle_discount=bool(body.has_bundle_discount),
            discount_amount=body.discount_amount or 0.0,
            discount_percentage=body.discount_percentage or 0.0,
            bundle_name=body.bundle.name if body.bundle else None,
        )

    async def calculate_shipping(
        self,
        subtotal: float,
        region: str = "US",
        weight: float = 0,
    ) -> ShippingCalculation:
        """Calculate shipping for a subtotal"""
        data = self._data(
            await self._request(
                "POST",
                "/shipping/public/calculate",
                body={"subtotal": subtotal, "region": region, "weight": weight},
            )
        )
        if not data:
            raise CommerceAPIError("Empty shipping calculation")

        body = _decode(_ShippingBody, data, "shipping")
        return ShippingCalculation(
            is_free_shipping=bool(body.is_free_shipping),
            shipping_cost=body.shipping_cost or 0.0,
            remaining_for_free_shipping=body.remaining_for_free_shipping or 0.0,
            free_shipping_at=body.rule.free_shipping_at if body.rule else None,
        )

    async def validate_coupon(self, code: str, cart_total: float, items: list[dict]) -> AppliedCoupon:
        """
        Validate a coupon code against the current cart.

        Raises:
            CouponRejected: the service refused the code
            CommerceAPIError: network or server failure, or a malformed answer
        """
        try:
            payload = await self._request(
                "POST",
                "/coupons/validate",
                body={"code": code, "cartTotal": cart_total, "items": items},
            )
        except CommerceAPIError as e:
            if not e.is_transient:
                raise CouponRejected(e.message or "Invalid coupon code", status_code=e.status_code) from e
            raise

        body = _decode(_CouponBody, self._data(payload) or {}, "coupon")
        coupon = body.coupon or _CouponRef()
        return _decode(
            AppliedCoupon,
            {
                "code": coupon.code or code,
                "discount_amount": body.discount_amount or 0.0,
                "discount_percentage": body.discount_percentage or coupon.discount_percentage or 0.0,
                "cart_total": cart_total,
            },
            "coupon",
        )

    # ==================== Order & Payment APIs ====================

    async def create_order(self, order: OrderRequest) -> str:
        """Create an order; returns the order id"""
        data = self._data(await self._request("POST", "/orders/public/create", body=order.to_payload()))
        body = _decode(_OrderBody, data or {}, "order")
        if not body.order_id:
            raise CommerceAPIError("Order service returned no order id")
        return body.order_id

    async def create_payment_session(self, order_id: str, return_url: str) -> PaymentSession:
        """Open a payment session with the gateway for an existing order"""
        data = self._data(
            await self._request(
                "POST",
                self.PAYMENT_CREATE_PATH.format(order_id=order_id),
                body={"returnUrl": return_url},
            )
        )
        body = _decode(_PaymentBody, data or {}, "payment session")
        if not body.payment_url:
            raise CommerceAPIError("Payment gateway returned no payment URL")
        return PaymentSession(
            order_id=order_id,
            session_id=body.session_id,
            payment_url=body.payment_url,
            return_url=return_url,
        )

    async def get_payment_status(self, order_id: str) -> PaymentStatusReport:
        """Get payment status of an order"""
        data = self._data(await self._request("GET", f"/payments/status/{order_id}"))
        body = _decode(_PaymentStatusBody, data or {}, "payment status")

        try:
            status = PaymentStatus(body.payment_status) if body.payment_status else None
        except ValueError:
            logger.warning(f"Unknown payment status {body.payment_status!r} for order {order_id}")
            status = None

        return PaymentStatusReport(
            order_id=order_id,
            order_number=body.order_number,
            total=body.total,
            payment_status=status,
        )
