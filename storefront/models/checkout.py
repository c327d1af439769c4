"""Checkout models: customer details, orders, payment sessions"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class Address(BaseModel):
    """Shipping address for order"""
    street: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = "United Arab Emirates"


class CustomerDetails(BaseModel):
    """Customer contact and address as collected by the checkout form"""
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    address: Address = Field(default_factory=Address)

    def missing_fields(self) -> list[str]:
        """Names of required fields that are still empty"""
        values = {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "phone": self.phone,
            "street": self.address.street,
            "city": self.address.city,
            "state": self.address.state,
            "postal_code": self.address.postal_code,
        }
        return [name for name, value in values.items() if not value.strip()]

    @property
    def full_name(self) -> str:
        return f"{self.first_name.strip()} {self.last_name.strip()}".strip()


class BundleComponent(BaseModel):
    """Sub-product of a bundle order line"""
    product_id: str
    product_name: str
    size: str
    color: str
    quantity: int
    price: float


class OrderLine(BaseModel):
    """Item in an order"""
    product_id: str
    product_name: str
    size: str = "Standard"
    color: str = "Default"
    quantity: int
    price: float
    is_bundle: bool = False
    bundle_items: list[BundleComponent] = Field(default_factory=list)

    def to_payload(self) -> dict:
        payload = {
            "productId": self.product_id,
            "productName": self.product_name,
            "size": self.size,
            "color": self.color,
            "quantity": self.quantity,
            "price": self.price,
        }
        if self.is_bundle:
            payload["isBundle"] = True
            payload["bundleItems"] = [
                {
                    "productId": c.product_id,
                    "productName": c.product_name,
                    "size": c.size,
                    "color": c.color,
                    "quantity": c.quantity,
                    "price": c.price,
                }
                for c in self.bundle_items
            ]
        return payload


class OrderRequest(BaseModel):
    """Order built from a cart snapshot and its quote"""
    customer: CustomerDetails
    items: list[OrderLine]
    coupon_code: Optional[str] = None
    discount_amount: float = 0.0
    subtotal: float
    shipping_cost: float
    total: float
    currency: str

    def to_payload(self) -> dict:
        """Wire format expected by the order service"""
        address = self.customer.address
        return {
            "customer": {
                "name": self.customer.full_name,
                "email": self.customer.email.strip(),
                "phone": self.customer.phone.strip(),
                "address": {
                    "street": address.street,
                    "city": address.city,
                    "state": address.state,
                    "zipCode": address.postal_code,
                    "country": address.country,
                },
            },
            "items": [line.to_payload() for line in self.items],
            "couponCode": self.coupon_code,
            "discountAmount": self.discount_amount,
            "subtotal": self.subtotal,
            "shippingCost": self.shipping_cost,
            "total": self.total,
            "currency": self.currency,
        }


class CheckoutState(str, Enum):
    COLLECTING = "collecting"
    VALIDATED = "validated"
    ORDER_SUBMITTING = "order_submitting"
    PAYMENT_INITIATING = "payment_initiating"
    PAYMENT_FAILED = "payment_failed"
    REDIRECTED = "redirected"
    RESOLVED = "resolved"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class DisplayStatus(str, Enum):
    """What the confirmation screen may claim"""
    PAID = "paid"
    PROCESSING = "processing"
    FAILED = "failed"

    @classmethod
    def for_payment(cls, status: Optional[PaymentStatus]) -> "DisplayStatus":
        if status == PaymentStatus.PAID:
            return cls.PAID
        if status == PaymentStatus.FAILED:
            return cls.FAILED
        return cls.PROCESSING


class PaymentSession(BaseModel):
    """Payment attempt opened with the external gateway"""
    order_id: str
    session_id: Optional[str] = None  # Gateway reference, when the gateway returns one
    payment_url: str
    return_url: str
    status: PaymentStatus = PaymentStatus.PENDING


class PaymentStatusReport(BaseModel):
    """Payment status as reported for an order"""
    order_id: str
    order_number: Optional[str] = None
    total: Optional[float] = None
    payment_status: Optional[PaymentStatus] = None


class PaymentResolution(BaseModel):
    """Outcome shown when the shopper returns from the gateway"""
    order_id: Optional[str] = None
    order_number: Optional[str] = None
    total: Optional[float] = None
    payment_status: Optional[PaymentStatus] = None
    display_status: DisplayStatus = DisplayStatus.PROCESSING
    cart_cleared: bool = True


class CheckoutResult(BaseModel):
    """Response from a checkout step"""
    success: bool
    state: CheckoutState
    order_id: Optional[str] = None
    payment_url: Optional[str] = None
    error_message: Optional[str] = None


class CheckoutStatusResponse(BaseModel):
    """Current state of the shopper's checkout attempt"""
    session_id: str
    state: CheckoutState
    missing_fields: list[str] = Field(default_factory=list)
    order_id: Optional[str] = None
    payment_url: Optional[str] = None
    error_message: Optional[str] = None
