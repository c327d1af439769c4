"""Pricing models: external pricing inputs and the computed quote"""

from typing import Optional

from pydantic import BaseModel, Field


class ShippingRule(BaseModel):
    """Free-shipping threshold and the flat cost charged below it"""
    free_shipping_at: float = Field(ge=0)
    cost: float = Field(ge=0)
    region: str = "US"


class ShippingCalculation(BaseModel):
    """Shipping service answer for a given subtotal"""
    is_free_shipping: bool = False
    shipping_cost: float = 0.0
    remaining_for_free_shipping: float = 0.0
    free_shipping_at: Optional[float] = None


class BundleDiscount(BaseModel):
    """Server-computed cross-item bundle promotion for the simple items"""
    has_bundle_discount: bool = False
    discount_amount: float = 0.0
    discount_percentage: float = 0.0
    bundle_name: Optional[str] = None


class AppliedCoupon(BaseModel):
    """Coupon accepted by the coupon service for a given cart total"""
    code: str
    discount_amount: float = Field(ge=0)
    discount_percentage: float = 0.0
    cart_total: float  # Subtotal the coupon was validated against


class PriceQuote(BaseModel):
    """Full price breakdown for a cart snapshot"""
    subtotal: float = 0.0
    bundle_discount_amount: float = 0.0
    coupon_discount_amount: float = 0.0
    coupon_code: Optional[str] = None
    shipping_cost: float = 0.0
    is_free_shipping: bool = False
    free_shipping_threshold: float = 0.0
    remaining_for_free_shipping: float = 0.0
    total: float = 0.0
    bundle_value_savings: float = 0.0  # Display only, never deducted from the total
    item_count: int = 0
    total_quantity: int = 0
    currency: str = "AED"

    @property
    def discount_amount(self) -> float:
        return round(self.bundle_discount_amount + self.coupon_discount_amount, 2)

    @property
    def discounted_subtotal(self) -> float:
        return round(self.subtotal - self.discount_amount, 2)
