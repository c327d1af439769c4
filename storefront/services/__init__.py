# Storefront services

from .commerce_client import CommerceAPIError, CommerceClient, CouponRejected
from .bundle_resolver import IncompleteSelection, bundle_value, resolve
from .pricing import PricingSession, compute_quote, compute_subtotal
from .shipping_advisor import ShippingAdvisor, Suggestion, suggest_products
from .checkout import (
    CheckoutError,
    CheckoutInProgress,
    CheckoutOrchestrator,
    CustomerIncomplete,
    EmptyCart,
)

__all__ = [
    "CommerceAPIError",
    "CommerceClient",
    "CouponRejected",
    "IncompleteSelection",
    "bundle_value",
    "resolve",
    "PricingSession",
    "compute_quote",
    "compute_subtotal",
    "ShippingAdvisor",
    "Suggestion",
    "suggest_products",
    "CheckoutError",
    "CheckoutInProgress",
    "CheckoutOrchestrator",
    "CustomerIncomplete",
    "EmptyCart",
]
