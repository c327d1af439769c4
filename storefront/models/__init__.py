# Storefront models

from .product import BundleDefinition, CatalogProduct, ProductVariant, VariantColor
from .pricing import AppliedCoupon, BundleDiscount, PriceQuote, ShippingCalculation, ShippingRule
from .cart import (
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
    VariationSelection,
)
from .checkout import (
    Address,
    CheckoutResult,
    CheckoutState,
    CustomerDetails,
    DisplayStatus,
    OrderLine,
    OrderRequest,
    PaymentResolution,
    PaymentSession,
    PaymentStatus,
    PaymentStatusReport,
)

__all__ = [
    "BundleDefinition",
    "CatalogProduct",
    "ProductVariant",
    "VariantColor",
    "AppliedCoupon",
    "BundleDiscount",
    "PriceQuote",
    "ShippingCalculation",
    "ShippingRule",
    "BundleEntry",
    "BundleKey",
    "CartEntry",
    "CartItemInput",
    "CartNotification",
    "EntryKey",
    "NotificationKind",
    "ResolvedSubItem",
    "SimpleEntry",
    "VariantKey",
    "VariationSelection",
    "Address",
    "CheckoutResult",
    "CheckoutState",
    "CustomerDetails",
    "DisplayStatus",
    "OrderLine",
    "OrderRequest",
    "PaymentResolution",
    "PaymentSession",
    "PaymentStatus",
    "PaymentStatusReport",
]
