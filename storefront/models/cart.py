"""Cart models: entry identity, simple and bundle entries, API payloads"""

from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .pricing import PriceQuote

DEFAULT_VARIANT = "default"


class VariantKey(BaseModel):
    """Identity of a mergeable simple line: product + size + colour"""
    model_config = ConfigDict(frozen=True)

    product_id: str
    size: str = DEFAULT_VARIANT
    color: str = DEFAULT_VARIANT

    @classmethod
    def of(cls, product_id: str, size: Optional[str] = None, color: Optional[str] = None) -> "VariantKey":
        return cls(
            product_id=product_id,
            size=size or DEFAULT_VARIANT,
            color=color or DEFAULT_VARIANT,
        )


class BundleKey(BaseModel):
    """Identity of a bundle line"""
    model_config = ConfigDict(frozen=True)

    bundle_id: str


EntryKey = Union[VariantKey, BundleKey]


class ResolvedSubItem(BaseModel):
    """One sub-product of a bundle with its chosen variant and price"""
    model_config = ConfigDict(frozen=True)

    product_id: str
    name: str
    size: str
    color: str
    quantity: int = Field(ge=1)
    unit_price: float = Field(ge=0)
    image: Optional[str] = None


class SimpleEntry(BaseModel):
    """Single product/variant line"""
    model_config = ConfigDict(frozen=True)

    kind: Literal["simple"] = "simple"
    key: VariantKey
    name: str
    unit_price: float = Field(ge=0)  # Price snapshot at add time
    quantity: int = Field(ge=0)
    image: Optional[str] = None
    fit: Optional[str] = None

    @property
    def product_id(self) -> str:
        return self.key.product_id

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity


class BundleEntry(BaseModel):
    """Atomic bundle line; sub-items are never edited individually"""
    model_config = ConfigDict(frozen=True)

    kind: Literal["bundle"] = "bundle"
    bundle_id: str
    bundle_name: str
    unit_price: float = Field(ge=0)  # Bundle price, not the sum of its parts
    quantity: int = Field(ge=0)
    image: Optional[str] = None
    items: tuple[ResolvedSubItem, ...] = ()

    @property
    def key(self) -> BundleKey:
        return BundleKey(bundle_id=self.bundle_id)

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity

    @property
    def value(self) -> float:
        """Sum of the resolved sub-item prices, used for savings displays"""
        return sum(item.unit_price * item.quantity for item in self.items)


CartEntry = Annotated[Union[SimpleEntry, BundleEntry], Field(discriminator="kind")]


class CartItemInput(BaseModel):
    """Simple item as offered to the cart by a product page"""
    product_id: str
    name: str
    price: float = Field(ge=0)
    quantity: int = 1
    size: Optional[str] = None
    color: Optional[str] = None
    image: Optional[str] = None
    fit: Optional[str] = None

    @property
    def key(self) -> VariantKey:
        return VariantKey.of(self.product_id, self.size, self.color)


class VariationSelection(BaseModel):
    """Shopper's variant choice for one bundle sub-product"""
    size: Optional[str] = None
    color: Optional[str] = None
    quantity: Optional[int] = None


class NotificationKind(str, Enum):
    ADDED = "added"
    QUANTITY_UPDATED = "quantity_updated"
    REMOVED = "removed"
    CLEARED = "cleared"


class CartNotification(BaseModel):
    """User-facing cart event"""
    kind: NotificationKind
    message: str
    key: Optional[EntryKey] = None


# ==================== API payloads ====================

class AddToCartRequest(BaseModel):
    """Request to add a simple item to the cart"""
    product_id: str
    name: str
    price: float = Field(ge=0)
    quantity: int = 1
    size: Optional[str] = None
    color: Optional[str] = None
    image: Optional[str] = None
    fit: Optional[str] = None


class AddBundleRequest(BaseModel):
    """Request to add a bundle with per-sub-product selections"""
    bundle_id: str
    selections: dict[str, VariationSelection] = Field(default_factory=dict)


class UpdateQuantityRequest(BaseModel):
    """Request to set the quantity of a cart entry"""
    key: EntryKey
    quantity: int


class RemoveItemRequest(BaseModel):
    """Request to remove a cart entry"""
    key: EntryKey


class ApplyCouponRequest(BaseModel):
    """Request to apply a coupon code"""
    code: str


class CartResponse(BaseModel):
    """Cart API response"""
    session_id: str
    items: list[CartEntry]
    count: int
    total_quantity: int
    quote: PriceQuote
    coupon_error: Optional[str] = None
    message: Optional[str] = None
