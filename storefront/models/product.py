"""Catalog models as served by the remote catalog API"""

import re
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field

PLACEHOLDER_IMAGE = "/placeholder.svg"

_NON_NUMERIC = re.compile(r"[^0-9.]")


class VariantColor(BaseModel):
    """Colour of a product variant"""
    name: str
    type: Optional[str] = None  # "hex" or "image"
    value: Optional[str] = None


class ProductVariant(BaseModel):
    """A specific size + colour combination of a product"""
    id: Optional[str] = None
    size: str
    color: VariantColor
    sku: Optional[str] = None
    stock: int = 0
    price_override: Optional[float] = Field(
        default=None,
        validation_alias=AliasChoices("priceOverride", "price_override"),
    )
    is_active: bool = Field(default=True, validation_alias=AliasChoices("isActive", "is_active"))


class CatalogProduct(BaseModel):
    """Product in the catalog"""
    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    name: str = Field(default="", validation_alias=AliasChoices("title", "name"))
    base_price: float = Field(default=0.0, validation_alias=AliasChoices("basePrice", "base_price"))
    price: Optional[str] = None  # Display price, e.g. "AED 120.00"
    image: Optional[str] = None
    images: list[str] = Field(default_factory=list)
    category: Optional[str] = None
    sizes: list[str] = Field(default_factory=list, validation_alias=AliasChoices("sizeOptions", "sizes"))
    variants: list[ProductVariant] = Field(default_factory=list)

    @property
    def list_price(self) -> float:
        """Base price, falling back to the numeric part of the display price"""
        if self.base_price:
            return self.base_price
        if self.price:
            digits = _NON_NUMERIC.sub("", self.price)
            try:
                return float(digits)
            except ValueError:
                return 0.0
        return 0.0

    @property
    def image_url(self) -> str:
        if self.image:
            return self.image
        if self.images:
            return self.images[0]
        return PLACEHOLDER_IMAGE

    def find_variant(self, size: str, color: str) -> Optional[ProductVariant]:
        """Exact size + colour-name match"""
        return next(
            (v for v in self.variants if v.size == size and v.color.name == color),
            None,
        )


class BundleDefinition(BaseModel):
    """Fixed-price multi-product offer"""
    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    name: str
    description: Optional[str] = None
    products: list[CatalogProduct] = Field(default_factory=list)
    original_price: float = Field(default=0.0, validation_alias=AliasChoices("originalPrice", "original_price"))
    bundle_price: float = Field(validation_alias=AliasChoices("bundlePrice", "bundle_price"))
    bundle_type: Optional[str] = Field(default=None, validation_alias=AliasChoices("bundleType", "bundle_type"))
    category: Optional[str] = None
    is_active: bool = Field(default=True, validation_alias=AliasChoices("isActive", "is_active"))
