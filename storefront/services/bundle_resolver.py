"""
Bundle Resolver

Turns a bundle definition plus the shopper's per-sub-product variant choices
into resolved sub-items. The bundle's charged price always comes from the
definition; sub-item prices only feed the "value" shown for savings.
"""

import logging
from typing import Mapping

from ..models.cart import ResolvedSubItem, VariationSelection
from ..models.product import BundleDefinition, CatalogProduct

logger = logging.getLogger(__name__)


class IncompleteSelection(Exception):
    """A bundle sub-product is missing its size or colour choice"""

    def __init__(self, product_id: str, product_name: str = "", missing: tuple[str, ...] = ()):
        self.product_id = product_id
        self.product_name = product_name
        self.missing = missing
        label = product_name or product_id
        super().__init__(f"Select {' and '.join(missing) or 'a variation'} for {label}")


def variant_unit_price(product: CatalogProduct, size: str, color: str) -> float:
    """Variant price override when positive, otherwise the product's base price"""
    variant = product.find_variant(size, color)
    if variant is not None and variant.price_override and variant.price_override > 0:
        return variant.price_override
    return product.list_price


def resolve(
    bundle: BundleDefinition,
    selections: Mapping[str, VariationSelection],
) -> list[ResolvedSubItem]:
    """
    Resolve every sub-product of a bundle against the shopper's selections.

    Args:
        bundle: Bundle definition from the catalog
        selections: Variation choice keyed by sub-product id

    Returns:
        Resolved sub-items in bundle-definition order

    Raises:
        IncompleteSelection: for the first sub-product without both a size
            and a colour (or with a non-positive quantity)
    """
    resolved = []

    for product in bundle.products:
        selection = selections.get(product.id)
        missing = []
        if selection is None or not selection.size:
            missing.append("size")
        if selection is None or not selection.color:
            missing.append("color")
        if missing:
            raise IncompleteSelection(product.id, product.name, tuple(missing))

        quantity = 1 if selection.quantity is None else selection.quantity
        if quantity < 1:
            raise IncompleteSelection(product.id, product.name, ("quantity",))

        resolved.append(
            ResolvedSubItem(
                product_id=product.id,
                name=product.name,
                size=selection.size,
                color=selection.color,
                quantity=quantity,
                unit_price=variant_unit_price(product, selection.size, selection.color),
                image=product.image_url,
            )
        )

    logger.debug(f"Resolved {len(resolved)} sub-items for bundle {bundle.id}")
    return resolved


def bundle_value(resolved: list[ResolvedSubItem]) -> float:
    """What the sub-items would cost on their own"""
    return round(sum(item.unit_price * item.quantity for item in resolved), 2)
