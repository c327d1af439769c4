"""Cart API routes"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ..core.config import settings
from ..core.session import ShopperSession
from ..database.carts import EntryNotFound, clamp_quantity
from ..models.cart import (
    AddBundleRequest,
    AddToCartRequest,
    ApplyCouponRequest,
    CartItemInput,
    CartResponse,
    RemoveItemRequest,
    UpdateQuantityRequest,
)
from ..services.bundle_resolver import IncompleteSelection, resolve
from ..services.commerce_client import CommerceAPIError, CommerceClient
from ..services.shipping_advisor import Suggestion
from .dependencies import get_commerce_client, get_shopper_session

router = APIRouter(prefix="/api/cart", tags=["Cart"])


class SuggestionsResponse(BaseModel):
    """Products that would unlock free shipping"""
    session_id: str
    remaining_for_free_shipping: float
    suggestions: list[Suggestion]


def _cart_response(session: ShopperSession, message: Optional[str] = None) -> CartResponse:
    return CartResponse(
        session_id=session.session_id,
        items=list(session.cart.snapshot()),
        count=session.cart.count,
        total_quantity=session.cart.total_quantity,
        quote=session.pricing.quote(),
        coupon_error=session.pricing.coupon_error,
        message=message or session.pop_notification(),
    )


@router.get("", response_model=CartResponse)
async def get_cart(session: ShopperSession = Depends(get_shopper_session)):
    """Get the cart with a quote that reflects its settled state"""
    await session.pricing.settled_quote()
    return _cart_response(session)


@router.post("/items", response_model=CartResponse)
async def add_to_cart(
    request: AddToCartRequest,
    session: ShopperSession = Depends(get_shopper_session),
):
    """Add a simple item; the same product, size and colour merge into one line"""
    item = CartItemInput(
        product_id=request.product_id,
        name=request.name,
        price=request.price,
        quantity=clamp_quantity(request.quantity, settings.max_item_quantity),
        size=request.size,
        color=request.color,
        image=request.image,
        fit=request.fit,
    )
    session.cart.add_item(item)
    return _cart_response(session)


@router.post("/bundles", response_model=CartResponse)
async def add_bundle_to_cart(
    request: AddBundleRequest,
    session: ShopperSession = Depends(get_shopper_session),
    client: CommerceClient = Depends(get_commerce_client),
):
    """Resolve the shopper's variant choices and add the bundle as one entry"""
    try:
        bundle = await client.get_bundle(request.bundle_id)
    except CommerceAPIError as e:
        status = 404 if e.status_code == 404 else 502
        raise HTTPException(status_code=status, detail=e.message)

    try:
        resolved = resolve(bundle, request.selections)
    except IncompleteSelection as e:
        raise HTTPException(
            status_code=422,
            detail={"message": str(e), "product_id": e.product_id, "missing": list(e.missing)},
        )

    session.cart.add_bundle(bundle, resolved)
    return _cart_response(session)


@router.post("/items/quantity", response_model=CartResponse)
async def update_quantity(
    request: UpdateQuantityRequest,
    session: ShopperSession = Depends(get_shopper_session),
):
    """Set an entry's quantity; below 1 removes the entry"""
    quantity = min(request.quantity, settings.max_item_quantity)
    try:
        session.cart.set_quantity(request.key, quantity)
    except EntryNotFound:
        raise HTTPException(status_code=404, detail="Item not in cart")
    return _cart_response(session)


@router.post("/items/remove", response_model=CartResponse)
async def remove_from_cart(
    request: RemoveItemRequest,
    session: ShopperSession = Depends(get_shopper_session),
):
    """Remove an entry; a bundle is removed as a whole"""
    try:
        session.cart.remove_item(request.key)
    except EntryNotFound:
        raise HTTPException(status_code=404, detail="Item not in cart")
    return _cart_response(session)


@router.delete("", response_model=CartResponse)
async def clear_cart(session: ShopperSession = Depends(get_shopper_session)):
    """Clear all items from cart"""
    session.cart.clear()
    return _cart_response(session)


@router.post("/coupon", response_model=CartResponse)
async def apply_coupon(
    request: ApplyCouponRequest,
    session: ShopperSession = Depends(get_shopper_session),
):
    """Apply a coupon code; a rejection is reported in coupon_error"""
    await session.pricing.settle()
    coupon = await session.pricing.apply_coupon(request.code)
    message = f"Coupon applied! You saved {coupon.discount_amount:.2f}" if coupon else None
    return _cart_response(session, message=message)


@router.delete("/coupon", response_model=CartResponse)
async def remove_coupon(session: ShopperSession = Depends(get_shopper_session)):
    """Remove the applied coupon"""
    session.pricing.remove_coupon()
    return _cart_response(session)


@router.get("/suggestions", response_model=SuggestionsResponse)
async def free_shipping_suggestions(session: ShopperSession = Depends(get_shopper_session)):
    """Products that would close the gap to free shipping"""
    quote = await session.pricing.settled_quote()
    suggestions = await session.advisor.suggest(session.cart.snapshot(), quote)
    return SuggestionsResponse(
        session_id=session.session_id,
        remaining_for_free_shipping=quote.remaining_for_free_shipping,
        suggestions=suggestions,
    )
