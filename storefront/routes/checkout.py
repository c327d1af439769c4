"""Checkout API routes"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from ..core.session import ShopperSession
from ..models.checkout import (
    CheckoutResult,
    CheckoutStatusResponse,
    CustomerDetails,
    PaymentResolution,
    PaymentStatusReport,
)
from ..services.checkout import CheckoutError, CheckoutInProgress, CustomerIncomplete, EmptyCart
from .dependencies import get_shopper_session

router = APIRouter(prefix="/api/checkout", tags=["Checkout"])


class PaymentCancelledResponse(BaseModel):
    """Shown when the shopper backs out of the gateway"""
    message: str
    cart_count: int


def _status(session: ShopperSession, missing: Optional[list[str]] = None) -> CheckoutStatusResponse:
    checkout = session.checkout
    return CheckoutStatusResponse(
        session_id=session.session_id,
        state=checkout.state,
        missing_fields=missing if missing is not None else checkout.customer.missing_fields(),
        order_id=checkout.order_id,
        payment_url=checkout.payment_url,
        error_message=checkout.error_message,
    )


def _raise_for(error: CheckoutError):
    if isinstance(error, CheckoutInProgress):
        raise HTTPException(status_code=409, detail=str(error))
    if isinstance(error, CustomerIncomplete):
        raise HTTPException(status_code=422, detail={"message": str(error), "missing": error.missing})
    if isinstance(error, EmptyCart):
        raise HTTPException(status_code=400, detail=str(error))
    raise HTTPException(status_code=409, detail=str(error))


@router.get("", response_model=CheckoutStatusResponse)
async def get_checkout(session: ShopperSession = Depends(get_shopper_session)):
    """Current checkout state"""
    return _status(session)


@router.put("/customer", response_model=CheckoutStatusResponse)
async def update_customer(
    customer: CustomerDetails,
    session: ShopperSession = Depends(get_shopper_session),
):
    """Record customer contact and address; lists required fields still empty"""
    try:
        missing = session.checkout.update_customer(customer)
    except CheckoutError as e:
        _raise_for(e)
    return _status(session, missing)


@router.post("", response_model=CheckoutResult)
async def submit_checkout(session: ShopperSession = Depends(get_shopper_session)):
    """
    Create the order and open a payment session.

    On success the client navigates to ``payment_url``. The cart is kept
    until the shopper returns from the gateway.
    """
    try:
        return await session.checkout.submit()
    except CheckoutError as e:
        _raise_for(e)


@router.post("/payment/retry", response_model=CheckoutResult)
async def retry_payment(session: ShopperSession = Depends(get_shopper_session)):
    """Open a new payment session for an order whose payment could not start"""
    try:
        return await session.checkout.retry_payment()
    except CheckoutError as e:
        _raise_for(e)


@router.post("/restart", response_model=CheckoutStatusResponse)
async def restart_checkout(session: ShopperSession = Depends(get_shopper_session)):
    """Start a fresh checkout attempt"""
    try:
        session.checkout.restart()
    except CheckoutError as e:
        _raise_for(e)
    return _status(session)


@router.get("/return", response_model=PaymentResolution)
async def payment_return(
    order_id: Optional[str] = Query(None, alias="orderId"),
    session: ShopperSession = Depends(get_shopper_session),
):
    """Payment-success landing: clears the cart, then resolves the payment status"""
    return await session.checkout.resolve_return(order_id)


@router.get("/cancelled", response_model=PaymentCancelledResponse)
async def payment_cancelled(session: ShopperSession = Depends(get_shopper_session)):
    """Payment-cancelled landing; the cart is left as it was"""
    return PaymentCancelledResponse(
        message="Your payment was cancelled. No charges have been made to your account.",
        cart_count=session.cart.count,
    )


@router.post("/pending", response_model=Optional[PaymentStatusReport])
async def check_pending_order(session: ShopperSession = Depends(get_shopper_session)):
    """Clear the cart if the last placed order has since been paid"""
    return await session.checkout.check_pending_order()
