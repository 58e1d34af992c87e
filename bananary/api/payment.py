# FILE: bananary/api/payment.py
"""Recharge order lifecycle and the Stripe webhook."""

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from bananary.api.deps import get_current_user
from bananary.core.config import TEST_MODE
from bananary.core.database import get_db
from bananary.schemas.credits import CompleteOrderResponse, OrderItem, OrderResponse
from bananary.services import payment_service

router = APIRouter(prefix="/api/payment", tags=["payment"])


def _raise(exc: payment_service.PaymentError):
    raise HTTPException(status_code=exc.status_code, detail=str(exc))


@router.get("/order/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str, user=Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    try:
        order = await payment_service.get_order(db, user["id"], order_id)
    except payment_service.PaymentError as exc:
        _raise(exc)
    return OrderResponse(order=OrderItem(**payment_service.order_to_dict(order)))


@router.post("/order/{order_id}/complete", response_model=CompleteOrderResponse)
async def complete_order(order_id: str, user=Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    """Manual completion for local development; real orders are completed by the provider webhook."""
    if not TEST_MODE:
        raise HTTPException(status_code=403, detail="Manual order completion only available in TEST_MODE")
    try:
        await payment_service.get_order(db, user["id"], order_id)
        order, credits_added, balance = await payment_service.complete_order(db, order_id, provider_ref="manual")
    except payment_service.PaymentError as exc:
        _raise(exc)

    message = f"Successfully added {credits_added} credits!" if credits_added else "Order already completed"
    return CompleteOrderResponse(
        message=message,
        order=OrderItem(**payment_service.order_to_dict(order)),
        credits_added=credits_added,
        balance=balance,
    )


@router.post("/order/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(order_id: str, user=Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    try:
        order = await payment_service.cancel_order(db, user["id"], order_id)
    except payment_service.PaymentError as exc:
        _raise(exc)
    return OrderResponse(message="Order cancelled", order=OrderItem(**payment_service.order_to_dict(order)))


@router.post("/webhook/stripe")
async def stripe_webhook(request: Request, db: AsyncSession = Depends(get_db)):
    """Stripe webhook to finalize recharge orders."""
    payload = await request.body()
    try:
        event = payment_service.construct_stripe_event(payload, request.headers.get("stripe-signature"))
        result = await payment_service.handle_stripe_event(db, event)
    except payment_service.PaymentError as exc:
        _raise(exc)
    return {"success": True, **result}
