# /bananary/api/credits.py
"""Credit balance, ledger and recharge endpoints."""

import math

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from bananary.api.deps import get_current_user
from bananary.core.config import CREDITS_PER_CURRENCY_UNIT
from bananary.core.database import get_db
from bananary.schemas.common import Pagination, iso
from bananary.schemas.credits import (
    BalanceResponse,
    ChargePackage,
    ChargeRequest,
    ChargeResponse,
    ConsumeRequest,
    CreditTransactionItem,
    OrderItem,
    PackagesResponse,
    TransactionsResponse,
)
from bananary.services import credit_service, payment_service

router = APIRouter(prefix="/api/credits", tags=["credits"])


@router.get("/balance", response_model=BalanceResponse)
async def get_credit_balance(user=Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    balance = await credit_service.get_balance(db, user["id"])
    return BalanceResponse(balance=balance, credits=balance)


@router.get("/packages", response_model=PackagesResponse)
async def get_charge_packages():
    return PackagesResponse(
        packages=[ChargePackage(**p) for p in payment_service.CHARGE_PACKAGES],
        credits_per_unit=CREDITS_PER_CURRENCY_UNIT,
        min_amount=payment_service.MIN_CHARGE_AMOUNT,
    )


@router.post("/charge", response_model=ChargeResponse)
async def charge_credits(
        data: ChargeRequest,
        user=Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    """Create a recharge order. Mock methods complete immediately when auto-complete is on."""
    try:
        order, balance, payment_url = await payment_service.create_order(
            db, user["id"], data.amount, data.credits, data.payment_method
        )
    except payment_service.PaymentError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc))

    if order.status == payment_service.STATUS_PAID:
        message = f"Recharge successful: {order.credits} credits added"
    else:
        message = "Order created"
    return ChargeResponse(
        message=message,
        order_id=order.id,
        order=OrderItem(**payment_service.order_to_dict(order)),
        balance=balance,
        payment_url=payment_url,
    )


@router.post("/consume", response_model=BalanceResponse)
async def consume_credits(
        data: ConsumeRequest,
        user=Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    try:
        balance = await credit_service.consume(
            db, user["id"], data.amount, data.description or "Credit consumption", ref_id=data.ref_id
        )
    except credit_service.InsufficientCreditsError as exc:
        raise HTTPException(status_code=400, detail=f"Insufficient credits (balance {exc.balance}, required {exc.required})")
    return BalanceResponse(message="Credits consumed", balance=balance, credits=balance)


@router.get("/transactions", response_model=TransactionsResponse)
async def get_transactions(
        page: int = Query(1, ge=1),
        limit: int = Query(20, ge=1, le=100),
        user=Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    rows, total = await credit_service.list_transactions(db, user["id"], page, limit)
    return TransactionsResponse(
        data=[
            CreditTransactionItem(
                id=t.id,
                user_id=t.user_id,
                type=t.type,
                amount=t.amount,
                balance=t.balance,
                description=t.description,
                order_id=t.order_id,
                created_at=iso(t.created_at),
            )
            for t in rows
        ],
        pagination=Pagination(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit)),
    )
