# FILE: bananary/services/payment_service.py
"""Recharge orders.

An order is created `pending` and becomes `paid` exactly once; the
pending -> paid transition and the credit grant share one DB transaction.
"""

import logging
import os
import time
import uuid
from datetime import datetime
from decimal import ROUND_FLOOR, Decimal
from typing import Any, Dict, Optional, Tuple

import stripe
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bananary.core.config import (
    AUTO_COMPLETE_CREDIT_PURCHASES,
    CREDITS_PER_CURRENCY_UNIT,
    FRONTEND_URL,
    LOG_DIR,
    STRIPE_CURRENCY,
    STRIPE_SECRET_KEY,
    STRIPE_WEBHOOK_SECRET,
)
from bananary.models.charge_order import ChargeOrder
from bananary.schemas.common import iso
from bananary.services import credit_service

logger = logging.getLogger("bananary.payment")

os.makedirs(LOG_DIR, exist_ok=True)
stripe_logger = logging.getLogger("stripe_bananary")
if not stripe_logger.handlers:
    handler = logging.FileHandler(os.path.join(LOG_DIR, "stripe.log"))
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
    handler.setFormatter(formatter)
    stripe_logger.setLevel(logging.INFO)
    stripe_logger.addHandler(handler)

if STRIPE_SECRET_KEY:
    stripe.api_key = STRIPE_SECRET_KEY

PAYMENT_METHODS = {"mock", "alipay", "wechat", "stripe"}
MIN_CHARGE_AMOUNT = 1

STATUS_PENDING = "pending"
STATUS_PAID = "paid"
STATUS_FAILED = "failed"
STATUS_CANCELLED = "cancelled"

CHARGE_PACKAGES = [
    {"id": "pkg_10", "price": 10, "credits": 800, "popular": False},
    {"id": "pkg_20", "price": 20, "credits": 1600, "popular": True},
    {"id": "pkg_50", "price": 50, "credits": 4000, "popular": False},
    {"id": "pkg_100", "price": 100, "credits": 8000, "popular": False},
]


class PaymentError(Exception):
    status_code = 400


class OrderNotFoundError(PaymentError):
    status_code = 404


class PaymentProviderError(PaymentError):
    status_code = 502


def credits_for_amount(amount: Decimal) -> int:
    return int((Decimal(amount) * CREDITS_PER_CURRENCY_UNIT).to_integral_value(rounding=ROUND_FLOOR))


def new_order_id() -> str:
    return f"ORDER_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8].upper()}"


def order_to_dict(order: ChargeOrder) -> Dict[str, Any]:
    return {
        "id": order.id,
        "amount": float(order.amount),
        "credits": order.credits,
        "payment_method": order.payment_method,
        "status": order.status,
        "created_at": iso(order.created_at),
        "paid_at": iso(order.paid_at),
    }


async def _load(db: AsyncSession, order_id: str, user_id: Optional[str] = None) -> ChargeOrder:
    q = select(ChargeOrder).where(ChargeOrder.id == order_id)
    if user_id is not None:
        q = q.where(ChargeOrder.user_id == user_id)
    order = (await db.execute(q)).scalar_one_or_none()
    if not order:
        raise OrderNotFoundError("Order not found")
    return order


async def get_order(db: AsyncSession, user_id: str, order_id: str) -> ChargeOrder:
    return await _load(db, order_id, user_id)


def _create_checkout_session(order: ChargeOrder) -> Any:
    if not STRIPE_SECRET_KEY:
        raise PaymentProviderError("Stripe is not configured")
    try:
        return stripe.checkout.Session.create(
            payment_method_types=["card"],
            mode="payment",
            line_items=[
                {
                    "price_data": {
                        "currency": STRIPE_CURRENCY,
                        "product_data": {"name": f"{order.credits} credits"},
                        "unit_amount": int(Decimal(order.amount) * 100),
                    },
                    "quantity": 1,
                }
            ],
            success_url=f"{FRONTEND_URL}/recharge?success=1&order_id={order.id}",
            cancel_url=f"{FRONTEND_URL}/recharge?canceled=1&order_id={order.id}",
            metadata={
                "order_id": order.id,
                "user_id": order.user_id,
                "credits": order.credits,
            },
        )
    except Exception as exc:
        stripe_logger.error("Stripe session creation failed for %s", order.id, exc_info=exc)
        raise PaymentProviderError("Stripe session creation failed; see logs/stripe.log") from exc


async def create_order(
        db: AsyncSession,
        user_id: str,
        amount: Decimal,
        credits: Optional[int] = None,
        payment_method: str = "mock",
) -> Tuple[ChargeOrder, Optional[int], Optional[str]]:
    """Create a recharge order.

    Returns (order, balance, payment_url). `balance` is set when the order
    was completed on the spot; `payment_url` when the client must go to a
    provider checkout page.
    """
    if payment_method not in PAYMENT_METHODS:
        raise PaymentError(f"Unsupported payment method: {payment_method}")

    amount = Decimal(amount)
    if amount < MIN_CHARGE_AMOUNT:
        raise PaymentError(f"Minimum charge amount is {MIN_CHARGE_AMOUNT}")

    max_credits = credits_for_amount(amount)
    if credits is None:
        credits = max_credits
    if credits <= 0:
        raise PaymentError("Charge amount is too small")
    if credits > max_credits:
        raise PaymentError(f"{amount} buys at most {max_credits} credits")

    order = ChargeOrder(
        id=new_order_id(),
        user_id=user_id,
        amount=amount,
        credits=credits,
        payment_method=payment_method,
        status=STATUS_PENDING,
        created_at=datetime.utcnow(),
        updated_at=datetime.utcnow(),
    )
    db.add(order)
    await db.commit()
    logger.info("Order %s created for user %s: %s -> %s credits via %s",
                order.id, user_id, amount, credits, payment_method)

    if payment_method == "stripe":
        try:
            session = _create_checkout_session(order)
        except PaymentProviderError:
            order.status = STATUS_FAILED
            order.updated_at = datetime.utcnow()
            await db.commit()
            raise
        order.provider_ref = session.id
        await db.commit()
        stripe_logger.info("Checkout session %s created for order %s", session.id, order.id)
        return order, None, session.url

    if AUTO_COMPLETE_CREDIT_PURCHASES:
        order, _, balance = await complete_order(db, order.id, provider_ref=payment_method)
        return order, balance, None

    return order, None, None


async def complete_order(
        db: AsyncSession,
        order_id: str,
        provider_ref: Optional[str] = None,
) -> Tuple[ChargeOrder, int, int]:
    """Mark a pending order paid and grant its credits.

    Returns (order, credits_added, balance). Completing an already paid
    order adds nothing.
    """
    now = datetime.utcnow()
    values: Dict[str, Any] = {"status": STATUS_PAID, "paid_at": now, "updated_at": now}
    if provider_ref:
        values["provider_ref"] = provider_ref

    result = await db.execute(
        update(ChargeOrder)
        .where(ChargeOrder.id == order_id, ChargeOrder.status == STATUS_PENDING)
        .values(**values)
        .execution_options(synchronize_session=False)
    )

    if result.rowcount == 0:
        await db.rollback()
        order = await _load(db, order_id)
        if order.status == STATUS_PAID:
            logger.info("Order %s already paid, nothing to grant", order_id)
            return order, 0, await credit_service.get_balance(db, order.user_id)
        raise PaymentError(f"Order is {order.status}")

    order = await _load(db, order_id)
    try:
        balance = await credit_service.charge(
            db, order.user_id, order.credits, f"Recharge {order.amount}", order_id=order.id, commit=False
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(order)
    logger.info("Order %s paid: +%s credits for user %s", order_id, order.credits, order.user_id)
    return order, order.credits, balance


async def cancel_order(db: AsyncSession, user_id: str, order_id: str) -> ChargeOrder:
    order = await _load(db, order_id, user_id)
    if order.status != STATUS_PENDING:
        raise PaymentError(f"Order is {order.status}")
    result = await db.execute(
        update(ChargeOrder)
        .where(ChargeOrder.id == order_id, ChargeOrder.status == STATUS_PENDING)
        .values(status=STATUS_CANCELLED, updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        raise PaymentError("Order is no longer pending")
    await db.commit()
    await db.refresh(order)
    return order


def construct_stripe_event(payload: bytes, sig_header: Optional[str]) -> Any:
    if not STRIPE_WEBHOOK_SECRET:
        raise PaymentError("Stripe webhook not configured")
    try:
        return stripe.Webhook.construct_event(payload=payload, sig_header=sig_header, secret=STRIPE_WEBHOOK_SECRET)
    except Exception as exc:
        stripe_logger.warning("Rejected webhook: %s", exc)
        raise PaymentError(f"Invalid webhook: {exc}") from exc


async def handle_stripe_event(db: AsyncSession, event: Any) -> Dict[str, Any]:
    event_type = event["type"]
    session = event["data"]["object"]
    metadata = session.get("metadata") or {}
    order_id = metadata.get("order_id")
    stripe_logger.info("Webhook %s for order %s", event_type, order_id)

    if not order_id:
        return {"received": True}

    if event_type == "checkout.session.completed":
        order, credits_added, _ = await complete_order(db, order_id, provider_ref=session.get("id"))
        return {"received": True, "order_id": order.id, "credits_added": credits_added}

    if event_type in {"checkout.session.expired", "checkout.session.async_payment_failed"}:
        await db.execute(
            update(ChargeOrder)
            .where(ChargeOrder.id == order_id, ChargeOrder.status == STATUS_PENDING)
            .values(status=STATUS_FAILED, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        await db.commit()

    return {"received": True}
