# FILE: bananary/services/credit_service.py
"""Credit ledger.

`users.credits` is the balance of record. Every mutation is a single
conditional UPDATE on that column plus one appended `credit_transactions`
row carrying the post-mutation balance, both inside the caller's DB
transaction. Replaying a user's ledger from zero therefore reproduces
`users.credits` (see `ledger_balance`).
"""

import logging
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bananary.models.credit_transaction import CreditTransaction
from bananary.models.user import User

logger = logging.getLogger("bananary.credits")

TX_CHARGE = "charge"
TX_CONSUME = "consume"
TX_REFUND = "refund"


class LedgerError(Exception):
    pass


class UserNotFoundError(LedgerError):
    pass


class InsufficientCreditsError(LedgerError):
    def __init__(self, balance: int, required: int):
        super().__init__(f"Insufficient credits: balance {balance}, required {required}")
        self.balance = balance
        self.required = required


async def get_balance(db: AsyncSession, user_id: str) -> int:
    credits = (await db.execute(select(User.credits).where(User.id == user_id))).scalar_one_or_none()
    if credits is None:
        raise UserNotFoundError(f"User {user_id} not found")
    return int(credits)


async def _find_by_ref(db: AsyncSession, user_id: str, tx_type: str, ref_id: str) -> Optional[CreditTransaction]:
    return (
        await db.execute(
            select(CreditTransaction).where(
                CreditTransaction.user_id == user_id,
                CreditTransaction.type == tx_type,
                CreditTransaction.ref_id == ref_id,
            )
        )
    ).scalars().first()


def _append(
        db: AsyncSession,
        user_id: str,
        tx_type: str,
        amount: int,
        balance: int,
        description: str,
        order_id: Optional[str] = None,
        ref_id: Optional[str] = None,
) -> CreditTransaction:
    tx = CreditTransaction(
        user_id=user_id,
        type=tx_type,
        amount=amount,
        balance=balance,
        description=description,
        order_id=order_id,
        ref_id=ref_id,
        created_at=datetime.utcnow(),
    )
    db.add(tx)
    return tx


async def _flush_once(db: AsyncSession, user_id: str, tx_type: str, ref_id: str) -> bool:
    """Flush the pending ledger row. False when a concurrent request already
    applied `ref_id`; the session is rolled back in that case."""
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        logger.info("%s ref %s applied concurrently for user %s", tx_type, ref_id, user_id)
        return False
    return True


async def _increment(db: AsyncSession, user_id: str, amount: int) -> int:
    result = await db.execute(
        update(User)
        .where(User.id == user_id)
        .values(credits=User.credits + amount, updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise UserNotFoundError(f"User {user_id} not found")
    return await get_balance(db, user_id)


async def consume(
        db: AsyncSession,
        user_id: str,
        amount: int,
        description: str,
        ref_id: Optional[str] = None,
        commit: bool = True,
) -> int:
    """Deduct `amount` credits and return the new balance.

    Raises InsufficientCreditsError without touching the balance when the
    user cannot cover the amount. A repeated `ref_id` is a no-op that returns
    the current balance; the unique ledger key settles concurrent repeats.
    """
    if amount <= 0:
        raise LedgerError("Amount must be positive")

    if ref_id and await _find_by_ref(db, user_id, TX_CONSUME, ref_id):
        logger.info("consume ref %s already applied for user %s", ref_id, user_id)
        return await get_balance(db, user_id)

    result = await db.execute(
        update(User)
        .where(User.id == user_id, User.credits >= amount)
        .values(credits=User.credits - amount, updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        balance = await get_balance(db, user_id)
        raise InsufficientCreditsError(balance, amount)

    balance = await get_balance(db, user_id)
    _append(db, user_id, TX_CONSUME, amount, balance, description, ref_id=ref_id)
    if ref_id and not await _flush_once(db, user_id, TX_CONSUME, ref_id):
        return await get_balance(db, user_id)
    if commit:
        await db.commit()
    logger.info("user %s consumed %s credits (%s), balance %s", user_id, amount, description, balance)
    return balance


async def charge(
        db: AsyncSession,
        user_id: str,
        credits: int,
        description: str,
        order_id: Optional[str] = None,
        commit: bool = True,
) -> int:
    """Add `credits` to the balance and return the new balance."""
    if credits <= 0:
        raise LedgerError("Credits must be positive")

    balance = await _increment(db, user_id, credits)
    _append(db, user_id, TX_CHARGE, credits, balance, description, order_id=order_id)
    if commit:
        await db.commit()
    logger.info("user %s charged %s credits (%s), balance %s", user_id, credits, description, balance)
    return balance


async def refund(
        db: AsyncSession,
        user_id: str,
        amount: int,
        description: str,
        ref_id: Optional[str] = None,
        commit: bool = True,
) -> int:
    """Return `amount` credits, e.g. after a failed generation. Idempotent on ref_id."""
    if amount <= 0:
        raise LedgerError("Amount must be positive")

    if ref_id and await _find_by_ref(db, user_id, TX_REFUND, ref_id):
        logger.info("refund ref %s already applied for user %s", ref_id, user_id)
        return await get_balance(db, user_id)

    balance = await _increment(db, user_id, amount)
    _append(db, user_id, TX_REFUND, amount, balance, description, ref_id=ref_id)
    if ref_id and not await _flush_once(db, user_id, TX_REFUND, ref_id):
        return await get_balance(db, user_id)
    if commit:
        await db.commit()
    logger.info("user %s refunded %s credits (%s), balance %s", user_id, amount, description, balance)
    return balance


async def list_transactions(
        db: AsyncSession,
        user_id: str,
        page: int = 1,
        limit: int = 20,
) -> Tuple[List[CreditTransaction], int]:
    """Newest first (ledger order)."""
    total = (
        await db.execute(select(func.count(CreditTransaction.id)).where(CreditTransaction.user_id == user_id))
    ).scalar_one()

    rows = (
        await db.execute(
            select(CreditTransaction)
            .where(CreditTransaction.user_id == user_id)
            .order_by(CreditTransaction.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
    ).scalars().all()
    return list(rows), int(total or 0)


async def ledger_balance(db: AsyncSession, user_id: str) -> int:
    """Balance obtained by replaying the ledger; equals users.credits."""
    signed = case((CreditTransaction.type == TX_CONSUME, -CreditTransaction.amount), else_=CreditTransaction.amount)
    total = (
        await db.execute(
            select(func.coalesce(func.sum(signed), 0)).where(CreditTransaction.user_id == user_id)
        )
    ).scalar_one()
    return int(total or 0)
