# /bananary/models/credit_transaction.py
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, ForeignKey, DateTime, UniqueConstraint

from bananary.core.database import Base


class CreditTransaction(Base):
    """Credit ledger - append-only record of every balance change."""
    __tablename__ = "credit_transactions"
    __table_args__ = (
        # A ref_id applies once per user and type, even for concurrent retries
        UniqueConstraint("user_id", "type", "ref_id", name="uq_credit_tx_ref"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True)

    # Type: charge, consume, refund
    type: Mapped[str] = mapped_column(String(20), index=True)

    # Always positive; the type gives the direction
    amount: Mapped[int] = mapped_column(Integer)

    # users.credits right after this transaction
    balance: Mapped[int] = mapped_column(Integer)

    description: Mapped[str] = mapped_column(String(255))

    # Recharge order that produced this entry (charge only)
    order_id: Mapped[Optional[str]] = mapped_column(
        String(50), ForeignKey("charge_orders.id", ondelete="SET NULL"), nullable=True, index=True
    )

    # Caller supplied key that makes consume/refund idempotent
    ref_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
