# /bananary/models/charge_order.py
from datetime import datetime
from decimal import Decimal
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, Numeric, ForeignKey, DateTime

from bananary.core.database import Base


class ChargeOrder(Base):
    """Recharge orders tracked through a payment provider (real or mocked)."""
    __tablename__ = "charge_orders"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True)

    # Amount in currency units (yuan)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2))

    # Credits granted once the order is paid
    credits: Mapped[int] = mapped_column(Integer)

    # Payment method: mock, alipay, wechat, stripe
    payment_method: Mapped[str] = mapped_column(String(20))

    # Status: pending, paid, failed, cancelled
    status: Mapped[str] = mapped_column(String(20), default="pending", index=True)

    # Provider reference / checkout session id
    provider_ref: Mapped[Optional[str]] = mapped_column(String(190), nullable=True)

    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
