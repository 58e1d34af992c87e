# FILE: bananary/models/verification_code.py
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Boolean, DateTime

from bananary.core.database import Base


class VerificationCode(Base):
    """One-time SMS codes for phone login, registration and password reset."""
    __tablename__ = "verification_codes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    phone: Mapped[str] = mapped_column(String(20), index=True)
    code: Mapped[str] = mapped_column(String(6))
    type: Mapped[str] = mapped_column(String(20))  # login, register, reset
    used: Mapped[bool] = mapped_column(Boolean, default=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
