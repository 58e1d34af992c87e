# FILE: bananary/services/verification_service.py
import logging
import secrets
import uuid
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bananary.models.verification_code import VerificationCode

logger = logging.getLogger("bananary.verification")

CODE_TTL = timedelta(minutes=5)


def generate_code() -> str:
    return f"{secrets.randbelow(900000) + 100000}"


async def issue_code(db: AsyncSession, phone: str, code_type: str) -> str:
    """Store a fresh code for `phone`. SMS delivery is not wired up; the code is logged."""
    code = generate_code()
    db.add(VerificationCode(
        id=str(uuid.uuid4()),
        phone=phone,
        code=code,
        type=code_type,
        used=False,
        expires_at=datetime.utcnow() + CODE_TTL,
        created_at=datetime.utcnow(),
    ))
    await db.commit()
    logger.info("Verification code for %s (%s): %s", phone, code_type, code)
    return code


async def consume_code(db: AsyncSession, phone: str, code: str, code_type: str) -> bool:
    """Mark a matching unexpired code as used. Caller commits."""
    if not code:
        return False
    row = (
        await db.execute(
            select(VerificationCode)
            .where(
                VerificationCode.phone == phone,
                VerificationCode.code == code.strip(),
                VerificationCode.type == code_type,
                VerificationCode.used.is_(False),
                VerificationCode.expires_at > datetime.utcnow(),
            )
            .order_by(VerificationCode.created_at.desc())
        )
    ).scalars().first()
    if not row:
        return False
    row.used = True
    return True
