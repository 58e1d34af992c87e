# FILE: bananary/api/auth.py
import logging
import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bananary.api.deps import get_current_user, user_to_dict
from bananary.core.config import TEST_MODE
from bananary.core.database import get_db
from bananary.models.user import User
from bananary.schemas.auth import (
    PasswordResetRequest,
    TokenResponse,
    UserCreate,
    UserLogin,
    UserResponse,
    VerificationCodeRequest,
    VerificationCodeResponse,
)
from bananary.schemas.common import ApiResponse
from bananary.schemas.user import ProfileResponse
from bananary.services import config_service, credit_service, verification_service
from bananary.services.auth_service import create_token, hash_password, verify_password

logger = logging.getLogger("bananary.auth")

router = APIRouter(prefix="/api/auth", tags=["auth"])

INVALID_CREDENTIALS = "Invalid credentials"


def _token_response(user: User, message: str) -> TokenResponse:
    return TokenResponse(
        message=message,
        token=create_token(user.id, user.username),
        user=UserResponse(**user_to_dict(user)),
    )


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(data: UserCreate, db: AsyncSession = Depends(get_db)):
    existing = (
        await db.execute(select(User).where(or_(User.username == data.username, User.phone == data.phone)))
    ).scalars().first()
    if existing:
        if existing.username == data.username:
            raise HTTPException(status_code=409, detail="Username already exists")
        raise HTTPException(status_code=409, detail="Phone number already registered")

    bonus = await config_service.get_int(db, "credits.signup_bonus")
    user = User(
        id=str(uuid.uuid4()),
        username=data.username,
        phone=data.phone,
        password_hash=hash_password(data.password),
        credits=0,
        status=1,
        created_at=datetime.utcnow(),
        updated_at=datetime.utcnow(),
    )
    db.add(user)
    try:
        await db.flush()
        if bonus > 0:
            await credit_service.charge(db, user.id, bonus, "Registration bonus", commit=False)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=409, detail="Username or phone number already registered")

    await db.refresh(user)
    logger.info("Registered user %s (%s)", user.username, user.id)
    return _token_response(user, "Registration successful")


@router.post("/login", response_model=TokenResponse)
async def login(data: UserLogin, db: AsyncSession = Depends(get_db)):
    identifier = (data.identifier or "").strip()

    if data.login_type == "phone" and data.verification_code:
        user = (await db.execute(select(User).where(User.phone == identifier))).scalar_one_or_none()
        if not user or not await verification_service.consume_code(db, identifier, data.verification_code, "login"):
            raise HTTPException(status_code=401, detail=INVALID_CREDENTIALS)
        await db.commit()
    else:
        user = (
            await db.execute(select(User).where(or_(User.username == identifier, User.phone == identifier)))
        ).scalars().first()
        if not user or not data.password or not verify_password(data.password, user.password_hash):
            raise HTTPException(status_code=401, detail=INVALID_CREDENTIALS)

    if user.status != 1:
        raise HTTPException(status_code=403, detail="Account disabled")

    return _token_response(user, "Login successful")


@router.post("/send-verification-code", response_model=VerificationCodeResponse)
async def send_verification_code(data: VerificationCodeRequest, db: AsyncSession = Depends(get_db)):
    if data.type == "register":
        taken = (await db.execute(select(User.id).where(User.phone == data.phone))).scalar_one_or_none()
        if taken:
            raise HTTPException(status_code=409, detail="Phone number already registered")

    code = await verification_service.issue_code(db, data.phone, data.type)
    return VerificationCodeResponse(
        message="Verification code sent",
        code=code if TEST_MODE else None,
    )


@router.post("/reset-password", response_model=ApiResponse)
async def reset_password(data: PasswordResetRequest, db: AsyncSession = Depends(get_db)):
    user = (await db.execute(select(User).where(User.phone == data.phone.strip()))).scalar_one_or_none()
    if not user or not await verification_service.consume_code(db, user.phone, data.verification_code, "reset"):
        raise HTTPException(status_code=400, detail="Invalid or expired verification code")

    user.password_hash = hash_password(data.new_password)
    user.updated_at = datetime.utcnow()
    await db.commit()
    logger.info("Password reset for user %s", user.id)
    return ApiResponse(message="Password reset successful")


@router.get("/me", response_model=ProfileResponse)
async def auth_me(user=Depends(get_current_user)):
    return ProfileResponse(user=UserResponse(**user))
