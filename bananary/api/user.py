# FILE: bananary/api/user.py
import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bananary.api.deps import get_current_user, user_to_dict
from bananary.core.database import get_db
from bananary.models.user import User
from bananary.schemas.auth import UserResponse
from bananary.schemas.common import ApiResponse
from bananary.schemas.user import PasswordChangeRequest, ProfileResponse, ProfileUpdateRequest
from bananary.services.auth_service import hash_password, verify_password

logger = logging.getLogger("bananary.user")

router = APIRouter(prefix="/api/user", tags=["user"])


async def _load_user(db: AsyncSession, user_id: str) -> User:
    user = (await db.execute(select(User).where(User.id == user_id))).scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get("/profile", response_model=ProfileResponse)
async def get_profile(user=Depends(get_current_user)):
    return ProfileResponse(user=UserResponse(**user))


@router.put("/profile", response_model=ProfileResponse)
async def update_profile(
        data: ProfileUpdateRequest,
        current=Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    user = await _load_user(db, current["id"])

    if data.username is not None and data.username != user.username:
        taken = (await db.execute(select(User.id).where(User.username == data.username))).scalar_one_or_none()
        if taken:
            raise HTTPException(status_code=409, detail="Username already exists")
        user.username = data.username

    if data.phone is not None and data.phone != user.phone:
        taken = (await db.execute(select(User.id).where(User.phone == data.phone))).scalar_one_or_none()
        if taken:
            raise HTTPException(status_code=409, detail="Phone number already registered")
        user.phone = data.phone

    if data.email is not None:
        user.email = data.email.strip() or None
    if data.avatar is not None:
        user.avatar_url = data.avatar.strip() or None

    if data.password is not None:
        if not data.current_password or not verify_password(data.current_password, user.password_hash):
            raise HTTPException(status_code=400, detail="Current password is incorrect")
        user.password_hash = hash_password(data.password)

    user.updated_at = datetime.utcnow()
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=409, detail="Username or phone number already registered")

    return ProfileResponse(message="Profile updated", user=UserResponse(**user_to_dict(user)))


@router.put("/password", response_model=ApiResponse)
async def change_password(
        data: PasswordChangeRequest,
        current=Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    user = await _load_user(db, current["id"])
    if not verify_password(data.current_password, user.password_hash):
        raise HTTPException(status_code=400, detail="Current password is incorrect")

    user.password_hash = hash_password(data.new_password)
    user.updated_at = datetime.utcnow()
    await db.commit()
    logger.info("Password changed for user %s", user.id)
    return ApiResponse(message="Password updated")
