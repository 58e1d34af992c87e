# FILE: bananary/api/deps.py

import jwt
from datetime import timezone

from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bananary.core.database import get_db
from bananary.models.user import User
from bananary.services.auth_service import decode_token

security = HTTPBearer(auto_error=False)


def user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "phone": user.phone,
        "email": user.email,
        "avatar": user.avatar_url,
        "credits": user.credits,
        "created_at": user.created_at.replace(tzinfo=timezone.utc).isoformat(),
        "updated_at": (user.updated_at or user.created_at).replace(tzinfo=timezone.utc).isoformat(),
    }


async def get_current_user(
        credentials: HTTPAuthorizationCredentials = Depends(security),
        db: AsyncSession = Depends(get_db),
):
    if not credentials or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        payload = decode_token(credentials.credentials.strip())
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")

    user_id = payload.get("user_id") or payload.get("id")
    if not user_id or not isinstance(user_id, str):
        raise HTTPException(status_code=401, detail="Invalid token payload")

    user = (await db.execute(select(User).where(User.id == user_id))).scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    if user.status != 1:
        raise HTTPException(status_code=403, detail="Account disabled")

    return user_to_dict(user)
