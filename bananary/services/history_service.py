# FILE: bananary/services/history_service.py
import uuid
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from bananary.models.history_item import HistoryItem
from bananary.schemas.common import iso


def to_dict(item: HistoryItem) -> dict:
    return {
        "id": item.id,
        "type": item.type,
        "original_image_url": item.original_image_url,
        "result_image_url": item.result_image_url,
        "result_video_url": item.result_video_url,
        "secondary_image_url": item.secondary_image_url,
        "transformation_key": item.transformation_key,
        "prompt": item.prompt,
        "created_at": iso(item.created_at),
    }


async def save_item(
        db: AsyncSession,
        user_id: str,
        type: str,
        transformation_key: str,
        original_image_url: Optional[str] = None,
        result_image_url: Optional[str] = None,
        result_video_url: Optional[str] = None,
        secondary_image_url: Optional[str] = None,
        prompt: Optional[str] = None,
) -> HistoryItem:
    item = HistoryItem(
        id=str(uuid.uuid4()),
        user_id=user_id,
        type=type,
        original_image_url=original_image_url,
        result_image_url=result_image_url,
        result_video_url=result_video_url,
        secondary_image_url=secondary_image_url,
        transformation_key=transformation_key,
        prompt=prompt,
        created_at=datetime.utcnow(),
    )
    db.add(item)
    await db.commit()
    return item


async def list_items(db: AsyncSession, user_id: str, page: int, limit: int) -> Tuple[List[HistoryItem], int]:
    total = (
        await db.execute(select(func.count(HistoryItem.id)).where(HistoryItem.user_id == user_id))
    ).scalar_one()
    rows = (
        await db.execute(
            select(HistoryItem)
            .where(HistoryItem.user_id == user_id)
            .order_by(HistoryItem.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
    ).scalars().all()
    return list(rows), int(total or 0)


async def get_item(db: AsyncSession, user_id: str, item_id: str) -> Optional[HistoryItem]:
    return (
        await db.execute(
            select(HistoryItem).where(HistoryItem.id == item_id, HistoryItem.user_id == user_id)
        )
    ).scalar_one_or_none()


async def delete_item(db: AsyncSession, user_id: str, item_id: str) -> bool:
    result = await db.execute(
        delete(HistoryItem).where(HistoryItem.id == item_id, HistoryItem.user_id == user_id)
    )
    await db.commit()
    return result.rowcount > 0
