# FILE: bananary/api/history.py
import math

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from bananary.api.deps import get_current_user
from bananary.api.generate import proxy_video
from bananary.core.database import get_db
from bananary.schemas.common import ApiResponse, Pagination
from bananary.schemas.history import (
    HistoryDetailResponse,
    HistoryItemResponse,
    HistoryListResponse,
    HistorySaveRequest,
    HistorySaveResponse,
)
from bananary.services import history_service

router = APIRouter(prefix="/api/history", tags=["history"])


@router.post("", response_model=HistorySaveResponse, status_code=201)
async def save_history(data: HistorySaveRequest, user=Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    item = await history_service.save_item(db, user["id"], **data.model_dump())
    return HistorySaveResponse(message="History saved", history_id=item.id)


@router.get("", response_model=HistoryListResponse)
async def list_history(
        page: int = Query(1, ge=1),
        limit: int = Query(20, ge=1, le=100),
        user=Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    items, total = await history_service.list_items(db, user["id"], page, limit)
    return HistoryListResponse(
        history=[HistoryItemResponse(**history_service.to_dict(i)) for i in items],
        pagination=Pagination(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit)),
    )


@router.get("/{item_id}", response_model=HistoryDetailResponse)
async def get_history_item(item_id: str, user=Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    item = await history_service.get_item(db, user["id"], item_id)
    if not item:
        raise HTTPException(status_code=404, detail="History item not found")
    return HistoryDetailResponse(item=HistoryItemResponse(**history_service.to_dict(item)))


@router.get("/{item_id}/video")
async def get_history_video(item_id: str, user=Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    item = await history_service.get_item(db, user["id"], item_id)
    if not item or not item.result_video_url:
        raise HTTPException(status_code=404, detail="History video not found")
    return await proxy_video(item.result_video_url)

@router.delete("/{item_id}", response_model=ApiResponse)
async def delete_history_item(item_id: str, user=Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    if not await history_service.delete_item(db, user["id"], item_id):
        raise HTTPException(status_code=404, detail="History item not found")
    return ApiResponse(message="History item deleted")
