from typing import List, Optional
from pydantic import field_validator

from bananary.schemas.common import ApiModel, ApiResponse, Pagination


class HistorySaveRequest(ApiModel):
    type: str
    original_image_url: Optional[str] = None
    result_image_url: Optional[str] = None
    result_video_url: Optional[str] = None
    secondary_image_url: Optional[str] = None
    transformation_key: str
    prompt: Optional[str] = None

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: str) -> str:
        v = (v or "").lower().strip()
        if v not in {"image", "video"}:
            raise ValueError("type must be 'image' or 'video'")
        return v

    @field_validator("transformation_key")
    @classmethod
    def validate_key(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("transformationKey is required")
        return v.strip()


class HistoryItemResponse(ApiModel):
    id: str
    type: str
    original_image_url: Optional[str] = None
    result_image_url: Optional[str] = None
    result_video_url: Optional[str] = None
    secondary_image_url: Optional[str] = None
    transformation_key: str
    prompt: Optional[str] = None
    created_at: str


class HistorySaveResponse(ApiResponse):
    history_id: str


class HistoryListResponse(ApiResponse):
    history: List[HistoryItemResponse]
    pagination: Pagination


class HistoryDetailResponse(ApiResponse):
    item: HistoryItemResponse
