# =========================================================
# FILE: /bananary/schemas/generate.py
# =========================================================

from typing import Any, Dict, List, Optional
from pydantic import Field, field_validator, model_validator

from bananary.schemas.common import ApiModel, ApiResponse

IMAGE_ASPECT_RATIOS = {"1:1", "3:4", "4:3", "9:16", "16:9"}
VIDEO_ASPECT_RATIOS = {"16:9", "9:16"}
IMAGE_SIZES = {"SMALL", "MEDIUM", "LARGE"}


class InlineImage(ApiModel):
    """Base64 image payload. A full data URL is accepted in `data` as well."""
    data: str
    mime_type: str = "image/png"

    @model_validator(mode="before")
    @classmethod
    def split_data_url(cls, values: Any) -> Any:
        """data:<mime>;base64,<data> -> data + mimeType, unless mimeType is given explicitly."""
        if not isinstance(values, dict):
            return values
        data = values.get("data")
        if isinstance(data, str) and data.strip().startswith("data:") and "," in data:
            header, _, payload = data.strip().partition(",")
            values = {**values, "data": payload}
            mime = header[len("data:"):].split(";", 1)[0]
            if mime and not (values.get("mimeType") or values.get("mime_type")):
                values["mimeType"] = mime
        return values

    @field_validator("data")
    @classmethod
    def validate_data(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("Image data cannot be empty")
        return v

    def as_data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"


class ImageGenerateRequest(ApiModel):
    transformation_key: str
    prompt: Optional[str] = None
    image: Optional[InlineImage] = None
    mask: Optional[InlineImage] = None
    secondary_image: Optional[InlineImage] = None
    enhanced_mode: bool = False
    aspect_ratio: Optional[str] = None
    image_size: Optional[str] = None
    google_search: Optional[bool] = None
    save_history: bool = True

    @field_validator("aspect_ratio")
    @classmethod
    def validate_aspect_ratio(cls, v: Optional[str]):
        if v is not None and v not in IMAGE_ASPECT_RATIOS:
            raise ValueError(f"aspectRatio must be one of {sorted(IMAGE_ASPECT_RATIOS)}")
        return v

    @field_validator("image_size")
    @classmethod
    def validate_image_size(cls, v: Optional[str]):
        if v is None:
            return v
        v = v.upper().strip()
        if v not in IMAGE_SIZES:
            raise ValueError(f"imageSize must be one of {sorted(IMAGE_SIZES)}")
        return v


class ImageGenerateResponse(ApiResponse):
    image_url: str
    text: Optional[str] = None
    secondary_image_url: Optional[str] = None
    credits_used: int
    balance: int
    history_id: Optional[str] = None


class VideoGenerateRequest(ApiModel):
    prompt: str
    image: Optional[InlineImage] = None
    aspect_ratio: str = "16:9"
    save_history: bool = True

    @field_validator("prompt")
    @classmethod
    def validate_prompt(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Prompt cannot be empty")
        return v.strip()

    @field_validator("aspect_ratio")
    @classmethod
    def validate_aspect_ratio(cls, v: str) -> str:
        if v not in VIDEO_ASPECT_RATIOS:
            raise ValueError(f"aspectRatio must be one of {sorted(VIDEO_ASPECT_RATIOS)}")
        return v


class VideoJobResponse(ApiResponse):
    job_id: str
    credits_used: int
    balance: int


class JobStatusResponse(ApiResponse):
    job_id: str
    status: str  # queued | running | done | error
    step: str
    progress_message: Optional[str] = None
    video_url: Optional[str] = None
    history_id: Optional[str] = None
    error: Optional[str] = None
    started_at: float
    updated_at: float


class TransformationItem(ApiModel):
    key: str
    title_key: str
    emoji: str
    description_key: Optional[str] = None
    prompt: Optional[str] = None
    step_two_prompt: Optional[str] = None
    is_multi_image: bool = False
    is_primary_optional: bool = False
    is_secondary_optional: bool = False
    is_two_step: bool = False
    is_video: bool = False
    items: List["TransformationItem"] = Field(default_factory=list)


class TransformationsResponse(ApiResponse):
    transformations: List[TransformationItem]
    costs: Dict[str, Any]
