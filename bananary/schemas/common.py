from datetime import datetime, timezone
from typing import Optional
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """camelCase on the wire, snake_case in Python; both accepted on input."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class ApiResponse(ApiModel):
    success: bool = True
    message: Optional[str] = None


class Pagination(ApiModel):
    page: int
    limit: int
    total: int
    total_pages: int


def iso(dt: Optional[datetime]) -> Optional[str]:
    """Naive UTC datetime from the DB -> ISO 8601 with offset."""
    if dt is None:
        return None
    return dt.replace(tzinfo=timezone.utc).isoformat()
