from typing import Optional
from pydantic import Field, field_validator

from bananary.schemas.auth import UserResponse, Username, _check_phone
from bananary.schemas.common import ApiModel, ApiResponse


class ProfileResponse(ApiResponse):
    user: UserResponse


class ProfileUpdateRequest(ApiModel):
    username: Optional[Username] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    avatar: Optional[str] = None
    # Changing the password through the profile needs both fields
    password: Optional[str] = Field(default=None, min_length=6)
    current_password: Optional[str] = None

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return _check_phone(v)


class PasswordChangeRequest(ApiModel):
    current_password: str
    new_password: str = Field(min_length=6)
