# FILE: bananary/schemas/auth.py
import re
from typing import Annotated, Optional
from pydantic import Field, StringConstraints, field_validator, model_validator

from bananary.schemas.common import ApiModel, ApiResponse

PHONE_RE = re.compile(r"^1[3-9]\d{9}$")
CODE_TYPES = {"login", "register", "reset"}

# Length is checked after surrounding whitespace is stripped
Username = Annotated[str, StringConstraints(strip_whitespace=True, min_length=3, max_length=30)]


def _check_phone(v: str) -> str:
    v = (v or "").strip()
    if not PHONE_RE.match(v):
        raise ValueError("Invalid phone number")
    return v


class UserResponse(ApiModel):
    id: str
    username: str
    phone: str
    email: Optional[str] = None
    avatar: Optional[str] = None
    credits: int
    created_at: str
    updated_at: str


class UserCreate(ApiModel):
    username: Username
    phone: str
    password: str = Field(min_length=6)
    confirm_password: Optional[str] = None

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        return _check_phone(v)

    @model_validator(mode="after")
    def passwords_match(self):
        if self.confirm_password is not None and self.confirm_password != self.password:
            raise ValueError("Passwords do not match")
        return self


class UserLogin(ApiModel):
    login_type: str = "username"  # username | phone
    identifier: str
    password: Optional[str] = None
    verification_code: Optional[str] = None


class TokenResponse(ApiResponse):
    token: str
    user: UserResponse


class VerificationCodeRequest(ApiModel):
    phone: str
    type: str

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        return _check_phone(v)

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: str) -> str:
        v = (v or "").lower().strip()
        if v not in CODE_TYPES:
            raise ValueError(f"type must be one of {sorted(CODE_TYPES)}")
        return v


class VerificationCodeResponse(ApiResponse):
    # Only populated in TEST_MODE
    code: Optional[str] = None


class PasswordResetRequest(ApiModel):
    phone: str
    verification_code: str
    new_password: str = Field(min_length=6)
