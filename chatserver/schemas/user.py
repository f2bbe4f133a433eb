"""
schemas/user.py
---------------
Pydantic models for user registration, profile maintenance and responses.

Security note:
  - password_hash and salt are NEVER included in any response schema.
"""

from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from chatserver.models.user import UserRole

USERNAME_PATTERN = r"^[A-Za-z0-9_.\-]+$"


def _reject_nul(v: str) -> str:
    # crypt(3) secrets cannot contain NUL
    if "\x00" in v:
        raise ValueError("password must not contain NUL characters")
    return v


class UserRegister(BaseModel):
    """Admin-only registration of a new account."""
    username: str = Field(..., min_length=1, max_length=64, pattern=USERNAME_PATTERN)
    password: str = Field(..., min_length=1, max_length=128)
    email: EmailStr
    role: UserRole = UserRole.user

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        return _reject_nul(v)


class UserUpdate(BaseModel):
    """Partial profile update; omitted fields keep their current value."""
    username: Optional[str] = Field(
        default=None, min_length=1, max_length=64, pattern=USERNAME_PATTERN
    )
    email: Optional[EmailStr] = None
    nickname: Optional[str] = Field(default=None, min_length=1, max_length=64)
    role: Optional[UserRole] = None


class PasswordChange(BaseModel):
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        return _reject_nul(v)


class UserRead(BaseModel):
    id: int
    username: str
    nickname: str
    email: str
    role: str

    model_config = {"from_attributes": True}


class ProfileRead(BaseModel):
    username: str
    email: str
    nickname: str
