"""
User data models for authentication and user management.
"""

from pydantic import AliasChoices, BaseModel, EmailStr, Field, field_validator
from typing import Optional
from datetime import datetime

NAME_MAX_LENGTH = 50
PASSWORD_MIN_LENGTH = 6
PASSWORD_MAX_BYTES = 72


class UserCreate(BaseModel):
    """Schema for user registration. Accepts ``username`` as an alias of ``name``."""
    name: str = Field(
        ...,
        validation_alias=AliasChoices("name", "username"),
        min_length=1,
        max_length=NAME_MAX_LENGTH
    )
    email: EmailStr
    password: str = Field(..., min_length=PASSWORD_MIN_LENGTH)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value):
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("password")
    @classmethod
    def check_password_bytes(cls, value: str) -> str:
        if len(value.encode("utf-8")) > PASSWORD_MAX_BYTES:
            raise ValueError(f"Password must be at most {PASSWORD_MAX_BYTES} bytes")
        return value


class UserLogin(BaseModel):
    """Schema for user login."""
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value):
        return value.strip().lower() if isinstance(value, str) else value


class User(BaseModel):
    """A stored user account."""
    id: str
    name: str
    email: str
    hashed_password: str
    created_at: Optional[datetime] = None


class UserPublic(BaseModel):
    """Schema for user response (without password)."""
    id: str
    name: str
    email: str


class AuthResponse(BaseModel):
    success: bool = True
    message: str
    user: UserPublic
    token: str


class CurrentUserResponse(BaseModel):
    success: bool = True
    user: UserPublic


class CurrentUser(BaseModel):
    """Identity resolved for the duration of one request."""
    id: str
    email: str
    name: str


class TokenData(BaseModel):
    """Schema for token payload data."""
    user_id: str
    email: str
    username: Optional[str] = None
    expires_at: Optional[datetime] = None
