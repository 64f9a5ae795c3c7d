"""
Authentication-related Pydantic schemas.
"""
from typing import Optional
from pydantic import BaseModel, EmailStr, Field, field_validator

from schemas.user import UserProfile


class LoginRequest(BaseModel):
    """Login request schema."""
    email: EmailStr = Field(..., description="Account email")
    password: str = Field(..., min_length=1, description="Password")

    @field_validator("email", mode="after")
    @classmethod
    def lowercase_email(cls, value):
        return value.lower()


class AuthResponse(BaseModel):
    """Returned by registration and login."""
    id: int
    username: str
    email: str
    token: str


class ProfileUpdateResponse(UserProfile):
    """Updated profile with a freshly issued token."""
    token: str


class MessageResponse(BaseModel):
    message: str
    detail: Optional[dict] = None
