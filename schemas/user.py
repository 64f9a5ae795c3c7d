"""
User-related Pydantic schemas for request/response validation.
"""
from typing import Optional
from pydantic import BaseModel, EmailStr, Field, field_validator


class PrivacySettings(BaseModel):
    profile_visibility: str = "public"
    show_activity: bool = True
    show_study_guides: bool = True


class AccessibilitySettings(BaseModel):
    font_size: str = "medium"
    high_contrast: bool = False
    reduced_motion: bool = False


class UserSettings(BaseModel):
    """Per-user notification, privacy and accessibility preferences."""
    email_notifications: bool = True
    study_reminders: bool = True
    privacy_settings: PrivacySettings = Field(default_factory=PrivacySettings)
    accessibility: AccessibilitySettings = Field(default_factory=AccessibilitySettings)
    language: str = Field("en", min_length=2, max_length=10)


class UserCreate(BaseModel):
    """Schema for registering a new user."""
    username: str = Field(..., min_length=3, max_length=30, description="Unique username")
    email: EmailStr = Field(..., description="User's email address")
    password: str = Field(..., min_length=6, description="User's password (min 6 characters)")

    @field_validator("username", mode="before")
    @classmethod
    def strip_username(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("email", mode="after")
    @classmethod
    def lowercase_email(cls, value):
        return value.lower()


class UserUpdate(BaseModel):
    """Schema for updating the caller's profile. Empty values leave fields unchanged."""
    username: Optional[str] = Field(None, max_length=30)
    email: Optional[EmailStr] = None
    profile_picture: Optional[str] = Field(None, max_length=255)
    bio: Optional[str] = Field(None, max_length=500)
    password: Optional[str] = None
    settings: Optional[UserSettings] = None

    @field_validator("username", mode="after")
    @classmethod
    def check_username(cls, value):
        if value is None:
            return value
        value = value.strip()
        if value and len(value) < 3:
            raise ValueError("Username must be at least 3 characters long")
        return value

    @field_validator("email", mode="before")
    @classmethod
    def blank_email_is_unset(cls, value):
        return None if value == "" else value

    @field_validator("email", mode="after")
    @classmethod
    def lowercase_email(cls, value):
        return value.lower() if value else value


class UserBrief(BaseModel):
    """Display projection of a user referenced from a study guide."""
    id: int
    username: str
    profile_picture: Optional[str] = None

    class Config:
        from_attributes = True


class UserProfile(BaseModel):
    """The caller's own profile (no password material)."""
    id: int
    username: str
    email: str
    profile_picture: Optional[str] = None
    bio: Optional[str] = None
    settings: UserSettings

    class Config:
        from_attributes = True
