# Schemas package for Pydantic models
from .user import UserCreate, UserUpdate, UserBrief, UserProfile, UserSettings
from .auth import LoginRequest, AuthResponse, ProfileUpdateResponse, MessageResponse
from .study_guide import (
    Flashcard, Keyword,
    StudyGuideCreate, StudyGuideUpdate, StudyGuideRead, StudyGuideDetail,
    StudyGuideListResponse, UpvoteResponse, VersionRead,
    VersionListItem, VersionListResponse, VersionDiffResponse,
)

__all__ = [
    "UserCreate", "UserUpdate", "UserBrief", "UserProfile", "UserSettings",
    "LoginRequest", "AuthResponse", "ProfileUpdateResponse", "MessageResponse",
    "Flashcard", "Keyword",
    "StudyGuideCreate", "StudyGuideUpdate", "StudyGuideRead", "StudyGuideDetail",
    "StudyGuideListResponse", "UpvoteResponse", "VersionRead",
    "VersionListItem", "VersionListResponse", "VersionDiffResponse",
]
