"""
Pydantic schemas for study guides and their embedded flashcards, keywords and versions.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator

from models.models import FlashcardTypeEnum
from schemas.user import UserBrief


class Flashcard(BaseModel):
    question: str = Field(..., min_length=1)
    answer: str = Field(..., min_length=1)
    type: FlashcardTypeEnum = FlashcardTypeEnum.freeform
    options: List[str] = Field(default_factory=list)
    correct_option_index: Optional[int] = Field(None, ge=0)


class Keyword(BaseModel):
    word: str = Field(..., min_length=1)
    importance: int = Field(..., ge=1, le=10)


def _strip(value):
    return value.strip() if isinstance(value, str) else value


class StudyGuideCreate(BaseModel):
    """Request body for creating a study guide."""
    title: str = Field(..., min_length=3, max_length=100)
    description: Optional[str] = None
    # Length is checked by the workflow so the error carries its own message
    content: Optional[str] = None
    subjects: List[str] = Field(default_factory=list)
    custom_subject: Optional[str] = Field(None, max_length=100)
    is_public: bool = True

    @field_validator("title", "description", "custom_subject", mode="before")
    @classmethod
    def strip_text(cls, value):
        return _strip(value)

    @model_validator(mode="after")
    def require_subject(self):
        if not self.custom_subject and not [s for s in self.subjects if s]:
            raise ValueError("At least one subject or a custom subject is required")
        return self


class StudyGuideUpdate(BaseModel):
    """Request body for updating a study guide. Omitted fields are left unchanged."""
    title: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    content: Optional[str] = None
    subjects: Optional[List[str]] = None
    flashcards: Optional[List[Flashcard]] = None
    is_public: Optional[bool] = None

    @field_validator("title", "description", mode="before")
    @classmethod
    def strip_text(cls, value):
        return _strip(value)

    @field_validator("title", mode="after")
    @classmethod
    def check_title(cls, value):
        if value and len(value) < 3:
            raise ValueError("Title must be at least 3 characters long")
        return value


class VersionRead(BaseModel):
    content: str
    updated_by: Optional[UserBrief] = None
    updated_at: datetime

    class Config:
        from_attributes = True


class StudyGuideRead(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    content: str
    summary: str = ""
    flashcards: List[Flashcard] = Field(default_factory=list)
    keywords: List[Keyword] = Field(default_factory=list)
    subjects: List[str] = Field(default_factory=list)
    custom_subject: Optional[str] = None
    is_public: bool
    creator: UserBrief
    contributor_ids: List[int] = Field(default_factory=list)
    upvotes: int
    upvoted_by: List[int] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class StudyGuideDetail(StudyGuideRead):
    """Single-guide view with contributors and version updaters expanded."""
    contributors: List[UserBrief] = Field(default_factory=list)
    versions: List[VersionRead] = Field(default_factory=list)


class StudyGuideListResponse(BaseModel):
    study_guides: List[StudyGuideRead]
    page: int
    pages: int
    total: int


class UpvoteResponse(BaseModel):
    upvotes: int
    upvoted: bool


class VersionListItem(BaseModel):
    index: int = Field(..., description="Position in the guide's history, 0 is the oldest")
    updated_by: Optional[UserBrief] = None
    updated_at: datetime
    content_length: int


class VersionListResponse(BaseModel):
    study_guide_id: int
    versions: List[VersionListItem]
    total_count: int


class VersionDiffResponse(BaseModel):
    study_guide_id: int
    index: int
    unified_diff: str
    changes_count: int
