"""
Database models for the application.
"""
import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Column, Integer, String, DateTime, Boolean, Text, ForeignKey, Table, JSON, Index
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from db_config import Base

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB, "postgresql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# --- ENUM Types ---
class FlashcardTypeEnum(enum.Enum):
    multiple_choice = "multiple_choice"
    freeform = "freeform"


def default_user_settings() -> dict:
    """Settings a new (or reset) account starts with."""
    return {
        "email_notifications": True,
        "study_reminders": True,
        "privacy_settings": {
            "profile_visibility": "public",
            "show_activity": True,
            "show_study_guides": True,
        },
        "accessibility": {
            "font_size": "medium",
            "high_contrast": False,
            "reduced_motion": False,
        },
        "language": "en",
    }


# --- Association tables ---
study_guide_contributor = Table(
    "study_guide_contributor",
    Base.metadata,
    Column("study_guide_id", Integer, ForeignKey("study_guide.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Integer, ForeignKey("user.id", ondelete="CASCADE"), primary_key=True, index=True),
    Column("added_at", DateTime(timezone=True), default=utcnow),
)

study_guide_upvote = Table(
    "study_guide_upvote",
    Base.metadata,
    Column("study_guide_id", Integer, ForeignKey("study_guide.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Integer, ForeignKey("user.id", ondelete="CASCADE"), primary_key=True, index=True),
    Column("created_at", DateTime(timezone=True), default=utcnow),
)


# --- Model Definitions ---

class User(Base):
    __tablename__ = "user"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    username = Column(String(30), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    profile_picture = Column(String(255), nullable=False, default="")
    bio = Column(String(500), nullable=True)
    settings = Column(JSONType, nullable=False, default=default_user_settings)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Non-owning: guides reference users by id, the account workflow handles cleanup
    created_guides = relationship("StudyGuide", back_populates="creator")
    contributed_guides = relationship(
        "StudyGuide", secondary=study_guide_contributor, back_populates="contributors"
    )
    upvoted_guides = relationship(
        "StudyGuide", secondary=study_guide_upvote, back_populates="upvoters"
    )


class StudyGuide(Base):
    __tablename__ = "study_guide"
    __table_args__ = (
        Index("ix_study_guide_created_at", "created_at"),
        Index("ix_study_guide_upvotes", "upvotes"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    content = Column(Text, nullable=False)
    summary = Column(Text, nullable=False, default="")
    flashcards = Column(JSONType, nullable=False, default=list)
    keywords = Column(JSONType, nullable=False, default=list)
    subjects = Column(JSONType, nullable=False, default=list)
    custom_subject = Column(String(100), nullable=True)
    is_public = Column(Boolean, nullable=False, default=True)
    creator_id = Column(Integer, ForeignKey("user.id"), nullable=False, index=True)
    upvotes = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    creator = relationship("User", back_populates="created_guides")
    contributors = relationship(
        "User", secondary=study_guide_contributor, back_populates="contributed_guides"
    )
    upvoters = relationship(
        "User", secondary=study_guide_upvote, back_populates="upvoted_guides"
    )
    versions = relationship(
        "StudyGuideVersion",
        back_populates="study_guide",
        cascade="all, delete-orphan",
        order_by="StudyGuideVersion.id",
    )

    def is_creator(self, user_id: int) -> bool:
        return self.creator_id == user_id

    def is_contributor(self, user_id: int) -> bool:
        return any(user.id == user_id for user in self.contributors)

    def add_contributor(self, user: "User") -> bool:
        """Add ``user`` to contributors unless already there. Returns True if added."""
        if self.is_contributor(user.id):
            return False
        self.contributors.append(user)
        return True

    def remove_contributor(self, user_id: int) -> bool:
        if not self.is_contributor(user_id):
            return False
        self.contributors = [u for u in self.contributors if u.id != user_id]
        return True

    def has_upvoted(self, user_id: int) -> bool:
        return any(user.id == user_id for user in self.upvoters)

    # upvotes is a cached len(upvoters); only the two methods below touch either side.

    def toggle_upvote(self, user: "User") -> bool:
        """
        Flip ``user``'s upvote and resync the counter.

        Returns:
            bool: True if the guide is now upvoted by ``user``
        """
        if self.has_upvoted(user.id):
            self.upvoters = [u for u in self.upvoters if u.id != user.id]
            upvoted = False
        else:
            self.upvoters.append(user)
            upvoted = True
        self.upvotes = len(self.upvoters)
        return upvoted

    def remove_upvote(self, user_id: int) -> bool:
        """Withdraw ``user_id``'s upvote if present. Returns True if one was removed."""
        if not self.has_upvoted(user_id):
            return False
        self.upvoters = [u for u in self.upvoters if u.id != user_id]
        self.upvotes = len(self.upvoters)
        return True

    @property
    def contributor_ids(self) -> list[int]:
        return [user.id for user in self.contributors]

    @property
    def upvoted_by(self) -> list[int]:
        return [user.id for user in self.upvoters]


class StudyGuideVersion(Base):
    """Append-only snapshot of a guide's content before an edit replaced it."""

    __tablename__ = "study_guide_version"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    study_guide_id = Column(
        Integer, ForeignKey("study_guide.id", ondelete="CASCADE"), nullable=False, index=True
    )
    content = Column(Text, nullable=False)
    updated_by_id = Column(Integer, ForeignKey("user.id", ondelete="SET NULL"), nullable=True, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow)

    study_guide = relationship("StudyGuide", back_populates="versions")
    updated_by = relationship("User")
