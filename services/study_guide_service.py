"""
Study guide workflow: create, update, delete and upvote, plus the read side.

Version history, contributor membership and AI regeneration are decided here.
AI enrichment is best-effort and never blocks persisting user-authored content;
notifications go out once per operation after its commit point.
"""
import difflib
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from core.config import settings
from core.exceptions import (
    AuthorizationException, ResourceNotFoundException, ValidationException
)
from core.logging import get_logger
from models.models import StudyGuide, StudyGuideVersion, User
from repositories.study_guides import StudyGuideRepository
from schemas.study_guide import (
    StudyGuideCreate, StudyGuideUpdate, VersionDiffResponse, VersionListItem,
    VersionListResponse
)
from schemas.user import UserBrief
from services.ai_manager import AIContentGenerator
from services.notification_service import NotificationService

logger = get_logger("study_guides")


def is_significant_change(old_content: Optional[str], new_content: Optional[str],
                          threshold: Optional[int] = None) -> bool:
    """
    Whether an edit changed content enough to invalidate cached AI artifacts.

    A length-delta proxy: new content must be supplied, and either there was
    no prior content or the lengths differ by strictly more than ``threshold``.
    """
    if threshold is None:
        threshold = settings.significant_change_threshold
    if not new_content:
        return False
    if not old_content:
        return True
    return abs(len(new_content) - len(old_content)) > threshold


def validate_content(content: Optional[str]):
    if content is None or len(content) < settings.min_content_length:
        raise ValidationException(
            f"Content must be at least {settings.min_content_length} characters long"
        )


class StudyGuideService:
    """Service for the study guide lifecycle."""

    def __init__(self, db: Session, ai_generator: AIContentGenerator, notifier: NotificationService):
        self.db = db
        self.repository = StudyGuideRepository(db)
        self.ai_generator = ai_generator
        self.notifier = notifier

    # --- Queries ---

    def get(self, study_guide_id: int, viewer: Optional[User] = None) -> StudyGuide:
        """
        Fetch a guide for display with creator, contributors and version updaters expanded.

        Private guides are only visible to their creator and contributors.
        """
        study_guide = self.repository.get_detail(study_guide_id)
        if study_guide is None or not self._can_view(study_guide, viewer):
            raise ResourceNotFoundException("Study guide not found")
        return study_guide

    def _can_view(self, study_guide: StudyGuide, viewer: Optional[User]) -> bool:
        if study_guide.is_public:
            return True
        if viewer is None:
            return False
        return study_guide.is_creator(viewer.id) or study_guide.is_contributor(viewer.id)

    def _get_or_404(self, study_guide_id: int) -> StudyGuide:
        study_guide = self.repository.get_by_id(study_guide_id)
        if study_guide is None:
            raise ResourceNotFoundException("Study guide not found")
        return study_guide

    def list(
        self,
        subject: Optional[str] = None,
        search: Optional[str] = None,
        sort: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Tuple[List[StudyGuide], int]:
        limit = limit or settings.default_page_size
        return self.repository.list(subject=subject, search=search, sort=sort, page=page, limit=limit)

    def list_mine(self, user: User) -> List[StudyGuide]:
        return self.repository.list_by_creator(user.id)

    # --- Create ---

    async def create(self, data: StudyGuideCreate, user: User) -> StudyGuide:
        validate_content(data.content)

        subjects = [data.custom_subject] if data.custom_subject else [s for s in data.subjects if s]
        study_guide = StudyGuide(
            title=data.title,
            description=data.description,
            content=data.content,
            subjects=subjects,
            custom_subject=data.custom_subject,
            is_public=data.is_public,
            creator_id=user.id,
        )
        study_guide.add_contributor(user)
        study_guide = self.repository.save(study_guide)
        logger.info("Study guide created", study_guide_id=study_guide.id, user_id=user.id)

        self.notifier.emit_created(study_guide)

        if await self._enrich(study_guide, study_guide.content, regenerate_flashcards=True):
            study_guide = self.repository.save(study_guide)
        return study_guide

    async def _enrich(self, study_guide: StudyGuide, content: str, regenerate_flashcards: bool) -> bool:
        """
        Attach every non-empty AI artifact to ``study_guide``. Returns True if anything changed.

        Summary, flashcards and keywords are requested in that order; each one
        that comes back empty leaves the prior value in place.
        """
        attached = []

        summary = await self.ai_generator.summarize(content)
        if summary:
            study_guide.summary = summary
            attached.append("summary")

        if regenerate_flashcards:
            flashcards = await self.ai_generator.generate_flashcards(content)
            if flashcards:
                study_guide.flashcards = [card.model_dump(mode="json") for card in flashcards]
                attached.append("flashcards")

        keywords = await self.ai_generator.extract_keywords(content)
        if keywords:
            study_guide.keywords = [keyword.model_dump(mode="json") for keyword in keywords]
            attached.append("keywords")

        logger.info("AI enrichment finished", study_guide_id=study_guide.id,
                    attached=",".join(attached) or "none")
        return bool(attached)

    # --- Update ---

    async def update(self, study_guide_id: int, data: StudyGuideUpdate, user: User) -> StudyGuide:
        study_guide = self._get_or_404(study_guide_id)

        # Only existing members may edit; membership itself is set at creation
        if not study_guide.is_creator(user.id) and not study_guide.is_contributor(user.id):
            raise AuthorizationException("Not authorized to update this study guide")

        if data.content:
            validate_content(data.content)

        old_content = study_guide.content
        # An explicit list, even an empty one, replaces the cards; only a non-empty one skips the AI
        flashcards_supplied = "flashcards" in data.model_fields_set and data.flashcards is not None

        significant = is_significant_change(old_content, data.content)
        logger.info("Applying study guide update", study_guide_id=study_guide.id,
                    user_id=user.id, significant_change=significant)
        if significant:
            await self._enrich(study_guide, data.content, regenerate_flashcards=not data.flashcards)

        fields_set = data.model_fields_set
        if data.title:
            study_guide.title = data.title
        if "description" in fields_set:
            study_guide.description = data.description
        if data.content:
            study_guide.content = data.content
        if data.subjects:
            study_guide.subjects = data.subjects
        if flashcards_supplied:
            study_guide.flashcards = [card.model_dump(mode="json") for card in data.flashcards]
        if data.is_public is not None:
            study_guide.is_public = data.is_public

        now = datetime.now(timezone.utc)
        if data.content and data.content != old_content:
            study_guide.versions.append(
                StudyGuideVersion(content=old_content, updated_by_id=user.id, updated_at=now)
            )
            logger.info("Version appended", study_guide_id=study_guide.id,
                        versions=len(study_guide.versions))

        study_guide.updated_at = now
        study_guide = self.repository.save(study_guide)
        self.notifier.emit_updated(study_guide.id, user.id, study_guide.updated_at)
        return study_guide

    # --- Delete ---

    def delete(self, study_guide_id: int, user: User):
        study_guide = self._get_or_404(study_guide_id)
        if not study_guide.is_creator(user.id):
            raise AuthorizationException("Not authorized to delete this study guide")

        self.repository.delete(study_guide)
        logger.info("Study guide deleted", study_guide_id=study_guide_id, user_id=user.id)
        self.notifier.emit_deleted(study_guide_id)

    # --- Upvote ---

    def toggle_upvote(self, study_guide_id: int, user: User) -> Tuple[int, bool]:
        """
        Flip the caller's upvote.

        Returns:
            Tuple of (new upvote count, whether the caller now upvotes the guide)
        """
        study_guide = self._get_or_404(study_guide_id)
        upvoted = study_guide.toggle_upvote(user)
        study_guide = self.repository.save(study_guide)
        logger.info("Upvote toggled", study_guide_id=study_guide.id, user_id=user.id,
                    upvoted=upvoted, upvotes=study_guide.upvotes)

        self.notifier.emit_upvoted(study_guide.id, study_guide.upvotes, study_guide.upvoted_by)
        return study_guide.upvotes, upvoted

    # --- Version history ---

    def list_versions(self, study_guide_id: int, viewer: Optional[User] = None) -> VersionListResponse:
        """Version snapshots newest first; ``index`` is the position in the oldest-first history."""
        study_guide = self.get(study_guide_id, viewer)
        items = [
            VersionListItem(
                index=index,
                updated_by=UserBrief.model_validate(version.updated_by) if version.updated_by else None,
                updated_at=version.updated_at,
                content_length=len(version.content or ""),
            )
            for index, version in enumerate(study_guide.versions)
        ]
        items.reverse()
        return VersionListResponse(study_guide_id=study_guide.id, versions=items, total_count=len(items))

    def diff_version(self, study_guide_id: int, index: int, viewer: Optional[User] = None) -> VersionDiffResponse:
        """Unified diff from version ``index`` to the current content."""
        study_guide = self.get(study_guide_id, viewer)
        if index < 0 or index >= len(study_guide.versions):
            raise ResourceNotFoundException("Version not found")

        old_text = study_guide.versions[index].content or ""
        new_text = study_guide.content or ""
        diff = list(difflib.unified_diff(
            old_text.splitlines(keepends=True),
            new_text.splitlines(keepends=True),
            fromfile=f"version-{index}",
            tofile="current",
        ))
        return VersionDiffResponse(
            study_guide_id=study_guide.id,
            index=index,
            unified_diff="".join(diff),
            changes_count=len([
                line for line in diff
                if line.startswith(("+", "-")) and not line.startswith(("+++", "---"))
            ]),
        )
