"""
Study guide routes: listing, CRUD, upvotes and version history.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from core.config import settings
from core.security import get_current_user, get_optional_user
from db_config import get_db
from models.models import User
from repositories.study_guides import page_count
from schemas.auth import MessageResponse
from schemas.study_guide import (
    StudyGuideCreate, StudyGuideDetail, StudyGuideListResponse, StudyGuideRead,
    StudyGuideUpdate, UpvoteResponse, VersionDiffResponse, VersionListResponse
)
from services.ai_manager import AIContentGenerator, get_ai_generator
from services.notification_service import NotificationService, get_notification_service
from services.study_guide_service import StudyGuideService

router = APIRouter(prefix="/study-guides", tags=["Study Guides"])


def get_study_guide_service(
    db: Session = Depends(get_db),
    ai_generator: AIContentGenerator = Depends(get_ai_generator),
    notifier: NotificationService = Depends(get_notification_service),
) -> StudyGuideService:
    return StudyGuideService(db, ai_generator, notifier)


@router.get("", response_model=StudyGuideListResponse)
async def list_study_guides(
    page: int = Query(1, description="1-indexed page number; values below 1 read as 1"),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    subject: Optional[str] = Query(None, description="Exact subject to filter by"),
    search: Optional[str] = Query(None, description="Free-text search over title, content and subjects"),
    sort: Optional[str] = Query(None, description="newest (default), oldest or popular"),
    service: StudyGuideService = Depends(get_study_guide_service),
):
    """List public study guides with filtering, sorting and pagination."""
    page = max(page, 1)
    items, total = service.list(subject=subject, search=search, sort=sort, page=page, limit=limit)
    return StudyGuideListResponse(
        study_guides=[StudyGuideRead.model_validate(item) for item in items],
        page=page,
        pages=page_count(total, limit),
        total=total,
    )


@router.get("/my-guides", response_model=List[StudyGuideRead])
async def list_my_study_guides(
    current_user: User = Depends(get_current_user),
    service: StudyGuideService = Depends(get_study_guide_service),
):
    """Guides created by the caller, most recently updated first (private ones included)."""
    return [StudyGuideRead.model_validate(item) for item in service.list_mine(current_user)]


@router.post("", response_model=StudyGuideRead, status_code=status.HTTP_201_CREATED)
async def create_study_guide(
    guide_data: StudyGuideCreate,
    current_user: User = Depends(get_current_user),
    service: StudyGuideService = Depends(get_study_guide_service),
):
    study_guide = await service.create(guide_data, current_user)
    return StudyGuideRead.model_validate(study_guide)


@router.get("/{study_guide_id}", response_model=StudyGuideDetail)
async def get_study_guide(
    study_guide_id: int,
    current_user: Optional[User] = Depends(get_optional_user),
    service: StudyGuideService = Depends(get_study_guide_service),
):
    """Fetch one guide with creator, contributors and version updaters expanded."""
    return StudyGuideDetail.model_validate(service.get(study_guide_id, current_user))


@router.put("/{study_guide_id}", response_model=StudyGuideRead)
async def update_study_guide(
    study_guide_id: int,
    guide_data: StudyGuideUpdate,
    current_user: User = Depends(get_current_user),
    service: StudyGuideService = Depends(get_study_guide_service),
):
    """
    Update a guide. Only the creator and contributors may edit.

    A content change appends a version snapshot; a large enough change
    regenerates the AI summary, keywords and (unless supplied) flashcards.
    """
    study_guide = await service.update(study_guide_id, guide_data, current_user)
    return StudyGuideRead.model_validate(study_guide)


@router.delete("/{study_guide_id}", response_model=MessageResponse)
async def delete_study_guide(
    study_guide_id: int,
    current_user: User = Depends(get_current_user),
    service: StudyGuideService = Depends(get_study_guide_service),
):
    service.delete(study_guide_id, current_user)
    return MessageResponse(message="Study guide removed")


@router.put("/{study_guide_id}/upvote", response_model=UpvoteResponse)
async def toggle_upvote(
    study_guide_id: int,
    current_user: User = Depends(get_current_user),
    service: StudyGuideService = Depends(get_study_guide_service),
):
    """Toggle the caller's upvote; repeated calls alternate."""
    upvotes, upvoted = service.toggle_upvote(study_guide_id, current_user)
    return UpvoteResponse(upvotes=upvotes, upvoted=upvoted)


@router.get("/{study_guide_id}/versions", response_model=VersionListResponse)
async def list_versions(
    study_guide_id: int,
    current_user: Optional[User] = Depends(get_optional_user),
    service: StudyGuideService = Depends(get_study_guide_service),
):
    return service.list_versions(study_guide_id, current_user)


@router.get("/{study_guide_id}/versions/{index}/diff", response_model=VersionDiffResponse)
async def diff_version(
    study_guide_id: int,
    index: int,
    current_user: Optional[User] = Depends(get_optional_user),
    service: StudyGuideService = Depends(get_study_guide_service),
):
    """Unified diff from a stored version to the current content."""
    return service.diff_version(study_guide_id, index, current_user)
