from math import ceil
from typing import List, Optional, Tuple

from sqlalchemy import Text, case, cast, func, select, type_coerce, update
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Session, selectinload

from models.models import (
    StudyGuide, StudyGuideVersion, study_guide_contributor, study_guide_upvote
)

SORT_KEYS = ("newest", "oldest", "popular")


def page_count(total: int, limit: int) -> int:
    return ceil(total / limit) if limit > 0 else 0


def escape_like(term: str) -> str:
    """Make LIKE wildcards in ``term`` match literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def search_document():
    """Text that full-text search runs over: title, content and subjects."""
    return (
        func.coalesce(StudyGuide.title, "")
        + " "
        + func.coalesce(StudyGuide.content, "")
        + " "
        + func.coalesce(cast(StudyGuide.subjects, Text), "")
    )


class StudyGuideRepository:
    def __init__(self, session: Session):
        self.session = session

    @property
    def dialect(self) -> str:
        return self.session.get_bind().dialect.name

    def get_by_id(self, study_guide_id: int) -> Optional[StudyGuide]:
        return self.session.get(StudyGuide, study_guide_id)

    def get_detail(self, study_guide_id: int) -> Optional[StudyGuide]:
        """Load a guide with creator, contributors and version updaters in one go."""
        stmt = (
            select(StudyGuide)
            .where(StudyGuide.id == study_guide_id)
            .options(
                selectinload(StudyGuide.creator),
                selectinload(StudyGuide.contributors),
                selectinload(StudyGuide.upvoters),
                selectinload(StudyGuide.versions).selectinload(StudyGuideVersion.updated_by),
            )
        )
        return self.session.scalar(stmt)

    def save(self, study_guide: StudyGuide) -> StudyGuide:
        self.session.add(study_guide)
        self.session.commit()
        self.session.refresh(study_guide)
        return study_guide

    def delete(self, study_guide: StudyGuide):
        self.session.delete(study_guide)
        self.session.commit()

    def _with_relations(self, stmt):
        return stmt.options(
            selectinload(StudyGuide.creator),
            selectinload(StudyGuide.contributors),
            selectinload(StudyGuide.upvoters),
        )

    def _subject_filter(self, subject: str):
        if self.dialect == "postgresql":
            return type_coerce(StudyGuide.subjects, JSONB).contains([subject])
        subjects = func.json_each(StudyGuide.subjects).table_valued("value")
        return select(subjects.c.value).where(subjects.c.value == subject).exists()

    def list(
        self,
        subject: Optional[str] = None,
        search: Optional[str] = None,
        sort: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
        public_only: bool = True,
    ) -> Tuple[List[StudyGuide], int]:
        """
        Filter, sort and paginate guides.

        With a search term, exact title matches come first. When no sort key
        is given, search results are then ordered by relevance. An unknown
        sort key reads as no sort key.

        Returns:
            Tuple of (page items, total matching count)
        """
        if sort not in SORT_KEYS:
            sort = None
        stmt = select(StudyGuide)
        order_by = []

        if public_only:
            stmt = stmt.where(StudyGuide.is_public.is_(True))

        if subject:
            stmt = stmt.where(self._subject_filter(subject))

        search = search.strip() if search else None
        if search:
            order_by.append(case((func.lower(StudyGuide.title) == search.lower(), 0), else_=1))
            if self.dialect == "postgresql":
                ts_query = func.plainto_tsquery("english", search)
                document = func.to_tsvector("english", search_document())
                stmt = stmt.where(document.op("@@")(ts_query))
                if sort is None:
                    order_by.append(func.ts_rank_cd(document, ts_query).desc())
            else:
                pattern = f"%{escape_like(search)}%"
                stmt = stmt.where(
                    StudyGuide.title.ilike(pattern, escape="\\")
                    | StudyGuide.content.ilike(pattern, escape="\\")
                    | cast(StudyGuide.subjects, Text).ilike(pattern, escape="\\")
                )

        if sort == "oldest":
            order_by.extend([StudyGuide.created_at.asc(), StudyGuide.id.asc()])
        elif sort == "popular":
            order_by.extend([StudyGuide.upvotes.desc(), StudyGuide.created_at.desc(), StudyGuide.id.desc()])
        else:
            order_by.extend([StudyGuide.created_at.desc(), StudyGuide.id.desc()])

        total = self.session.scalar(select(func.count()).select_from(stmt.subquery())) or 0

        offset = (max(page, 1) - 1) * limit
        stmt = self._with_relations(stmt.order_by(*order_by).limit(limit).offset(offset))
        return list(self.session.scalars(stmt)), total

    def list_by_creator(self, user_id: int) -> List[StudyGuide]:
        stmt = self._with_relations(
            select(StudyGuide)
            .where(StudyGuide.creator_id == user_id)
            .order_by(StudyGuide.updated_at.desc(), StudyGuide.id.desc())
        )
        return list(self.session.scalars(stmt))

    def list_contributed_by(self, user_id: int) -> List[StudyGuide]:
        stmt = (
            select(StudyGuide)
            .join(study_guide_contributor, study_guide_contributor.c.study_guide_id == StudyGuide.id)
            .where(study_guide_contributor.c.user_id == user_id)
        )
        return list(self.session.scalars(stmt))

    def list_upvoted_by(self, user_id: int) -> List[StudyGuide]:
        stmt = (
            select(StudyGuide)
            .join(study_guide_upvote, study_guide_upvote.c.study_guide_id == StudyGuide.id)
            .where(study_guide_upvote.c.user_id == user_id)
        )
        return list(self.session.scalars(stmt))

    def delete_by_creator(self, user_id: int) -> int:
        """Hard-delete every guide ``user_id`` created, with their versions. Returns the count."""
        guides = list(self.session.scalars(select(StudyGuide).where(StudyGuide.creator_id == user_id)))
        for guide in guides:
            self.session.delete(guide)
        self.session.commit()
        return len(guides)

    def clear_version_updater(self, user_id: int) -> int:
        """Null out ``user_id`` as the recorded updater on version snapshots. Returns rows touched."""
        result = self.session.execute(
            update(StudyGuideVersion)
            .where(StudyGuideVersion.updated_by_id == user_id)
            .values(updated_by_id=None)
        )
        self.session.commit()
        return result.rowcount or 0
