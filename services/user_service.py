"""
User account workflow: registration, login, profile and account cascades.
"""
from typing import Dict, Tuple

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from core.exceptions import AuthenticationException, ValidationException
from core.logging import get_logger
from core.security import create_access_token, get_password_hash, verify_password
from models.models import User, default_user_settings
from repositories.study_guides import StudyGuideRepository
from schemas.auth import LoginRequest
from schemas.user import UserCreate, UserUpdate

logger = get_logger("users")


class UserAccountService:
    """Service for account lifecycle operations."""

    def __init__(self, db: Session):
        self.db = db
        self.study_guides = StudyGuideRepository(db)

    def _find_conflict(self, username: str = None, email: str = None, exclude_id: int = None):
        conditions = []
        if username:
            conditions.append(User.username == username)
        if email:
            conditions.append(User.email == email)
        if not conditions:
            return None
        stmt = select(User).where(or_(*conditions))
        if exclude_id is not None:
            stmt = stmt.where(User.id != exclude_id)
        return self.db.scalar(stmt.limit(1))

    def register(self, data: UserCreate) -> Tuple[User, str]:
        """Create an account. Returns the user and a fresh session token."""
        logger.info("User registration attempt", username=data.username, email=data.email)

        if self._find_conflict(username=data.username, email=data.email):
            logger.warning("Registration failed - user already exists", username=data.username)
            raise ValidationException("User already exists")

        user = User(
            username=data.username,
            email=data.email,
            password_hash=get_password_hash(data.password),
            settings=default_user_settings(),
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)

        logger.info("User registered successfully", user_id=user.id, username=user.username)
        return user, create_access_token(user.id)

    def login(self, data: LoginRequest) -> Tuple[User, str]:
        user = self.db.scalar(select(User).where(User.email == data.email))
        if user is None or not verify_password(data.password, user.password_hash):
            logger.warning("Login failed", email=data.email)
            raise AuthenticationException("Invalid email or password")

        logger.info("User logged in", user_id=user.id)
        return user, create_access_token(user.id)

    def update_profile(self, user: User, data: UserUpdate) -> Tuple[User, str]:
        """
        Apply profile changes; empty values leave the prior value in place.

        Returns:
            The updated user and a freshly issued token
        """
        if self._find_conflict(username=data.username, email=data.email, exclude_id=user.id):
            raise ValidationException("Username or email already in use")

        if data.username:
            user.username = data.username
        if data.email:
            user.email = data.email
        if data.profile_picture:
            user.profile_picture = data.profile_picture
        if data.bio:
            user.bio = data.bio
        if data.password:
            user.password_hash = get_password_hash(data.password)
        if data.settings:
            user.settings = data.settings.model_dump()

        self.db.commit()
        self.db.refresh(user)
        logger.info("Profile updated", user_id=user.id, fields=",".join(sorted(data.model_fields_set)))
        return user, create_access_token(user.id)

    def _detach_from_study_guides(self, user: User) -> Dict[str, int]:
        """
        Remove every study guide reference to ``user``.

        Each step commits on its own; the sequence as a whole is not atomic.
        """
        counts = {"deleted_guides": self.study_guides.delete_by_creator(user.id)}

        contributed = self.study_guides.list_contributed_by(user.id)
        for guide in contributed:
            guide.remove_contributor(user.id)
        self.db.commit()
        counts["contributions_removed"] = len(contributed)

        upvoted = self.study_guides.list_upvoted_by(user.id)
        for guide in upvoted:
            guide.remove_upvote(user.id)
        self.db.commit()
        counts["upvotes_removed"] = len(upvoted)

        counts["versions_cleared"] = self.study_guides.clear_version_updater(user.id)
        return counts

    def delete_account(self, user: User) -> Dict[str, int]:
        user_id = user.id
        counts = self._detach_from_study_guides(user)
        self.db.delete(user)
        self.db.commit()
        logger.info("Account deleted", user_id=user_id, **counts)
        return counts

    def reset_user_data(self, user: User) -> Dict[str, int]:
        counts = self._detach_from_study_guides(user)
        user.settings = default_user_settings()
        self.db.commit()
        logger.info("User data reset", user_id=user.id, **counts)
        return counts
