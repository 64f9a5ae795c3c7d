"""
Security utilities for password hashing and JWT token handling.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from core.config import settings
from core.exceptions import InvalidTokenException, UserNotFoundException, ValidationException
from core.logging import security_logger
from db_config import get_db
from models.models import User

logger = security_logger

MIN_PASSWORD_LENGTH = 6

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Missing headers are reported as 401 by get_current_user rather than 403 by FastAPI
security = HTTPBearer(auto_error=False)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plain password against its hash.

    Returns False for malformed hashes instead of raising.
    """
    try:
        result = pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError) as e:
        logger.error("Password verification error", error=str(e))
        return False
    logger.debug("Password verification completed", success=result)
    return result


def get_password_hash(password: str) -> str:
    """
    Hash a plain password.

    Raises:
        ValidationException: If the password is shorter than the minimum length
    """
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationException(
            detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )
    return pwd_context.hash(password)


def create_access_token(user_id: int, expires_delta: Optional[timedelta] = None) -> str:
    """
    Issue a signed session token embedding only the user id.

    Args:
        user_id: The user the token identifies
        expires_delta: Optional custom lifetime, defaults to the configured 30 days

    Returns:
        str: The encoded JWT token
    """
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(days=settings.jwt_access_token_expire_days)
    )
    token = jwt.encode(
        {"id": str(user_id), "exp": expire},
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )
    logger.info("Access token created", user_id=user_id, expires_at=expire.isoformat())
    return token


def decode_access_token(token: Optional[str]) -> int:
    """
    Validate a token and return the embedded user id.

    Raises:
        InvalidTokenException: If the token is missing, malformed, expired or
            has a signature mismatch
    """
    if not token:
        raise InvalidTokenException(detail="Not authorized, no token")
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        logger.warning("Token verification failed", error=str(e))
        raise InvalidTokenException()

    try:
        return int(payload["id"])
    except (KeyError, TypeError, ValueError):
        logger.warning("Token missing user id claim")
        raise InvalidTokenException()


def authenticate(token: Optional[str], db: Session) -> User:
    """
    Resolve a token to its user.

    Raises:
        InvalidTokenException: See decode_access_token
        UserNotFoundException: If the embedded id no longer resolves to a user
    """
    user_id = decode_access_token(token)
    user = db.get(User, user_id)
    if user is None:
        logger.warning("User not found for token", user_id=user_id)
        raise UserNotFoundException()
    return user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """FastAPI dependency: the authenticated user for this request."""
    token = credentials.credentials if credentials else None
    return authenticate(token, db)


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """FastAPI dependency for public routes: the user if a usable token was sent, else None."""
    if not credentials:
        return None
    try:
        return authenticate(credentials.credentials, db)
    except (InvalidTokenException, UserNotFoundException):
        return None
