"""
Routes for registration, login and the caller's own account.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from core.security import get_current_user
from db_config import get_db
from models.models import User
from schemas.auth import AuthResponse, LoginRequest, MessageResponse, ProfileUpdateResponse
from schemas.user import UserCreate, UserProfile, UserUpdate
from services.user_service import UserAccountService

router = APIRouter(prefix="/users", tags=["Users"])


def get_user_service(db: Session = Depends(get_db)) -> UserAccountService:
    return UserAccountService(db)


@router.post("", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register_user(
    user_data: UserCreate,
    service: UserAccountService = Depends(get_user_service),
):
    """
    Register a new user.

    - **username**: Must be unique, 3-30 characters
    - **email**: Must be unique and valid email format
    - **password**: Minimum 6 characters
    """
    user, token = service.register(user_data)
    return AuthResponse(id=user.id, username=user.username, email=user.email, token=token)


@router.post("/login", response_model=AuthResponse)
async def login_user(
    login_data: LoginRequest,
    service: UserAccountService = Depends(get_user_service),
):
    """Authenticate with email and password and receive a session token."""
    user, token = service.login(login_data)
    return AuthResponse(id=user.id, username=user.username, email=user.email, token=token)


@router.get("/profile", response_model=UserProfile)
async def get_profile(current_user: User = Depends(get_current_user)):
    return UserProfile.model_validate(current_user)


@router.put("/profile", response_model=ProfileUpdateResponse)
async def update_profile(
    update_data: UserUpdate,
    current_user: User = Depends(get_current_user),
    service: UserAccountService = Depends(get_user_service),
):
    """Update the caller's profile. Empty fields are left unchanged; a new token is issued."""
    user, token = service.update_profile(current_user, update_data)
    profile = UserProfile.model_validate(user)
    return ProfileUpdateResponse(**profile.model_dump(), token=token)


@router.delete("/account", response_model=MessageResponse)
async def delete_account(
    current_user: User = Depends(get_current_user),
    service: UserAccountService = Depends(get_user_service),
):
    """Delete the caller's account, their study guides and every reference to them."""
    counts = service.delete_account(current_user)
    return MessageResponse(message="Account deleted successfully", detail=counts)


@router.post("/reset-data", response_model=MessageResponse)
async def reset_user_data(
    current_user: User = Depends(get_current_user),
    service: UserAccountService = Depends(get_user_service),
):
    """Remove the caller's study guide data and restore default settings, keeping the account."""
    counts = service.reset_user_data(current_user)
    return MessageResponse(message="User data reset successfully", detail=counts)
