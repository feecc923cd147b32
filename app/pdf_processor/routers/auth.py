"""
Router for authentication endpoints.

Handles:
- Registration
- Login (bearer token issuing)
- Password changes
- Admin bootstrap / promotion
"""

import hmac
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..config import Settings, get_settings
from ..database import get_db
from ..models import (
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    LoginUser,
    MessageResponse,
    RegisterRequest,
)
from ..security import CurrentUser, create_access_token, get_current_user
from ..services.user_service import UserService, UserServiceError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["authentication"])


@router.post("/register", response_model=MessageResponse)
def register(
    request: RegisterRequest,
    db: Session = Depends(get_db),
) -> MessageResponse:
    """Create a new account holding the User role."""
    UserService(db).register(request)
    return MessageResponse(message="User registered successfully")


@router.post("/login", response_model=LoginResponse)
def login(
    request: LoginRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> LoginResponse:
    """Authenticate with email and password and return a bearer token."""
    user = UserService(db).authenticate(request.email, request.password)
    if user is None:
        logger.info("Failed login attempt for %s", request.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    roles = UserService.get_roles(user)
    token = create_access_token(user.id, user.email, roles, settings=settings)
    return LoginResponse(
        token=token,
        user=LoginUser(
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            roles=roles,
        ),
    )


@router.post("/change-password", response_model=MessageResponse)
def change_password(
    request: ChangePasswordRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> MessageResponse:
    """Change the caller's own password."""
    try:
        UserService(db).change_password(current_user.id, request)
    except UserServiceError as e:
        if "UserNotFound" in e.codes:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User not found",
            )
        raise
    return MessageResponse(message="Password changed successfully")


@router.post("/create-admin", response_model=MessageResponse)
def create_admin(
    request: RegisterRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> MessageResponse:
    """
    Create an admin account or promote an existing one.

    Outside development the request must carry the configured
    ``admin_setup_secret_key``.
    """
    if not settings.is_development:
        configured = settings.admin_setup_secret_key or ""
        supplied = request.secret_key or ""
        if not configured or not hmac.compare_digest(configured, supplied):
            logger.warning("Rejected create-admin request for %s", request.email)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid admin setup secret key",
            )

    message = UserService(db).create_or_promote_admin(request)
    return MessageResponse(message=message)
