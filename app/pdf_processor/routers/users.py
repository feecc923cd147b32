"""
Router for user directory management (admin only).

Handles:
- Listing users and roles
- Reading, updating and deleting single users
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..models import MessageResponse, UpdateUserRequest, UserResponse
from ..security import require_admin
from ..services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/users",
    tags=["user management"],
    dependencies=[Depends(require_admin)],
)


@router.get("", response_model=list[UserResponse])
def list_users(db: Session = Depends(get_db)) -> list[UserResponse]:
    """List all user accounts."""
    return UserService(db).list_users()


@router.get("/roles", response_model=list[str])
def list_roles(db: Session = Depends(get_db)) -> list[str]:
    """List all role names."""
    return UserService(db).list_roles()


@router.get("/{user_id}", response_model=UserResponse)
def get_user(user_id: str, db: Session = Depends(get_db)) -> UserResponse:
    """Get one user account."""
    user = UserService(db).get_user(user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User {user_id} not found",
        )
    return user


@router.put("/{user_id}", response_model=MessageResponse)
def update_user(
    user_id: str,
    request: UpdateUserRequest,
    db: Session = Depends(get_db),
) -> MessageResponse:
    """Update profile fields, the active flag or the role set of a user."""
    UserService(db).update_user(user_id, request)
    return MessageResponse(message="User updated successfully")


@router.delete("/{user_id}", response_model=MessageResponse)
def delete_user(user_id: str, db: Session = Depends(get_db)) -> MessageResponse:
    """Delete a user account."""
    UserService(db).delete_user(user_id)
    return MessageResponse(message="User deleted successfully")
