"""
User profile endpoints.

Reads of other users return the public projection only; writes are
self-only.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.auth import get_current_user
from core.database import get_db
from core.exceptions import ForbiddenError, NotFoundError, ValidationError
from models import GroupMember, User
from schemas import GoalProgressResponse, MessageResponse, UserPublicResponse, UserResponse, UserUpdate
from services import goal_progress, group_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


def _require_self(user_id: int, current_user: User) -> None:
    if user_id != current_user.id:
        raise ForbiddenError("You can only modify your own account")


@router.get("/me/goals/progress", response_model=List[GoalProgressResponse])
def get_goals_progress(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Percent complete and recent trend for each of the caller's goals."""
    return goal_progress.goals_progress(db, current_user)


@router.get("/{user_id}", response_model=UserPublicResponse)
def get_user(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    user = db.query(User).filter(User.id == user_id, User.is_active.is_(True)).first()
    if not user:
        raise NotFoundError("User not found")
    return user


@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int,
    changes: UserUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    _require_self(user_id, current_user)

    for field, value in changes.model_dump(exclude_unset=True, mode="json").items():
        if field == "goals" and value is None:
            value = []
        elif field in ("first_name", "last_name") and value is None:
            raise ValidationError(f"{field} cannot be null", field=field)
        setattr(current_user, field, value)
    db.commit()
    db.refresh(current_user)
    return current_user


@router.delete("/{user_id}", response_model=MessageResponse)
def delete_user(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Delete the caller's account and everything they own."""
    _require_self(user_id, current_user)

    # Leave first so an emptied group is collected with the account
    membership = db.query(GroupMember).filter(GroupMember.user_id == current_user.id).first()
    if membership:
        group_service.leave_group(db, membership.group_id, current_user.id, commit=False)

    db.delete(current_user)
    db.commit()
    logger.info("User deleted", extra={"extra_fields": {"user_id": user_id}})
    return {"message": "Account deleted"}
