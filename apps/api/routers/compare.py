"""
Cross-user comparison endpoints: the global leaderboard and one-to-one
comparison with an accepted friend.
"""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from core.auth import get_current_user_id
from core.database import get_db
from schemas import (
    FriendComparisonResponse,
    FriendInvite,
    FriendInviteResponse,
    LeaderboardEntry,
    MessageResponse,
)
from services import friend_service, leaderboard
from services.progress_service import build_filters

router = APIRouter(prefix="/compare", tags=["compare"])


@router.get("/leaderboard", response_model=List[LeaderboardEntry])
def get_global_leaderboard(
    category: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    limit: int = Query(leaderboard.GLOBAL_DEFAULT_LIMIT, ge=1, le=leaderboard.GLOBAL_MAX_LIMIT),
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """All active users ranked by summed value of matching entries."""
    filters = build_filters(category=category, start_date=start_date, end_date=end_date)
    return leaderboard.global_leaderboard(
        db,
        category=filters.category,
        start_date=filters.start_date,
        end_date=filters.end_date,
        limit=limit,
    )


@router.post("/invite", response_model=MessageResponse)
def invite_friend(
    request: FriendInvite,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Send a friend invitation; the invitee gets a notification."""
    friend_service.invite_friend(db, user_id, request.friend_email)
    return {"success": True, "message": "Friend invitation sent"}


@router.get("/invites", response_model=List[FriendInviteResponse])
def list_invites(
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return friend_service.pending_invites(db, user_id)


@router.post("/invites/{invite_id}/accept", response_model=MessageResponse)
def accept_invite(
    invite_id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    friend_service.accept_invite(db, user_id, invite_id)
    return {"success": True, "message": "Friend invitation accepted"}


@router.get("/user/{friend_id}", response_model=FriendComparisonResponse)
def compare_with_friend(
    friend_id: int,
    category: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Both users' matching entries side by side. Accepted friends only."""
    filters = build_filters(category=category, start_date=start_date, end_date=end_date)
    return friend_service.compare_with_friend(db, user_id, friend_id, filters)
