"""
Group API endpoints.

Create/join by invite code, membership-gated reads (detail, progress feed,
leaderboards) and leaving.
"""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from core.auth import get_current_user_id
from core.database import get_db
from schemas import (
    GroupCreate,
    GroupDetailResponse,
    GroupJoin,
    GroupProgressResponse,
    GroupResponse,
    LeaderboardEntry,
    LeaveGroupResponse,
    MetricLeader,
)
from services import group_service, leaderboard
from services.progress_service import ProgressFilters, build_filters

router = APIRouter(prefix="/groups", tags=["groups"])


def progress_filters(
    category: Optional[str] = Query(None),
    metric: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
) -> ProgressFilters:
    return build_filters(category, metric, start_date, end_date)


@router.post("", response_model=GroupResponse, status_code=status.HTTP_201_CREATED)
def create_group(
    request: GroupCreate,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Create a group; the creator becomes its first member."""
    return group_service.create_group(db, user_id, request.name, request.description)


@router.post("/join", response_model=GroupResponse)
def join_group(
    request: GroupJoin,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Join by invite code (case-insensitive)."""
    return group_service.join_group(db, user_id, request.code)


@router.get("/my-group", response_model=Optional[GroupResponse])
def get_my_group(
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """The caller's group, or null when they are not in one."""
    return group_service.get_my_group(db, user_id)


@router.get("/{group_id}", response_model=GroupDetailResponse)
def get_group_detail(
    group_id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return group_service.get_group_detail(db, group_id, user_id)


@router.get("/{group_id}/progress", response_model=List[GroupProgressResponse])
def get_group_progress(
    group_id: int,
    limit: Optional[int] = Query(None, ge=1),
    user_id: int = Depends(get_current_user_id),
    filters: ProgressFilters = Depends(progress_filters),
    db: Session = Depends(get_db),
):
    """Members' entries, newest first."""
    return group_service.get_group_progress(db, group_id, user_id, filters, limit)


@router.get("/{group_id}/leaderboard", response_model=List[LeaderboardEntry])
def get_group_leaderboard(
    group_id: int,
    user_id: int = Depends(get_current_user_id),
    filters: ProgressFilters = Depends(progress_filters),
    db: Session = Depends(get_db),
):
    return leaderboard.group_leaderboard(db, group_id, user_id, filters)


@router.get("/{group_id}/leaders", response_model=List[MetricLeader])
def get_metric_leaders(
    group_id: int,
    user_id: int = Depends(get_current_user_id),
    filters: ProgressFilters = Depends(progress_filters),
    db: Session = Depends(get_db),
):
    """Top member per (category, metric)."""
    return leaderboard.group_metric_leaders(db, group_id, user_id, filters)


@router.delete("/{group_id}/leave", response_model=LeaveGroupResponse)
def leave_group(
    group_id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    group_deleted = group_service.leave_group(db, group_id, user_id)
    return {"message": "Left group successfully", "group_deleted": group_deleted}
