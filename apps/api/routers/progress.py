"""
Progress API endpoints.

CRUD over the caller's own entries. Another user's entry id is a 404.
"""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from core.auth import get_current_user_id
from core.database import get_db
from schemas import (
    COMMON_METRICS,
    PROGRESS_CATEGORIES,
    CategoriesResponse,
    MessageResponse,
    ProgressCreate,
    ProgressResponse,
    ProgressUpdate,
)
from services import progress_service

router = APIRouter(prefix="/progress", tags=["progress"])


@router.get("/categories", response_model=CategoriesResponse)
def list_categories():
    return {"categories": list(PROGRESS_CATEGORIES), "common_metrics": COMMON_METRICS}


@router.post("", response_model=ProgressResponse, status_code=status.HTTP_201_CREATED)
def create_progress(
    entry: ProgressCreate,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return progress_service.create_entry(db, user_id, entry)


@router.get("", response_model=List[ProgressResponse])
def list_progress(
    category: Optional[str] = Query(None),
    metric: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    limit: int = Query(progress_service.DEFAULT_LIMIT, ge=1, le=progress_service.MAX_LIMIT),
    offset: int = Query(0, ge=0),
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """The caller's entries, newest first. Date bounds are inclusive."""
    filters = progress_service.build_filters(category, metric, start_date, end_date)
    return progress_service.list_entries(db, user_id, filters, limit=limit, offset=offset)


@router.get("/{progress_id}", response_model=ProgressResponse)
def get_progress(
    progress_id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return progress_service.get_entry(db, user_id, progress_id)


@router.put("/{progress_id}", response_model=ProgressResponse)
def update_progress(
    progress_id: int,
    changes: ProgressUpdate,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Partial update; only the fields present in the body change."""
    return progress_service.update_entry(db, user_id, progress_id, changes)


@router.delete("/{progress_id}", response_model=MessageResponse)
def delete_progress(
    progress_id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    progress_service.delete_entry(db, user_id, progress_id)
    return {"message": "Progress entry deleted"}
