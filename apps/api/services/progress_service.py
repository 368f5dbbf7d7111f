"""
Progress ledger: owned, dated measurement entries.
"""
import logging
from dataclasses import dataclass
from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Query, Session

from core.exceptions import NotFoundError, ValidationError
from models import ProgressEntry
from schemas import PROGRESS_CATEGORIES, ProgressCreate, ProgressUpdate

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 100
MAX_LIMIT = 500

REQUIRED_FIELDS = ("category", "metric", "value", "date")


@dataclass
class ProgressFilters:
    category: Optional[str] = None
    metric: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


def build_filters(
    category: Optional[str] = None,
    metric: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> ProgressFilters:
    """Normalize query-string filters; date bounds are inclusive."""
    if category is not None:
        category = category.strip().lower()
        if category not in PROGRESS_CATEGORIES:
            raise ValidationError(f"Unknown category: {category}", field="category")
    if metric is not None:
        metric = metric.strip() or None
    if start_date and end_date and start_date > end_date:
        raise ValidationError("start_date must not be after end_date", field="start_date")
    return ProgressFilters(category=category, metric=metric, start_date=start_date, end_date=end_date)


def apply_filters(query: Query, filters: Optional[ProgressFilters]) -> Query:
    if filters is None:
        return query
    if filters.category:
        query = query.filter(ProgressEntry.category == filters.category)
    if filters.metric:
        query = query.filter(ProgressEntry.metric == filters.metric)
    if filters.start_date:
        query = query.filter(ProgressEntry.date >= filters.start_date)
    if filters.end_date:
        query = query.filter(ProgressEntry.date <= filters.end_date)
    return query


def newest_first(query: Query) -> Query:
    return query.order_by(
        ProgressEntry.date.desc(),
        ProgressEntry.created_at.desc(),
        ProgressEntry.id.desc(),
    )


def clamp_limit(limit: Optional[int], default: int = DEFAULT_LIMIT) -> int:
    if limit is None:
        return default
    return max(1, min(limit, MAX_LIMIT))


def create_entry(db: Session, user_id: int, data: ProgressCreate) -> ProgressEntry:
    entry = ProgressEntry(user_id=user_id, **data.model_dump())
    db.add(entry)
    db.commit()
    db.refresh(entry)
    logger.info(
        "Progress entry created",
        extra={"extra_fields": {"user_id": user_id, "entry_id": entry.id, "category": entry.category}},
    )
    return entry


def list_entries(
    db: Session,
    user_id: int,
    filters: Optional[ProgressFilters] = None,
    limit: Optional[int] = None,
    offset: int = 0,
) -> List[ProgressEntry]:
    query = db.query(ProgressEntry).filter(ProgressEntry.user_id == user_id)
    query = newest_first(apply_filters(query, filters))
    return query.offset(max(0, offset)).limit(clamp_limit(limit)).all()


def get_entry(db: Session, user_id: int, entry_id: int) -> ProgressEntry:
    # Someone else's entry is indistinguishable from a missing one
    entry = db.query(ProgressEntry).filter(
        ProgressEntry.id == entry_id,
        ProgressEntry.user_id == user_id,
    ).first()
    if not entry:
        raise NotFoundError("Progress entry not found")
    return entry


def update_entry(db: Session, user_id: int, entry_id: int, data: ProgressUpdate) -> ProgressEntry:
    changes = data.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("No fields to update")
    for field in REQUIRED_FIELDS:
        if field in changes and changes[field] is None:
            raise ValidationError(f"{field} cannot be null", field=field)

    entry = get_entry(db, user_id, entry_id)
    for field, value in changes.items():
        setattr(entry, field, value)
    db.commit()
    db.refresh(entry)
    return entry


def delete_entry(db: Session, user_id: int, entry_id: int) -> None:
    entry = get_entry(db, user_id, entry_id)
    db.delete(entry)
    db.commit()
