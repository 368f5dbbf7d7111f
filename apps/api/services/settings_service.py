"""
Global settings and dashboard metrics.
"""
import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import distinct, func
from sqlalchemy.orm import Session

from models import DEFAULT_SETTINGS, ProgressEntry, Setting, User

logger = logging.getLogger(__name__)

ACTIVE_USER_WINDOW_DAYS = 30


def seed_default_settings(db: Session) -> int:
    """Insert any missing default settings. Returns how many were added."""
    existing = {key for (key,) in db.query(Setting.key).all()}
    added = 0
    for key, value, description in DEFAULT_SETTINGS:
        if key not in existing:
            db.add(Setting(key=key, value=value, description=description))
            added += 1
    if added:
        db.commit()
        logger.info(f"Seeded {added} default settings")
    return added


def dashboard_metrics(db: Session) -> dict:
    """Totals plus users who logged progress in the last 30 days."""
    since = datetime.now(timezone.utc) - timedelta(days=ACTIVE_USER_WINDOW_DAYS)
    return {
        "total_users": db.query(func.count(User.id)).scalar() or 0,
        "total_progress": db.query(func.count(ProgressEntry.id)).scalar() or 0,
        "active_users": db.query(func.count(distinct(ProgressEntry.user_id)))
        .filter(ProgressEntry.created_at >= since)
        .scalar() or 0,
    }
