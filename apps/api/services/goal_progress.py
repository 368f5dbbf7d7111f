"""
Goal progress.

A goal names a (category, metric) pair with a start and target value.
Progress is how far the latest recorded value has moved from start toward
target; trend compares the average of the newer half of the entries with
the older half.
"""
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from models import ProgressEntry, User

TREND_UP = "up"
TREND_DOWN = "down"
TREND_NEUTRAL = "neutral"

TREND_UP_RATIO = 1.05
TREND_DOWN_RATIO = 0.95


def progress_percent(start_value: float, target_value: float, current_value: Optional[float]) -> float:
    """Percent of the way from start to target, clamped to [0, 100]."""
    if current_value is None or target_value == start_value:
        return 0.0
    percent = (current_value - start_value) / (target_value - start_value) * 100
    return round(max(0.0, min(100.0, percent)), 2)


def trend(values: Sequence[float]) -> str:
    """
    values are oldest first. Fewer than two values is always neutral.
    """
    if len(values) < 2:
        return TREND_NEUTRAL

    midpoint = len(values) // 2
    older = values[:midpoint]
    newer = values[midpoint:]
    older_avg = sum(older) / len(older)
    newer_avg = sum(newer) / len(newer)

    if newer_avg > older_avg * TREND_UP_RATIO:
        return TREND_UP
    if newer_avg < older_avg * TREND_DOWN_RATIO:
        return TREND_DOWN
    return TREND_NEUTRAL


def evaluate_goal(goal: dict, values: Sequence[float]) -> dict:
    current = values[-1] if values else None
    return {
        "goal": goal,
        "current_value": current if current is not None else goal["start_value"],
        "progress_percent": progress_percent(goal["start_value"], goal["target_value"], current),
        "trend": trend(values),
        "entry_count": len(values),
    }


def goals_progress(db: Session, user: User) -> List[dict]:
    results = []
    for goal in user.goals or []:
        values = [
            value for (value,) in db.query(ProgressEntry.value)
            .filter(
                ProgressEntry.user_id == user.id,
                ProgressEntry.category == goal["category"],
                ProgressEntry.metric == goal["metric"],
            )
            .order_by(ProgressEntry.date.asc(), ProgressEntry.created_at.asc(), ProgressEntry.id.asc())
            .all()
        ]
        results.append(evaluate_goal(goal, values))
    return results
