"""
Leaderboards

Group standings, per-metric leaders within a group, and the global board.
Ranking is done in Python over small per-group result sets; the global
board aggregates in SQL.
"""
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import and_, func
from sqlalchemy.orm import Session

from models import ProgressEntry, User
from services.group_service import group_entries_query, member_rows, require_member
from services.progress_service import ProgressFilters

GLOBAL_DEFAULT_LIMIT = 10
GLOBAL_MAX_LIMIT = 100

Member = Tuple[int, str, str, Optional[str]]


def rank_members(members: Sequence[Member], totals: Dict[int, Tuple[int, float]]) -> List[dict]:
    """
    Order members by entry count, then summed value, then join order.

    members must already be in join order; members missing from totals
    are ranked with zero entries.
    """
    standings = []
    for join_index, (user_id, first_name, last_name, avatar_url) in enumerate(members):
        count, total = totals.get(user_id, (0, 0.0))
        standings.append({
            "user_id": user_id,
            "first_name": first_name,
            "last_name": last_name,
            "avatar_url": avatar_url,
            "total_entries": int(count),
            "total_value": float(total or 0.0),
            "_join_index": join_index,
        })

    standings.sort(key=lambda s: (-s["total_entries"], -s["total_value"], s["_join_index"]))
    for rank, standing in enumerate(standings, start=1):
        del standing["_join_index"]
        standing["rank"] = rank
    return standings


def pick_metric_leaders(
    members: Sequence[Member],
    entries: Iterable[Tuple[int, str, str, float, Optional[str], date]],
) -> List[dict]:
    """
    Best value per (category, metric).

    Ties go to the earlier date, then to the member who joined first.
    entries are (user_id, category, metric, value, unit, date).
    """
    join_index = {member[0]: i for i, member in enumerate(members)}
    names = {member[0]: member[1:3] for member in members}

    best: Dict[Tuple[str, str], tuple] = {}
    participants: Dict[Tuple[str, str], set] = {}
    for user_id, category, metric, value, unit, entry_date in entries:
        if user_id not in join_index:
            continue
        key = (category, metric)
        participants.setdefault(key, set()).add(user_id)
        candidate = (-value, entry_date, join_index[user_id], user_id, value, unit)
        if key not in best or candidate[:3] < best[key][:3]:
            best[key] = candidate

    leaders = []
    for (category, metric), (_, entry_date, _, user_id, value, unit) in sorted(best.items()):
        first_name, last_name = names[user_id]
        leaders.append({
            "category": category,
            "metric": metric,
            "user_id": user_id,
            "first_name": first_name,
            "last_name": last_name,
            "value": value,
            "unit": unit,
            "date": entry_date,
            "participants": len(participants[(category, metric)]),
        })
    return leaders


def group_leaderboard(
    db: Session,
    group_id: int,
    user_id: int,
    filters: Optional[ProgressFilters] = None,
) -> List[dict]:
    require_member(db, group_id, user_id)
    members = member_rows(db, group_id)

    totals_query = group_entries_query(db, group_id, filters).with_entities(
        ProgressEntry.user_id,
        func.count(ProgressEntry.id),
        func.coalesce(func.sum(ProgressEntry.value), 0.0),
    ).group_by(ProgressEntry.user_id)
    totals = {uid: (count, total) for uid, count, total in totals_query.all()}

    return rank_members(members, totals)


def group_metric_leaders(
    db: Session,
    group_id: int,
    user_id: int,
    filters: Optional[ProgressFilters] = None,
) -> List[dict]:
    require_member(db, group_id, user_id)
    members = member_rows(db, group_id)
    entries = group_entries_query(db, group_id, filters).with_entities(
        ProgressEntry.user_id,
        ProgressEntry.category,
        ProgressEntry.metric,
        ProgressEntry.value,
        ProgressEntry.unit,
        ProgressEntry.date,
    ).all()
    return pick_metric_leaders(members, entries)


def global_leaderboard(
    db: Session,
    category: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    limit: Optional[int] = None,
) -> List[dict]:
    """Active users ranked by summed value across matching entries."""
    limit = max(1, min(limit or GLOBAL_DEFAULT_LIMIT, GLOBAL_MAX_LIMIT))

    # Filters live in the join condition so users without matching entries still get a zero row
    join_conditions = [ProgressEntry.user_id == User.id]
    if category:
        join_conditions.append(ProgressEntry.category == category)
    if start_date:
        join_conditions.append(ProgressEntry.date >= start_date)
    if end_date:
        join_conditions.append(ProgressEntry.date <= end_date)

    total_value = func.coalesce(func.sum(ProgressEntry.value), 0.0)
    total_entries = func.count(ProgressEntry.id)
    rows = (
        db.query(User.id, User.first_name, User.last_name, User.avatar_url, total_entries, total_value)
        .outerjoin(ProgressEntry, and_(*join_conditions))
        .filter(User.is_active.is_(True))
        .group_by(User.id, User.first_name, User.last_name, User.avatar_url)
        .order_by(total_value.desc(), total_entries.desc(), User.id.asc())
        .limit(limit)
        .all()
    )

    return [
        {
            "rank": rank,
            "user_id": uid,
            "first_name": first_name,
            "last_name": last_name,
            "avatar_url": avatar_url,
            "total_entries": int(count),
            "total_value": float(total or 0.0),
        }
        for rank, (uid, first_name, last_name, avatar_url, count, total) in enumerate(rows, start=1)
    ]
