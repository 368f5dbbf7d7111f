"""
Group Registry

Small comparison groups joined by invite code. A user belongs to at most
one group (UNIQUE group_members.user_id); a group with no members left is
deleted.
"""
import logging
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.config import settings
from core.exceptions import ConflictError, ForbiddenError, InternalError, NotFoundError, ValidationError
from models import Group, GroupMember, ProgressEntry, User
from services.group_codes import (
    GroupCodeExhaustedError,
    generate_unique_group_code,
    normalize_group_code,
)
from services.progress_service import ProgressFilters, apply_filters, clamp_limit, newest_first

logger = logging.getLogger(__name__)

GROUP_PROGRESS_DEFAULT_LIMIT = 30

ALREADY_IN_GROUP = "You are already in a group. Leave your current group first."
NOT_A_MEMBER = "You are not a member of this group"


def _membership(db: Session, user_id: int) -> Optional[GroupMember]:
    return db.query(GroupMember).filter(GroupMember.user_id == user_id).first()


def require_member(db: Session, group_id: int, user_id: int) -> GroupMember:
    """
    Gate for group-scoped reads.

    Membership is checked before existence, so a non-member cannot probe
    which group ids exist.
    """
    member = db.query(GroupMember).filter(
        GroupMember.group_id == group_id,
        GroupMember.user_id == user_id,
    ).first()
    if not member:
        raise ForbiddenError(NOT_A_MEMBER)
    return member


def _member_count(db: Session, group_id: int) -> int:
    return db.query(func.count(GroupMember.id)).filter(GroupMember.group_id == group_id).scalar() or 0


def group_summary(db: Session, group: Group) -> dict:
    creator = group.creator
    return {
        "id": group.id,
        "name": group.name,
        "code": group.code,
        "creator_id": group.creator_id,
        "description": group.description,
        "member_count": _member_count(db, group.id),
        "creator_first_name": creator.first_name if creator else None,
        "creator_last_name": creator.last_name if creator else None,
        "created_at": group.created_at,
        "updated_at": group.updated_at,
    }


def _conflict_after_race(db: Session, user_id: int) -> ConflictError:
    db.rollback()
    if _membership(db, user_id):
        return ConflictError(ALREADY_IN_GROUP)
    return ConflictError("Group could not be saved, please try again")


def create_group(db: Session, user_id: int, name: Optional[str], description: Optional[str] = None) -> dict:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Group name is required", field="name")
    if _membership(db, user_id):
        raise ValidationError(ALREADY_IN_GROUP)

    def is_taken(code: str) -> bool:
        return db.query(Group.id).filter(Group.code == code).first() is not None

    try:
        code = generate_unique_group_code(is_taken, settings.GROUP_CODE_MAX_ATTEMPTS)
    except GroupCodeExhaustedError:
        logger.error("Group code space exhausted", extra={"extra_fields": {"user_id": user_id}})
        raise InternalError("Failed to generate unique code")

    group = Group(name=name, code=code, creator_id=user_id, description=(description or "").strip() or None)
    db.add(group)
    try:
        db.flush()
        db.add(GroupMember(group_id=group.id, user_id=user_id))
        db.commit()
    except IntegrityError:
        raise _conflict_after_race(db, user_id)

    db.refresh(group)
    logger.info("Group created", extra={"extra_fields": {"group_id": group.id, "user_id": user_id}})
    return group_summary(db, group)


def join_group(db: Session, user_id: int, code: Optional[str]) -> dict:
    code = normalize_group_code(code)
    if not code:
        raise ValidationError("Group code is required", field="code")
    if _membership(db, user_id):
        raise ValidationError(ALREADY_IN_GROUP)

    group = db.query(Group).filter(Group.code == code).first()
    if not group:
        raise NotFoundError("Group not found")

    db.add(GroupMember(group_id=group.id, user_id=user_id))
    try:
        db.commit()
    except IntegrityError:
        raise _conflict_after_race(db, user_id)

    logger.info("Group joined", extra={"extra_fields": {"group_id": group.id, "user_id": user_id}})
    return group_summary(db, group)


def get_my_group(db: Session, user_id: int) -> Optional[dict]:
    membership = _membership(db, user_id)
    if not membership:
        return None
    return group_summary(db, membership.group)


def get_group_detail(db: Session, group_id: int, user_id: int) -> dict:
    require_member(db, group_id, user_id)
    group = db.query(Group).filter(Group.id == group_id).first()
    if not group:
        raise NotFoundError("Group not found")

    detail = group_summary(db, group)
    detail["members"] = [
        {
            "id": member.user.id,
            "first_name": member.user.first_name,
            "last_name": member.user.last_name,
            "avatar_url": member.user.avatar_url,
            "joined_at": member.joined_at,
        }
        for member in group.members
    ]
    return detail


def member_rows(db: Session, group_id: int) -> List[tuple]:
    """(user_id, first_name, last_name, avatar_url) in join order."""
    return (
        db.query(User.id, User.first_name, User.last_name, User.avatar_url)
        .join(GroupMember, GroupMember.user_id == User.id)
        .filter(GroupMember.group_id == group_id)
        .order_by(GroupMember.joined_at.asc(), GroupMember.id.asc())
        .all()
    )


def group_entries_query(db: Session, group_id: int, filters: Optional[ProgressFilters] = None):
    """Entries of current members, joined with the author's profile."""
    query = (
        db.query(ProgressEntry, User.first_name, User.last_name, User.avatar_url)
        .join(GroupMember, GroupMember.user_id == ProgressEntry.user_id)
        .join(User, User.id == ProgressEntry.user_id)
        .filter(GroupMember.group_id == group_id)
    )
    return apply_filters(query, filters)


def get_group_progress(
    db: Session,
    group_id: int,
    user_id: int,
    filters: Optional[ProgressFilters] = None,
    limit: Optional[int] = None,
) -> List[dict]:
    require_member(db, group_id, user_id)
    rows = (
        newest_first(group_entries_query(db, group_id, filters))
        .limit(clamp_limit(limit, default=GROUP_PROGRESS_DEFAULT_LIMIT))
        .all()
    )
    return [
        {
            "id": entry.id,
            "user_id": entry.user_id,
            "category": entry.category,
            "metric": entry.metric,
            "value": entry.value,
            "unit": entry.unit,
            "notes": entry.notes,
            "date": entry.date,
            "created_at": entry.created_at,
            "updated_at": entry.updated_at,
            "first_name": first_name,
            "last_name": last_name,
            "avatar_url": avatar_url,
        }
        for entry, first_name, last_name, avatar_url in rows
    ]


def leave_group(db: Session, group_id: int, user_id: int, commit: bool = True) -> bool:
    """
    Remove the caller's membership; delete the group if it is now empty.

    Returns True when the group was deleted.
    """
    member = db.query(GroupMember).filter(
        GroupMember.group_id == group_id,
        GroupMember.user_id == user_id,
    ).first()
    if not member:
        raise NotFoundError(NOT_A_MEMBER)

    db.delete(member)
    db.flush()

    group_deleted = False
    if _member_count(db, group_id) == 0:
        db.query(Group).filter(Group.id == group_id).delete(synchronize_session=False)
        group_deleted = True

    if commit:
        db.commit()
    logger.info(
        "Group left",
        extra={"extra_fields": {"group_id": group_id, "user_id": user_id, "group_deleted": group_deleted}},
    )
    return group_deleted
