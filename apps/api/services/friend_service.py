"""
Friends

Invite another user by email, accept, and compare progress one-to-one.
A single user_friends row links two users in both directions; only an
accepted link allows comparison.
"""
import logging
from typing import List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from models import Notification, ProgressEntry, User, UserFriend
from services.progress_service import ProgressFilters, apply_filters, newest_first
from services.token_service import normalize_email

logger = logging.getLogger(__name__)

PENDING = "pending"
ACCEPTED = "accepted"

FRIENDSHIP_EXISTS = "Friendship already exists"


def _link(db: Session, user_id: int, other_id: int) -> Optional[UserFriend]:
    return db.query(UserFriend).filter(
        or_(
            and_(UserFriend.user_id == user_id, UserFriend.friend_id == other_id),
            and_(UserFriend.user_id == other_id, UserFriend.friend_id == user_id),
        )
    ).first()


def invite_friend(db: Session, user_id: int, friend_email: Optional[str]) -> UserFriend:
    if not friend_email:
        raise ValidationError("Friend email is required", field="friend_email")

    friend = db.query(User).filter(User.email == normalize_email(friend_email)).first()
    if not friend:
        raise NotFoundError("User not found")
    if friend.id == user_id:
        raise ValidationError("Cannot add yourself as a friend", field="friend_email")
    if _link(db, user_id, friend.id):
        raise ConflictError(FRIENDSHIP_EXISTS)

    invite = UserFriend(user_id=user_id, friend_id=friend.id, status=PENDING)
    db.add(invite)
    db.add(Notification(
        user_id=friend.id,
        title="New Friend Invitation",
        message="You have received a friend invitation to compare progress!",
        type="info",
    ))
    try:
        db.commit()
    except IntegrityError:
        # The same pair invited concurrently
        db.rollback()
        raise ConflictError(FRIENDSHIP_EXISTS)

    db.refresh(invite)
    logger.info("Friend invited", extra={"extra_fields": {"user_id": user_id, "friend_id": friend.id}})
    return invite


def pending_invites(db: Session, user_id: int) -> List[dict]:
    """Invitations waiting for this user, newest first."""
    rows = (
        db.query(UserFriend, User)
        .join(User, User.id == UserFriend.user_id)
        .filter(UserFriend.friend_id == user_id, UserFriend.status == PENDING)
        .order_by(UserFriend.created_at.desc(), UserFriend.id.desc())
        .all()
    )
    return [
        {
            "id": invite.id,
            "user_id": inviter.id,
            "first_name": inviter.first_name,
            "last_name": inviter.last_name,
            "avatar_url": inviter.avatar_url,
            "status": invite.status,
            "created_at": invite.created_at,
        }
        for invite, inviter in rows
    ]


def accept_invite(db: Session, user_id: int, invite_id: int) -> UserFriend:
    # Only the invitee can accept, and only once
    updated = db.query(UserFriend).filter(
        UserFriend.id == invite_id,
        UserFriend.friend_id == user_id,
        UserFriend.status == PENDING,
    ).update({UserFriend.status: ACCEPTED}, synchronize_session=False)
    if updated != 1:
        db.rollback()
        raise NotFoundError("Invitation not found")

    invite = db.query(UserFriend).filter(UserFriend.id == invite_id).one()
    db.add(Notification(
        user_id=invite.user_id,
        title="Friend Invitation Accepted",
        message="Your friend invitation was accepted. You can now compare progress!",
        type="success",
    ))
    db.commit()
    db.refresh(invite)
    logger.info("Friend invitation accepted", extra={"extra_fields": {"invite_id": invite_id, "user_id": user_id}})
    return invite


def _side(user: User, entries: List[ProgressEntry]) -> dict:
    total = len(entries)
    return {
        "user": user,
        "progress": entries,
        "total_entries": total,
        "average_value": sum(e.value for e in entries) / total if total else 0.0,
    }


def compare_with_friend(
    db: Session,
    user_id: int,
    friend_id: int,
    filters: Optional[ProgressFilters] = None,
) -> dict:
    link = _link(db, user_id, friend_id)
    if not link or link.status != ACCEPTED:
        raise ForbiddenError("Users are not friends")

    users = {u.id: u for u in db.query(User).filter(User.id.in_((user_id, friend_id))).all()}
    query = db.query(ProgressEntry).filter(ProgressEntry.user_id.in_((user_id, friend_id)))
    entries = newest_first(apply_filters(query, filters)).all()

    return {
        "current_user": _side(users[user_id], [e for e in entries if e.user_id == user_id]),
        "friend": _side(users[friend_id], [e for e in entries if e.user_id == friend_id]),
    }
