"""
Session & Token Issuer

Owns every credential lifecycle transition:
- register: create the account
- login: mint an access + refresh pair
- refresh: single-use rotation of a stored refresh token
- logout: revoke one refresh token (idempotent)
- forgot / reset password: opaque single-use reset tokens
- change password

Each state change commits once, so a failure part-way leaves the
previous state intact.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.account_security import is_account_locked, record_login_attempt
from core.config import settings
from core.exceptions import APIException, ConflictError, UnauthorizedError, ValidationError
from core.password_policy import validate_password
from core.security import (
    TOKEN_TYPE_REFRESH,
    create_access_token,
    create_refresh_token,
    decode_token,
    generate_opaque_token,
    get_password_hash,
    verify_password,
)
from models import PasswordResetToken, RefreshToken, User
from services.email_service import email_service

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"
INVALID_REFRESH_TOKEN = "Invalid or expired refresh token"
INVALID_RESET_TOKEN = "Invalid or expired reset token"
ACCOUNT_LOCKED = "Too many failed login attempts. Please try again later."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _check_password_policy(password: str) -> None:
    is_valid, errors = validate_password(password)
    if not is_valid:
        raise ValidationError(errors[0], field="password")


def _session_payload(user: User, access_token: str, refresh_token: str) -> dict:
    return {
        "access_token": access_token,
        "refresh_token": refresh_token,
        "token_type": "bearer",
        "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        "user": user,
    }


def _issue_tokens(db: Session, user_id: int) -> Tuple[str, str]:
    """
    Mint an access/refresh pair and stage the refresh row.

    Expired rows are purged and the oldest active ones evicted so that, with
    the new row, the user holds at most MAX_ACTIVE_REFRESH_TOKENS. The
    caller commits.
    """
    now = _utcnow()
    db.query(RefreshToken).filter(
        RefreshToken.user_id == user_id,
        RefreshToken.expires_at <= now,
    ).delete(synchronize_session=False)

    active_ids = [
        row.id for row in db.query(RefreshToken.id)
        .filter(RefreshToken.user_id == user_id)
        .order_by(RefreshToken.created_at.asc(), RefreshToken.id.asc())
        .all()
    ]
    overflow = len(active_ids) - (settings.MAX_ACTIVE_REFRESH_TOKENS - 1)
    if overflow > 0:
        db.query(RefreshToken).filter(
            RefreshToken.id.in_(active_ids[:overflow])
        ).delete(synchronize_session=False)

    claims = {"sub": str(user_id)}
    access_token = create_access_token(claims)
    refresh_token = create_refresh_token(claims)
    db.add(RefreshToken(
        user_id=user_id,
        token=refresh_token,
        expires_at=now + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    ))
    return access_token, refresh_token


def register(db: Session, email: str, password: str, first_name: str, last_name: str) -> User:
    email = normalize_email(email)
    first_name = first_name.strip()
    last_name = last_name.strip()
    if not first_name:
        raise ValidationError("first_name is required", field="first_name")
    if not last_name:
        raise ValidationError("last_name is required", field="last_name")

    if db.query(User.id).filter(User.email == email).first():
        raise ConflictError("Email already registered")

    _check_password_policy(password)

    user = User(
        email=email,
        password_hash=get_password_hash(password),
        first_name=first_name,
        last_name=last_name,
        goals=[],
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Email already registered")

    db.refresh(user)
    logger.info("User registered", extra={"extra_fields": {"user_id": user.id}})
    return user


def login(db: Session, email: str, password: str) -> dict:
    email = normalize_email(email)

    locked, retry_after = is_account_locked(email)
    if locked:
        logger.warning("Login attempt on locked account", extra={"extra_fields": {"email": email}})
        raise APIException(
            status_code=429,
            detail=ACCOUNT_LOCKED,
            error_code="ACCOUNT_LOCKED",
            headers={"Retry-After": str(retry_after)},
        )

    user = db.query(User).filter(User.email == email).first()
    password_ok = verify_password(password, user.password_hash if user else None)
    if not user or not password_ok or not user.is_active:
        record_login_attempt(email, success=False)
        raise UnauthorizedError(INVALID_CREDENTIALS)

    record_login_attempt(email, success=True)
    access_token, refresh_token = _issue_tokens(db, user.id)
    db.commit()
    logger.info("User logged in", extra={"extra_fields": {"user_id": user.id}})
    return _session_payload(user, access_token, refresh_token)


def refresh(db: Session, refresh_token: str) -> dict:
    """
    Exchange a refresh token for a new pair.

    The presented token is deleted in the same transaction that stores its
    successor; a second use of the same token (sequential or racing) finds
    nothing to delete and is rejected.
    """
    payload = decode_token(refresh_token, TOKEN_TYPE_REFRESH)
    if not payload:
        raise UnauthorizedError(INVALID_REFRESH_TOKEN)

    row = db.query(RefreshToken).filter(
        RefreshToken.token == refresh_token,
        RefreshToken.expires_at > _utcnow(),
    ).first()
    if not row or str(row.user_id) != str(payload.get("sub")):
        raise UnauthorizedError(INVALID_REFRESH_TOKEN)

    user_id = row.user_id
    deleted = db.query(RefreshToken).filter(RefreshToken.id == row.id).delete(synchronize_session=False)
    if deleted != 1:
        db.rollback()
        raise UnauthorizedError(INVALID_REFRESH_TOKEN)

    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.is_active:
        db.rollback()
        raise UnauthorizedError(INVALID_REFRESH_TOKEN)

    access_token, new_refresh_token = _issue_tokens(db, user_id)
    db.commit()
    return {
        "access_token": access_token,
        "refresh_token": new_refresh_token,
        "token_type": "bearer",
        "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    }


def logout(db: Session, refresh_token: Optional[str]) -> None:
    """Revoke one refresh token. Unknown or missing tokens are not an error."""
    if not refresh_token:
        return
    db.query(RefreshToken).filter(RefreshToken.token == refresh_token).delete(synchronize_session=False)
    db.commit()


def revoke_all_sessions(db: Session, user_id: int) -> int:
    """Stage deletion of every refresh token for a user; the caller commits."""
    return db.query(RefreshToken).filter(RefreshToken.user_id == user_id).delete(synchronize_session=False)


def forgot_password(db: Session, email: str) -> None:
    """
    Start a password reset.

    Behaves identically whether or not the email is registered; the
    router always answers with the same generic message.
    """
    email = normalize_email(email)
    user = db.query(User).filter(User.email == email).first()
    if not user or not user.is_active:
        logger.info("Password reset requested for unknown email")
        return

    token = generate_opaque_token()
    db.add(PasswordResetToken(
        user_id=user.id,
        token=token,
        expires_at=_utcnow() + timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES),
    ))
    db.commit()

    email_service.send_password_reset_email(user.email, user.first_name, token)
    logger.info("Password reset token issued", extra={"extra_fields": {"user_id": user.id}})


def reset_password(db: Session, token: str, new_password: str) -> None:
    """
    Consume a reset token and set a new password.

    Marking the token used, storing the new hash and revoking every refresh
    token for the user commit together.
    """
    _check_password_policy(new_password)

    row = db.query(PasswordResetToken).filter(
        PasswordResetToken.token == token,
        PasswordResetToken.used.is_(False),
        PasswordResetToken.expires_at > _utcnow(),
    ).first()
    if not row:
        raise ValidationError(INVALID_RESET_TOKEN, field="token")

    # Conditional update so two concurrent resets cannot both consume the token
    claimed = db.query(PasswordResetToken).filter(
        PasswordResetToken.id == row.id,
        PasswordResetToken.used.is_(False),
    ).update({PasswordResetToken.used: True}, synchronize_session=False)
    if claimed != 1:
        db.rollback()
        raise ValidationError(INVALID_RESET_TOKEN, field="token")

    user = db.query(User).filter(User.id == row.user_id).first()
    user.password_hash = get_password_hash(new_password)
    revoked = revoke_all_sessions(db, user.id)
    db.commit()
    logger.info(
        "Password reset completed",
        extra={"extra_fields": {"user_id": user.id, "sessions_revoked": revoked}},
    )


def change_password(db: Session, user: User, current_password: str, new_password: str) -> None:
    if not verify_password(current_password, user.password_hash):
        raise UnauthorizedError("Current password is incorrect")
    _check_password_policy(new_password)

    user.password_hash = get_password_hash(new_password)
    revoke_all_sessions(db, user.id)
    db.commit()
    logger.info("Password changed", extra={"extra_fields": {"user_id": user.id}})
