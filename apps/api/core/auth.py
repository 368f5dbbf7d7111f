"""
Authentication dependencies.

Provides FastAPI dependencies for:
- Stateless bearer-token validation (no database lookup)
- Loading the current user row when a handler needs it
"""
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Optional

from core.database import get_db
from core.exceptions import NotFoundError, UnauthorizedError
from core.security import get_user_id_from_token
from models import User

# Use auto_error=False to handle missing credentials manually and return 401 (not 403)
security = HTTPBearer(auto_error=False)


def authenticate_request(authorization: Optional[str]) -> int:
    """
    Resolve a raw Authorization header value to a user id.

    Access tokens are not revocable: only signature and expiry are checked.
    """
    if not authorization:
        raise UnauthorizedError("Not authenticated")

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise UnauthorizedError("Invalid authentication credentials")

    user_id = get_user_id_from_token(token.strip())
    if user_id is None:
        raise UnauthorizedError("Invalid authentication credentials")
    return user_id


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> int:
    """Gate for every protected route."""
    if not credentials:
        raise UnauthorizedError("Not authenticated")
    return authenticate_request(f"{credentials.scheme} {credentials.credentials}")


def get_current_user(
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db)
) -> User:
    """
    Get the current authenticated user row.

    A valid token for a deleted account is a 404, not a 401: the token
    itself is still cryptographically sound.
    """
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User not found")
    return user
