"""
Security utilities for authentication.

Provides:
- Password hashing (bcrypt)
- JWT access/refresh token generation and validation
- Opaque single-use token generation (password reset)

SECURITY REQUIREMENTS:
- SECRET_KEY must be set via environment variable
- SECRET_KEY must be cryptographically secure (32+ characters)
- SECRET_KEY must be different for each environment (dev/staging/prod)
- SECRET_KEY must NEVER be committed to source control
"""
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict
from jose import JWTError, jwt
import bcrypt
from core.config import settings

# JWT settings - SECRET_KEY is required by config.py, will fail at startup if not set
SECRET_KEY = settings.SECRET_KEY

# Validate SECRET_KEY strength at module load
if len(SECRET_KEY) < 32:
    raise ValueError(
        "SECRET_KEY must be at least 32 characters. "
        "Generate with: python -c \"import secrets; print(secrets.token_urlsafe(32))\""
    )

ALGORITHM = settings.JWT_ALGORITHM
ACCESS_TOKEN_EXPIRE_MINUTES = settings.ACCESS_TOKEN_EXPIRE_MINUTES
REFRESH_TOKEN_EXPIRE_DAYS = settings.REFRESH_TOKEN_EXPIRE_DAYS

TOKEN_TYPE_ACCESS = "access"
TOKEN_TYPE_REFRESH = "refresh"

# bcrypt only looks at the first 72 bytes of input
BCRYPT_MAX_BYTES = 72

# Compared against when the email is unknown so both login failures cost one hash check
_DUMMY_HASH = bcrypt.hashpw(b"progress2win-timing-equalizer", bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS))


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify a password against a hash (constant-time inside bcrypt)."""
    encoded = plain_password.encode('utf-8')
    if len(encoded) > BCRYPT_MAX_BYTES:
        return False
    if not hashed_password:
        bcrypt.checkpw(encoded, _DUMMY_HASH)
        return False
    return bcrypt.checkpw(encoded, hashed_password.encode('utf-8'))


def get_password_hash(password: str) -> str:
    """Hash a password."""
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


def _encode(claims: Dict, expires_delta: timedelta) -> str:
    now = datetime.now(timezone.utc)
    to_encode = claims.copy()
    to_encode.update({"iat": now, "exp": now + expires_delta})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def create_access_token(data: Dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a short-lived JWT access token."""
    claims = dict(data, type=TOKEN_TYPE_ACCESS)
    return _encode(claims, expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))


def create_refresh_token(data: Dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a long-lived JWT refresh token.

    The random jti keeps two tokens minted for the same user in the same
    second distinct, since refresh tokens are stored and looked up by value.
    """
    claims = dict(data, type=TOKEN_TYPE_REFRESH, jti=secrets.token_hex(16))
    return _encode(claims, expires_delta or timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS))


def decode_token(token: str, expected_type: str) -> Optional[Dict]:
    """Decode a JWT, verifying signature, expiry and token type."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None
    if payload.get("type") != expected_type:
        return None
    return payload


def decode_access_token(token: str) -> Optional[Dict]:
    """Decode and validate a JWT access token."""
    return decode_token(token, TOKEN_TYPE_ACCESS)


def get_user_id_from_token(token: str) -> Optional[int]:
    """Extract user ID from an access token."""
    payload = decode_access_token(token)
    if not payload:
        return None
    try:
        return int(payload.get("sub"))
    except (TypeError, ValueError):
        return None


def generate_opaque_token() -> str:
    """Random URL-safe token for single-use links (password reset)."""
    return secrets.token_urlsafe(32)
