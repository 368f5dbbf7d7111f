"""
Pytest configuration and fixtures

Tests run against a throwaway SQLite file. Every test gets a freshly
created schema (with default settings seeded) that is dropped afterwards,
so nothing leaks between tests.
"""
import os
import sys
import tempfile
from uuid import uuid4

import pytest

# Environment must be in place before core.config is imported anywhere
_TEST_DB_DIR = tempfile.mkdtemp(prefix="progress2win-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TEST_DB_DIR, 'test.db')}"
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-testing-at-least-32-chars")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["EMAIL_ENABLED"] = "false"
os.environ["BCRYPT_ROUNDS"] = "10"
os.environ["LOG_FORMAT"] = "text"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["SENTRY_DSN"] = ""
os.environ["ENVIRONMENT"] = "test"

# Add the parent directory to the path so we can import from core/services
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.account_security import login_throttle
from core.database import Base, SessionLocal, engine
from core.security import create_access_token, get_password_hash
from models import User
from services.email_service import email_service
from services.settings_service import seed_default_settings

TEST_PASSWORD = "pw12345678"


@pytest.fixture(autouse=True)
def _fresh_schema():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        seed_default_settings(session)
    finally:
        session.close()
    login_throttle.reset()
    email_service.outbox.clear()

    yield

    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    """Plain session; the schema fixture throws everything away afterwards."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def make_user(db):
    """Factory for users with the known TEST_PASSWORD."""

    def _make(first_name: str = "Test", last_name: str = "User", email: str = None, **kwargs) -> User:
        user = User(
            email=email or f"{first_name.lower()}_{uuid4().hex[:8]}@example.com",
            password_hash=get_password_hash(kwargs.pop("password", TEST_PASSWORD)),
            first_name=first_name,
            last_name=last_name,
            goals=kwargs.pop("goals", []),
            **kwargs,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> dict:
        token = create_access_token({"sub": str(user.id)})
        return {"Authorization": f"Bearer {token}"}

    return _headers
