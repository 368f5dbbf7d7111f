"""
Security Tests: every non-auth endpoint requires a valid access token.

Run with: pytest tests/test_security_auth_required.py -v
"""
import pytest
from fastapi.testclient import TestClient

from main import app

client = TestClient(app)

PROTECTED = [
    ("GET", "/auth/me"),
    ("POST", "/auth/change-password"),
    ("GET", "/users/me/goals/progress"),
    ("GET", "/users/1"),
    ("PUT", "/users/1"),
    ("DELETE", "/users/1"),
    ("GET", "/progress"),
    ("POST", "/progress"),
    ("GET", "/progress/1"),
    ("PUT", "/progress/1"),
    ("DELETE", "/progress/1"),
    ("POST", "/groups"),
    ("POST", "/groups/join"),
    ("GET", "/groups/my-group"),
    ("GET", "/groups/1"),
    ("GET", "/groups/1/progress"),
    ("GET", "/groups/1/leaderboard"),
    ("GET", "/groups/1/leaders"),
    ("DELETE", "/groups/1/leave"),
    ("GET", "/compare/leaderboard"),
    ("GET", "/notifications"),
    ("POST", "/notifications"),
    ("PUT", "/notifications/1/read"),
    ("DELETE", "/notifications/1"),
    ("GET", "/settings"),
    ("GET", "/settings/metrics"),
    ("PUT", "/settings/max_progress_display"),
]


class TestAuthRequired:
    @pytest.mark.parametrize("method,path", PROTECTED)
    def test_requires_auth(self, method, path):
        response = client.request(method, path, json={})
        assert response.status_code == 401, f"{method} {path}: expected 401, got {response.status_code}"
        assert response.headers.get("WWW-Authenticate") == "Bearer"

    @pytest.mark.parametrize("method,path", PROTECTED[:5])
    def test_rejects_garbage_token(self, method, path):
        response = client.request(method, path, json={}, headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 401


class TestPublicEndpoints:
    def test_ping(self):
        assert client.get("/ping").json() == {"status": "ok"}

    def test_security_headers_present(self):
        response = client.get("/ping")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"

    def test_error_body_shape(self):
        response = client.get("/auth/me")
        body = response.json()
        assert set(body) == {"detail", "error_code"}
        assert body["error_code"] == "UNAUTHORIZED"
