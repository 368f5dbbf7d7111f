"""
Session client tests: single-flight refresh against a fake transport, plus
one end-to-end run against the app.
"""
import threading
import time

import pytest
from fastapi.testclient import TestClient

from main import app
from services.session_client import ApiError, SessionClient, SessionExpiredError, SessionState


class FakeResponse:
    def __init__(self, status_code, body=None):
        self.status_code = status_code
        self._body = body

    def json(self):
        if self._body is None:
            raise ValueError("no body")
        return self._body


class FakeServer:
    """
    Minimal stand-in for the API. Refresh tokens are single use; /auth/refresh
    blocks on `gate` so tests can pile up concurrent callers.
    """

    def __init__(self, refresh_ok=True):
        self.valid_access = "access-1"
        self.refresh_tokens = {"refresh-0": ("access-1", "refresh-1")} if refresh_ok else {}
        self.gate = threading.Event()
        self.gate.set()
        self.lock = threading.Lock()
        self.refresh_calls = 0
        self.unauthorized = 0
        self.calls = []

    def request(self, method, url, headers=None, **kwargs):
        self.calls.append((method, url, kwargs))
        path = url.split("://", 1)[-1].split("/", 1)[-1]
        path = "/" + path
        if path == "/auth/login":
            return FakeResponse(200, {"access_token": "access-0", "refresh_token": "refresh-0"})
        if path == "/auth/refresh":
            with self.lock:
                self.refresh_calls += 1
            self.gate.wait(timeout=5)
            pair = self.refresh_tokens.pop(kwargs["json"]["refresh_token"], None)
            if pair is None:
                return FakeResponse(401, {"detail": "Invalid or expired refresh token", "error_code": "UNAUTHORIZED"})
            return FakeResponse(200, {"access_token": pair[0], "refresh_token": pair[1]})
        if path == "/auth/logout":
            return FakeResponse(200, {"success": True, "message": "Logged out"})
        if path == "/boom":
            return FakeResponse(500)

        if (headers or {}).get("Authorization") != f"Bearer {self.valid_access}":
            with self.lock:
                self.unauthorized += 1
            return FakeResponse(401, {"detail": "Could not validate credentials"})
        return FakeResponse(200, {"path": path})


def _signed_in(server, **kwargs):
    client = SessionClient("https://api.example.com", session=server, **kwargs)
    client.login("a@example.com", "pw12345678")
    return client


def _run_concurrently(client, server, n=5):
    results, errors = [], []

    def worker():
        try:
            results.append(client.get("/progress"))
        except Exception as e:
            errors.append(e)

    server.gate.clear()
    threads = [threading.Thread(target=worker) for _ in range(n)]
    for t in threads:
        t.start()
    # Release the refresh only once every caller has seen the 401
    for _ in range(500):
        if server.unauthorized >= n:
            break
        time.sleep(0.01)
    server.gate.set()
    for t in threads:
        t.join(timeout=5)
    return results, errors


class TestRefreshFlow:
    def test_retries_once_after_refresh(self):
        server = FakeServer()
        client = _signed_in(server)
        assert client.get("/progress") == {"path": "/progress"}
        assert client.access_token == "access-1"
        assert client.refresh_token == "refresh-1"
        assert client.refresh_count == 1
        assert client.state is SessionState.IDLE

    def test_concurrent_401s_share_one_refresh(self):
        server = FakeServer()
        client = _signed_in(server)
        results, errors = _run_concurrently(client, server)
        assert errors == []
        assert len(results) == 5
        assert server.refresh_calls == 1
        assert client.refresh_count == 1

    def test_stale_token_skips_refresh(self):
        server = FakeServer()
        client = _signed_in(server)
        client.get("/progress")
        # A caller that saw the old token rejected gets the new one for free
        assert client.refresh_access_token("access-0") == "access-1"
        assert server.refresh_calls == 1

    def test_rejected_refresh_is_shared_and_clears_tokens(self):
        server = FakeServer(refresh_ok=False)
        seen = []
        client = _signed_in(server, on_tokens_changed=lambda a, r: seen.append((a, r)))
        results, errors = _run_concurrently(client, server)
        assert results == []
        assert len(errors) == 5
        assert all(isinstance(e, SessionExpiredError) for e in errors)
        assert server.refresh_calls == 1
        assert client.access_token is None
        assert client.refresh_token is None
        assert seen[-1] == (None, None)

    def test_logout_during_refresh_stays_signed_out(self):
        server = FakeServer()
        client = _signed_in(server)
        errors = []

        def worker():
            try:
                client.get("/progress")
            except Exception as e:
                errors.append(e)

        server.gate.clear()
        thread = threading.Thread(target=worker)
        thread.start()
        for _ in range(500):
            if server.refresh_calls >= 1:
                break
            time.sleep(0.01)
        client.logout()
        server.gate.set()
        thread.join(timeout=5)

        assert client.access_token is None
        assert client.refresh_token is None
        assert len(errors) == 1
        assert isinstance(errors[0], SessionExpiredError)
        # The pair minted by the abandoned refresh is revoked too
        revoked = [kwargs["json"]["refresh_token"] for _, url, kwargs in server.calls if url.endswith("/auth/logout")]
        assert revoked == ["refresh-0", "refresh-1"]

    def test_not_signed_in(self):
        client = SessionClient("https://api.example.com", session=FakeServer())
        with pytest.raises(SessionExpiredError):
            client.refresh_access_token(None)


class TestRequests:
    def test_error_status_raises_api_error(self):
        server = FakeServer()
        client = _signed_in(server)
        server.valid_access = "access-0"
        with pytest.raises(ApiError) as exc_info:
            client.get("/boom")
        assert exc_info.value.status_code == 500

    def test_timeout_passed_through(self):
        server = FakeServer()
        client = _signed_in(server, timeout=3)
        assert server.calls[0][2]["timeout"] == 3

    def test_logout_clears_tokens_and_revokes(self):
        server = FakeServer()
        client = _signed_in(server)
        client.logout()
        assert client.access_token is None
        method, url, kwargs = server.calls[-1]
        assert url.endswith("/auth/logout")
        assert kwargs["json"] == {"refresh_token": "refresh-0"}


class TestAgainstApp:
    def test_transparent_refresh(self, make_user):
        user = make_user(first_name="Sia", email="sia@example.com")
        client = SessionClient("", session=TestClient(app), timeout=None)
        client.login(user.email, "pw12345678")
        original_refresh = client.refresh_token

        client.access_token = "expired-or-garbage"
        me = client.get("/auth/me")
        assert me["email"] == "sia@example.com"
        assert client.refresh_count == 1
        assert client.refresh_token != original_refresh

        client.logout()
        assert client.refresh_token is None
