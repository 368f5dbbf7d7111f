"""
API session client.

Holds an access/refresh token pair for one signed-in user and replays a
request once after refreshing when the server answers 401. Refreshes are
single-flight: while one thread is exchanging the refresh token, every
other thread that hit a 401 waits for that result instead of spending the
(single-use) refresh token a second time.

    client = SessionClient("https://api.progress2win.app")
    client.login("alice@example.com", "pw12345678")
    client.get("/progress")
"""
import logging
import threading
from enum import Enum
from typing import Any, Callable, Dict, Optional

import requests

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    REFRESHING = "refreshing"


class ApiError(Exception):
    def __init__(self, status_code: int, detail: Any = None):
        super().__init__(f"HTTP {status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


class SessionExpiredError(ApiError):
    """The refresh token was rejected; the user must sign in again."""

    def __init__(self, detail: Any = "Session expired"):
        super().__init__(401, detail)


class SessionClient:
    def __init__(
        self,
        base_url: str,
        session: Optional[Any] = None,
        timeout: Optional[float] = 10,
        on_tokens_changed: Optional[Callable[[Optional[str], Optional[str]], None]] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout
        self.on_tokens_changed = on_tokens_changed

        self.access_token: Optional[str] = None
        self.refresh_token: Optional[str] = None
        self.state = SessionState.IDLE
        self._cond = threading.Condition(threading.Lock())
        self._refresh_error: Optional[Exception] = None
        self._generation = 0
        self.refresh_count = 0

    # -- plumbing --

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _send(self, method: str, path: str, access_token: Optional[str] = None, **kwargs):
        headers = dict(kwargs.pop("headers", None) or {})
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        if self.timeout is not None:
            kwargs.setdefault("timeout", self.timeout)
        return self.session.request(method, self._url(path), headers=headers, **kwargs)

    @staticmethod
    def _payload(response) -> Any:
        try:
            return response.json()
        except ValueError:
            return None

    def _raise_for_status(self, response) -> Any:
        body = self._payload(response)
        if response.status_code >= 400:
            detail = body.get("detail") if isinstance(body, dict) else body
            raise ApiError(response.status_code, detail)
        return body

    def _set_tokens(self, access_token: Optional[str], refresh_token: Optional[str]) -> None:
        # Caller holds self._cond or no other thread can see the client yet
        self.access_token = access_token
        self.refresh_token = refresh_token
        if self.on_tokens_changed:
            self.on_tokens_changed(access_token, refresh_token)

    # -- auth --

    def login(self, email: str, password: str) -> dict:
        body = self._raise_for_status(
            self._send("POST", "/auth/login", json={"email": email, "password": password})
        )
        with self._cond:
            self._set_tokens(body["access_token"], body["refresh_token"])
        return body

    def _revoke(self, refresh_token: str) -> None:
        response = self._send("POST", "/auth/logout", json={"refresh_token": refresh_token})
        if response.status_code >= 400:
            logger.warning(f"Logout returned {response.status_code}")

    def logout(self) -> None:
        with self._cond:
            refresh_token = self.refresh_token
            self._set_tokens(None, None)
        if refresh_token:
            self._revoke(refresh_token)

    def refresh_access_token(self, stale_token: Optional[str]) -> str:
        """
        Return a fresh access token, refreshing at most once per stale token.

        stale_token is the access token the caller saw rejected. If it has
        already been replaced, the current token is returned without a
        request. If a refresh is in flight, wait for it and share its result.
        """
        with self._cond:
            if self.access_token is not None and self.access_token != stale_token:
                return self.access_token

            if self.state is SessionState.REFRESHING:
                generation = self._generation
                while self._generation == generation:
                    self._cond.wait()
                if self._refresh_error is not None:
                    raise self._refresh_error
                return self.access_token

            refresh_token = self.refresh_token
            if not refresh_token:
                raise SessionExpiredError("Not signed in")
            self.state = SessionState.REFRESHING
            self._refresh_error = None

        new_access: Optional[str] = None
        new_refresh: Optional[str] = None
        error: Optional[Exception] = None
        try:
            response = self._send("POST", "/auth/refresh", json={"refresh_token": refresh_token})
            if response.status_code == 401:
                error = SessionExpiredError(self._payload(response))
            else:
                body = self._raise_for_status(response)
                new_access, new_refresh = body["access_token"], body["refresh_token"]
        except Exception as e:
            error = e

        discarded: Optional[str] = None
        with self._cond:
            self.refresh_count += 1
            self._generation += 1
            if self.refresh_token != refresh_token:
                # Signed out (or in again) while the exchange was in flight
                discarded = new_refresh
                if self.access_token is None:
                    error = SessionExpiredError("Signed out")
                else:
                    error, new_access = None, self.access_token
            elif error is None:
                self._set_tokens(new_access, new_refresh)
            elif isinstance(error, SessionExpiredError):
                self._set_tokens(None, None)
            self._refresh_error = error
            self.state = SessionState.IDLE
            self._cond.notify_all()

        if discarded:
            self._revoke(discarded)
        if error is not None:
            raise error
        return new_access

    # -- requests --

    def request(self, method: str, path: str, **kwargs) -> Any:
        """Send an authenticated request, refreshing and retrying once on 401."""
        with self._cond:
            token = self.access_token
        response = self._send(method, path, access_token=token, **dict(kwargs))
        if response.status_code == 401 and token is not None:
            token = self.refresh_access_token(token)
            response = self._send(method, path, access_token=token, **dict(kwargs))
        return self._raise_for_status(response)

    def get(self, path: str, params: Optional[Dict] = None) -> Any:
        return self.request("GET", path, params=params)

    def post(self, path: str, json: Any = None) -> Any:
        return self.request("POST", path, json=json)

    def put(self, path: str, json: Any = None) -> Any:
        return self.request("PUT", path, json=json)

    def delete(self, path: str) -> Any:
        return self.request("DELETE", path)
