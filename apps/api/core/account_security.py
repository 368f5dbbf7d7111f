"""
Login Throttling

Tracks failed sign-in attempts per email and temporarily locks the
account after too many failures. State is per-process; a multi-instance
deployment also has the Redis-backed endpoint limits in core.rate_limit.

Callers never learn how many attempts remain, only whether the account
is currently locked.
"""
import threading
import time
from collections import defaultdict, deque
from typing import Deque, Dict, Optional, Tuple

MAX_FAILED_ATTEMPTS = 5
ATTEMPT_WINDOW_SECONDS = 30 * 60
LOCKOUT_SECONDS = 15 * 60
SWEEP_EVERY = 256
MAX_TRACKED_KEYS = 10_000


class LoginThrottle:
    """Sliding-window failure counter with a fixed lockout period."""

    def __init__(
        self,
        max_failures: int = MAX_FAILED_ATTEMPTS,
        window_seconds: int = ATTEMPT_WINDOW_SECONDS,
        lockout_seconds: int = LOCKOUT_SECONDS,
        clock=time.monotonic,
        sweep_every: int = SWEEP_EVERY,
        max_keys: int = MAX_TRACKED_KEYS,
    ):
        self.max_failures = max_failures
        self.window_seconds = window_seconds
        self.lockout_seconds = lockout_seconds
        self._clock = clock
        self.sweep_every = sweep_every
        self.max_keys = max_keys
        self._since_sweep = 0
        self._failures: Dict[str, Deque[float]] = defaultdict(deque)
        self._locked_until: Dict[str, float] = {}
        self._lock = threading.Lock()

    def _prune(self, key: str, now: float) -> None:
        failures = self._failures.get(key)
        if failures is None:
            return
        cutoff = now - self.window_seconds
        while failures and failures[0] <= cutoff:
            failures.popleft()
        if not failures:
            del self._failures[key]

    def _sweep(self, now: float) -> None:
        # Drop keys nobody has touched since their window or lock ran out
        for key in list(self._failures):
            self._prune(key, now)
        expired = [key for key, until in self._locked_until.items() if now >= until]
        for key in expired:
            del self._locked_until[key]

    def _evict(self) -> None:
        # Oldest first; dicts keep insertion order and a pruned key re-enters at the end
        while len(self._failures) > self.max_keys:
            del self._failures[next(iter(self._failures))]
        while len(self._locked_until) > self.max_keys:
            del self._locked_until[next(iter(self._locked_until))]

    def check(self, key: str) -> Tuple[bool, Optional[int]]:
        """Return (locked, seconds_until_unlock)."""
        now = self._clock()
        with self._lock:
            until = self._locked_until.get(key)
            if until is None:
                return False, None
            if now >= until:
                del self._locked_until[key]
                self._failures.pop(key, None)
                return False, None
            return True, max(1, int(until - now))

    def record_failure(self, key: str) -> None:
        now = self._clock()
        with self._lock:
            self._since_sweep += 1
            if self._since_sweep >= self.sweep_every:
                self._since_sweep = 0
                self._sweep(now)
            self._prune(key, now)
            failures = self._failures[key]
            failures.append(now)
            if len(failures) >= self.max_failures:
                self._locked_until[key] = now + self.lockout_seconds
            if len(self._failures) > self.max_keys:
                self._evict()

    def record_success(self, key: str) -> None:
        with self._lock:
            self._failures.pop(key, None)
            self._locked_until.pop(key, None)

    def tracked_keys(self) -> int:
        with self._lock:
            return len(set(self._failures) | set(self._locked_until))

    def reset(self) -> None:
        with self._lock:
            self._failures.clear()
            self._locked_until.clear()
            self._since_sweep = 0


login_throttle = LoginThrottle()


def is_account_locked(email: str) -> Tuple[bool, Optional[int]]:
    return login_throttle.check(email)


def record_login_attempt(email: str, success: bool) -> None:
    if success:
        login_throttle.record_success(email)
    else:
        login_throttle.record_failure(email)
