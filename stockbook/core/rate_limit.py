import time
from collections import deque
from threading import Lock

from stockbook.core.config import settings


class LoginRateLimiter:
    """
    Sliding-window lockout for password sign-ins.

    Failures are counted per identifier/client pair. Once `max_attempts`
    failures land inside `window_seconds` the pair is locked for
    `lock_seconds`; a successful sign-in clears the history.
    """

    def __init__(self, *, max_attempts: int, window_seconds: int, lock_seconds: int):
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self.lock_seconds = lock_seconds
        self._failures: dict[str, deque[float]] = {}
        self._locked_until: dict[str, float] = {}
        self._lock = Lock()

    @staticmethod
    def key_for(identifier: str, client_ip: str) -> str:
        return f"{identifier.strip().lower()}|{client_ip}"

    def retry_after(self, key: str) -> int:
        """Seconds until `key` may try again; 0 when it is not locked."""
        now = time.monotonic()
        with self._lock:
            until = self._locked_until.get(key)
            if until is None:
                return 0
            if until <= now:
                del self._locked_until[key]
                return 0
            return int(until - now) + 1

    def register_failure(self, key: str) -> None:
        now = time.monotonic()
        with self._lock:
            window = self._failures.setdefault(key, deque())
            window.append(now)
            while window and window[0] < now - self.window_seconds:
                window.popleft()
            if len(window) >= self.max_attempts:
                self._locked_until[key] = now + self.lock_seconds
                window.clear()

    def register_success(self, key: str) -> None:
        with self._lock:
            self._failures.pop(key, None)
            self._locked_until.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._failures.clear()
            self._locked_until.clear()


login_rate_limiter = LoginRateLimiter(
    max_attempts=settings.auth_rate_limit_max_attempts,
    window_seconds=settings.auth_rate_limit_window_seconds,
    lock_seconds=settings.auth_rate_limit_lock_seconds,
)
