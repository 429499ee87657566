import time
from collections import deque
from threading import Lock


class LoginRateLimiter:
    """Locks a login key after `max_attempts` failures inside a sliding window."""

    def __init__(self, *, max_attempts: int, window_seconds: int, lock_seconds: int, clock=time.monotonic):
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self.lock_seconds = lock_seconds
        self._clock = clock
        self._failures: dict[str, deque[float]] = {}
        self._locked_until: dict[str, float] = {}
        self._lock = Lock()

    def retry_after(self, key: str) -> int:
        """Seconds until `key` may try again; 0 when it is not locked."""
        now = self._clock()
        with self._lock:
            locked_until = self._locked_until.get(key, 0.0)
            if locked_until <= now:
                self._locked_until.pop(key, None)
                return 0
            return int(locked_until - now) + 1

    def record_failure(self, key: str) -> int:
        """Records a failed attempt and returns how many attempts remain before lockout."""
        now = self._clock()
        with self._lock:
            failures = self._failures.setdefault(key, deque())
            while failures and failures[0] < now - self.window_seconds:
                failures.popleft()
            failures.append(now)
            if len(failures) >= self.max_attempts:
                self._locked_until[key] = now + self.lock_seconds
                failures.clear()
                return 0
            return self.max_attempts - len(failures)

    def reset(self, key: str) -> None:
        with self._lock:
            self._failures.pop(key, None)
            self._locked_until.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._failures.clear()
            self._locked_until.clear()
