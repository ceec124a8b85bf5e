"""Fixed-window rate limiter for contact submissions.

One RateLimiter is built by the app factory and stored in
app.extensions["contact_rate_limiter"]. It owns an in-memory
identity -> RateWindow table; counters reset when the process restarts.
"""

import logging
import threading
import time
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 15 * 60


@dataclass
class RateWindow:
    count: int
    started_at: float

    def expired(self, now, window_seconds):
        return now - self.started_at >= window_seconds


@dataclass(frozen=True)
class RateDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float

    def retry_after(self, now):
        """Whole seconds until the window resets (at least 1)."""
        return max(1, int(round(self.reset_at - now)))


class RateLimiter:
    """Admit at most `max_requests` per client identity per fixed window."""

    def __init__(self, max_requests=5, window_seconds=DEFAULT_WINDOW_SECONDS):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._windows = {}
        self._lock = threading.Lock()

    def admit(self, identity, now=None):
        """Count one request for `identity` and decide whether it may proceed.

        A rejected request does not increment the counter.
        """
        if now is None:
            now = time.time()

        with self._lock:
            window = self._windows.get(identity)
            if window is None or window.expired(now, self.window_seconds):
                self._prune(now)
                window = RateWindow(count=1, started_at=now)
                self._windows[identity] = window
                allowed = True
            elif window.count < self.max_requests:
                window.count += 1
                allowed = True
            else:
                allowed = False

            decision = RateDecision(
                allowed=allowed,
                limit=self.max_requests,
                remaining=self.max_requests - window.count,
                reset_at=window.started_at + self.window_seconds,
            )

        if not allowed:
            logger.warning(f"Rate limit exceeded for {identity}")
        return decision

    def reset(self, identity=None):
        """Forget one identity's window, or all of them."""
        with self._lock:
            if identity is None:
                self._windows.clear()
            else:
                self._windows.pop(identity, None)

    def __len__(self):
        with self._lock:
            return len(self._windows)

    def _prune(self, now):
        expired = [
            key for key, window in self._windows.items()
            if window.expired(now, self.window_seconds)
        ]
        for key in expired:
            del self._windows[key]
