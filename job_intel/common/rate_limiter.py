"""
Rate Limiting Module.

Sliding-window limiter keyed by client identity (normally the remote
address). Protects the LLM-backed endpoints from a single caller burning
through the OpenAI budget.

Usage:
    limiter = RateLimiter(max_requests=5, window_seconds=60)

    try:
        limiter.check(client_ip)
    except RateLimitExceededError:
        ...  # 429
"""

import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Optional


@dataclass
class RateLimitStats:
    """Statistics for rate limiting."""
    total_requests: int = 0
    rejected_requests: int = 0
    tracked_clients: int = 0


class RateLimitExceededError(Exception):
    """Raised when a client has used up its window."""

    def __init__(self, key: str, limit: int, retry_after: float):
        self.key = key
        self.limit = limit
        self.retry_after = retry_after
        super().__init__(f"Rate limit exceeded for {key}: {limit} requests per window")


class RateLimiter:
    """
    Thread-safe per-key rate limiter using a sliding window.

    Each key keeps a deque of request timestamps; timestamps older than the
    window are dropped before every check.
    """

    def __init__(
        self,
        max_requests: int = 5,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize rate limiter.

        Args:
            max_requests: Requests allowed per key inside one window
            window_seconds: Window length in seconds
            clock: Time source (injectable for tests)
        """
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: Dict[str, Deque[float]] = {}
        self._lock = threading.Lock()
        self._stats = RateLimitStats()

    def _clean(self, window: Deque[float], now: float) -> None:
        cutoff = now - self.window_seconds
        while window and window[0] <= cutoff:
            window.popleft()

    def check(self, key: str) -> None:
        """
        Record a request for key, or reject it.

        Raises:
            RateLimitExceededError: If key already used max_requests in the window
        """
        with self._lock:
            now = self._clock()
            window = self._windows.setdefault(key, deque())
            self._clean(window, now)
            self._stats.total_requests += 1

            if len(window) >= self.max_requests:
                self._stats.rejected_requests += 1
                retry_after = max(0.0, window[0] + self.window_seconds - now)
                raise RateLimitExceededError(key, self.max_requests, retry_after)

            window.append(now)
            self._prune_idle(now)

    def remaining(self, key: str) -> int:
        """Requests key may still make in the current window."""
        with self._lock:
            window = self._windows.get(key)
            if window is None:
                return self.max_requests
            self._clean(window, self._clock())
            return max(0, self.max_requests - len(window))

    def reset(self, key: Optional[str] = None) -> None:
        """Forget one key, or every key."""
        with self._lock:
            if key is None:
                self._windows.clear()
            else:
                self._windows.pop(key, None)

    def get_stats(self) -> RateLimitStats:
        """Get a snapshot of current statistics."""
        with self._lock:
            return RateLimitStats(
                total_requests=self._stats.total_requests,
                rejected_requests=self._stats.rejected_requests,
                tracked_clients=len(self._windows),
            )

    def _prune_idle(self, now: float) -> None:
        # Keeps the key map bounded under many distinct clients
        idle = [key for key, window in self._windows.items() if not window or window[-1] <= now - self.window_seconds]
        for key in idle:
            del self._windows[key]
