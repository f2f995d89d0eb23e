"""In-memory sliding-window rate limiter for the public endpoints."""

import time
from collections import defaultdict, deque
from collections.abc import Callable


class InMemoryRateLimiter:
    """Sliding-window limiter keyed by client.

    State lives in the current process only; each worker enforces its own
    window.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.clock = clock
        self._hits: dict[str, deque[float]] = defaultdict(deque)
        self._last_sweep = clock()

    def is_allowed(self, key: str) -> bool:
        """Record a hit for ``key`` and report whether it is within the limit."""
        now = self.clock()
        if now - self._last_sweep >= self.window_seconds:
            self._sweep(now)

        hits = self._hits[key]
        while hits and hits[0] <= now - self.window_seconds:
            hits.popleft()

        if len(hits) >= self.max_requests:
            return False

        hits.append(now)
        return True

    def _sweep(self, now: float) -> None:
        """Forget clients whose hits have all left the window."""
        cutoff = now - self.window_seconds
        idle = [key for key, hits in self._hits.items() if not hits or hits[-1] <= cutoff]
        for key in idle:
            del self._hits[key]
        self._last_sweep = now

    def retry_after(self, key: str) -> int:
        """Seconds until the oldest hit leaves the window (0 when not limited)."""
        hits = self._hits.get(key)
        if not hits or len(hits) < self.max_requests:
            return 0
        return max(1, int(hits[0] + self.window_seconds - self.clock()) + 1)

    def clear(self) -> None:
        self._hits.clear()

    def __len__(self) -> int:
        """Number of clients currently tracked."""
        return len(self._hits)
