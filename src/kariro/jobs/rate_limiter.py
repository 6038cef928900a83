"""In-memory fixed-window rate limiter for the admission endpoints."""

from __future__ import annotations

import logging
import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 10_000
RATE_LIMIT_MESSAGE = "Too many requests, please try again later"


@dataclass(slots=True)
class RateLimitEntry:
    count: int
    reset_at: float


@dataclass(slots=True, frozen=True)
class RateLimitDecision:
    """Admission verdict; ``retry_after_seconds`` is positive only when denied."""

    allowed: bool
    remaining: int
    retry_after_seconds: int = 0


class SlidingWindowRateLimiter:
    """Per-key counter that resets ``window_seconds`` after the key's first request.

    State is local to one process. The store holds at most ``max_entries`` keys:
    when full, expired keys are evicted first, then the oldest remaining key.
    A background sweeper started with :meth:`start` drops expired keys even when
    no requests arrive.
    """

    def __init__(
        self,
        *,
        window_seconds: float,
        max_requests: int,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self.max_entries = max(1, max_entries)
        self._clock = clock
        self._entries: dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._sweeper: threading.Thread | None = None

    def admit(self, key: str) -> RateLimitDecision:
        """Count one request for ``key`` and decide whether it may proceed."""

        with self._lock:
            now = self._clock()
            entry = self._entries.get(key)
            if entry is None or now >= entry.reset_at:
                if entry is not None:
                    del self._entries[key]
                self._make_room(now)
                self._entries[key] = RateLimitEntry(count=1, reset_at=now + self.window_seconds)
                return RateLimitDecision(allowed=True, remaining=self.max_requests - 1)

            if entry.count >= self.max_requests:
                retry_after = max(1, math.ceil(entry.reset_at - now))
                return RateLimitDecision(
                    allowed=False,
                    remaining=0,
                    retry_after_seconds=retry_after,
                )

            entry.count += 1
            return RateLimitDecision(allowed=True, remaining=self.max_requests - entry.count)

    def sweep(self) -> int:
        """Drop expired entries and return how many were removed."""

        with self._lock:
            return self._evict_expired(self._clock())

    def start(self) -> None:
        """Start the background sweeper thread (idempotent)."""

        if self._sweeper is not None and self._sweeper.is_alive():
            return
        self._stop_event.clear()
        self._sweeper = threading.Thread(
            target=self._sweep_loop,
            name="rate-limit-sweeper",
            daemon=True,
        )
        self._sweeper.start()

    def stop(self) -> None:
        self._stop_event.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=self.window_seconds)
            self._sweeper = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __enter__(self) -> SlidingWindowRateLimiter:
        self.start()
        return self

    def __exit__(self, *_: object) -> None:
        self.stop()

    def _sweep_loop(self) -> None:
        while not self._stop_event.wait(self.window_seconds):
            removed = self.sweep()
            if removed:
                logger.debug("Rate limiter swept %d expired entries", removed)

    def _make_room(self, now: float) -> None:
        if len(self._entries) < self.max_entries:
            return
        self._evict_expired(now)
        while len(self._entries) >= self.max_entries:
            oldest = next(iter(self._entries))
            del self._entries[oldest]

    def _evict_expired(self, now: float) -> int:
        expired = [key for key, entry in self._entries.items() if now >= entry.reset_at]
        for key in expired:
            del self._entries[key]
        return len(expired)
