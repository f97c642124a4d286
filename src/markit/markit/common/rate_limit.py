from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from flask import Flask, request

from ..core.exceptions import RateLimitedError


@dataclass
class TokenBucket:
    """Token bucket: ``capacity`` requests, refilled at ``refill_rate`` tokens/second."""

    capacity: int
    refill_rate: float
    tokens: float = -1.0
    last_refill: float = field(default_factory=time.monotonic)

    def __post_init__(self):
        if self.tokens < 0:
            self.tokens = float(self.capacity)

    def consume(self, tokens: int = 1, *, now: Optional[float] = None) -> bool:
        now = time.monotonic() if now is None else now
        elapsed = max(0.0, now - self.last_refill)
        self.tokens = min(self.capacity, self.tokens + elapsed * self.refill_rate)
        self.last_refill = now
        if self.tokens >= tokens:
            self.tokens -= tokens
            return True
        return False


class RateLimiter:
    """Per-key token buckets (key = client address by default).

    A bucket left alone for ``capacity / refill_rate`` seconds is full again, so it is
    dropped on the next sweep; a returning client simply gets a fresh bucket.
    """

    def __init__(self, *, capacity: int, refill_rate: float, clock: Callable[[], float] = time.monotonic):
        self._capacity = int(capacity)
        self._refill_rate = float(refill_rate)
        self._clock = clock
        self._buckets: dict[str, TokenBucket] = {}
        self._lock = threading.Lock()
        self._idle_after = self._capacity / self._refill_rate if self._refill_rate > 0 else float("inf")
        self._last_sweep = clock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._buckets)

    def hit(self, key: str) -> bool:
        now = self._clock()
        with self._lock:
            if now - self._last_sweep >= self._idle_after:
                self._evict_idle(now)
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = TokenBucket(self._capacity, self._refill_rate, last_refill=now)
                self._buckets[key] = bucket
            return bucket.consume(now=now)

    def _evict_idle(self, now: float) -> None:
        idle = [key for key, bucket in self._buckets.items() if now - bucket.last_refill >= self._idle_after]
        for key in idle:
            del self._buckets[key]
        self._last_sweep = now

    def check(self, key: str) -> None:
        if not self.hit(key):
            raise RateLimitedError("Too many requests, please try again later")


def install_rate_limit(app: Flask, limiter: RateLimiter, *, prefix: str) -> None:
    @app.before_request
    def _limit():
        if request.path.startswith(prefix):
            limiter.check(request.remote_addr or "unknown")
