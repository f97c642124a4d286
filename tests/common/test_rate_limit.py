from __future__ import annotations

import pytest

from src.markit.markit.common.rate_limit import RateLimiter
from src.markit.markit.core.exceptions import RateLimitedError


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_bucket_exhausts_then_refills():
    clock = FakeClock()
    limiter = RateLimiter(capacity=2, refill_rate=1.0, clock=clock)

    assert limiter.hit("1.2.3.4")
    assert limiter.hit("1.2.3.4")
    assert not limiter.hit("1.2.3.4")

    clock.now = 1.0
    assert limiter.hit("1.2.3.4")


def test_buckets_are_per_client():
    limiter = RateLimiter(capacity=1, refill_rate=0.0, clock=FakeClock())

    assert limiter.hit("a")
    assert limiter.hit("b")
    with pytest.raises(RateLimitedError):
        limiter.check("a")


def test_idle_buckets_are_evicted_once_refilled():
    clock = FakeClock()
    limiter = RateLimiter(capacity=2, refill_rate=1.0, clock=clock)

    limiter.hit("a")
    limiter.hit("b")
    assert len(limiter) == 2

    clock.now = 1.0
    limiter.hit("b")

    clock.now = 2.5
    assert limiter.hit("c")
    # "a" sat idle long enough to be full again; "b" was used recently.
    assert len(limiter) == 2

    clock.now = 10.0
    assert limiter.hit("c")
    assert len(limiter) == 1


def test_evicted_client_starts_with_a_full_bucket():
    clock = FakeClock()
    limiter = RateLimiter(capacity=1, refill_rate=0.5, clock=clock)

    assert limiter.hit("a")
    assert not limiter.hit("a")

    clock.now = 5.0
    assert limiter.hit("b")
    assert len(limiter) == 1
    assert limiter.hit("a")
