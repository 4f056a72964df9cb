from __future__ import annotations

from scriptexec.ratelimit import FixedWindowRateLimiter


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_allows_up_to_limit_then_blocks():
    limiter = FixedWindowRateLimiter(max_requests=2, window_seconds=60, clock=FakeClock())
    first = limiter.hit("1.2.3.4")
    second = limiter.hit("1.2.3.4")
    third = limiter.hit("1.2.3.4")
    assert (first.allowed, second.allowed, third.allowed) == (True, True, False)
    assert first.remaining == 1
    assert third.remaining == 0
    assert third.reset_after_seconds == 60


def test_clients_are_counted_separately():
    limiter = FixedWindowRateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())
    assert limiter.hit("a").allowed
    assert limiter.hit("b").allowed
    assert not limiter.hit("a").allowed


def test_window_resets():
    clock = FakeClock()
    limiter = FixedWindowRateLimiter(max_requests=1, window_seconds=60, clock=clock)
    assert limiter.hit("a").allowed
    clock.now += 30
    blocked = limiter.hit("a")
    assert not blocked.allowed
    assert blocked.reset_after_seconds == 30
    clock.now += 30
    assert limiter.hit("a").allowed


def test_headers():
    limiter = FixedWindowRateLimiter(max_requests=3, window_seconds=900, clock=FakeClock())
    headers = limiter.hit("a").headers()
    assert headers == {"RateLimit-Limit": "3", "RateLimit-Remaining": "2", "RateLimit-Reset": "900"}
