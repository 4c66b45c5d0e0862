"""Fixed-window rate limiter."""

from app.services.rate_limit import FixedWindowRateLimiter


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_allows_up_to_limit_then_blocks_until_window_resets():
    clock = FakeClock()
    limiter = FixedWindowRateLimiter(limit=3, window=60, clock=clock)

    assert [limiter.check("a")[0] for _ in range(3)] == [True, True, True]
    allowed, wait = limiter.check("a")
    assert allowed is False
    assert wait == 60

    clock.now += 45
    assert limiter.check("a") == (False, 15)

    clock.now += 15
    assert limiter.check("a") == (True, None)


def test_callers_are_counted_separately():
    limiter = FixedWindowRateLimiter(limit=1, window=60, clock=FakeClock())

    assert limiter.check("a")[0] is True
    assert limiter.check("b")[0] is True
    assert limiter.check("a")[0] is False


def test_expired_callers_are_forgotten():
    clock = FakeClock()
    limiter = FixedWindowRateLimiter(limit=1, window=60, clock=clock)
    for caller in ("a", "b", "c"):
        limiter.check(caller)

    clock.now += 61
    limiter.check("d")

    assert list(limiter._windows) == ["d"]
