"""Tests for the fixed-window rate limiter."""

from termflow.output import RateLimiter


def test_allows_burst_up_to_capacity(clock):
    limiter = RateLimiter(capacity=3, clock=clock)

    assert [limiter.acquire() for _ in range(4)] == [True, True, True, False]
    assert limiter.tokens == 0


def test_refills_to_full_after_window(clock):
    limiter = RateLimiter(capacity=2, clock=clock)
    limiter.acquire()
    limiter.acquire()

    clock.advance(0.5)
    assert not limiter.can_acquire()

    clock.advance(0.5)
    assert limiter.can_acquire()
    assert limiter.tokens == 2


def test_consume_never_goes_negative(clock):
    limiter = RateLimiter(capacity=1, clock=clock)
    limiter.consume()
    limiter.consume()
    assert limiter.tokens == 0


def test_disabled_limiter_always_admits(clock):
    limiter = RateLimiter(capacity=1, enabled=False, clock=clock)
    assert all(limiter.acquire() for _ in range(10))
    assert limiter.tokens == 1


def test_reset(clock):
    limiter = RateLimiter(capacity=2, clock=clock)
    limiter.acquire()
    clock.advance(0.5)

    limiter.reset()

    assert limiter.tokens == 2
    assert limiter.last_refill == 0.5
