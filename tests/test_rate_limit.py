"""Tests for the sliding-window rate limiter."""

import asyncio

import pytest

from app.errors import InvalidArgumentError, RateLimitExceededError
from app.utils.rate_limit import SlidingWindowRateLimiter


def make_limiter(clock, interval=100.0, max_unique_identities=5):
    return SlidingWindowRateLimiter(interval=interval, max_unique_identities=max_unique_identities, clock=clock)


class TestQuota:
    """Requests inside one window count against the identity's quota."""

    @pytest.mark.parametrize("max_requests", [1, 2, 5])
    def test_nth_request_passes_and_next_is_rejected(self, clock, max_requests):
        limiter = make_limiter(clock)
        for _ in range(max_requests):
            limiter.check(max_requests, "client")
        with pytest.raises(RateLimitExceededError, match="Rate limit exceeded"):
            limiter.check(max_requests, "client")

    def test_rejected_request_is_not_recorded(self, clock):
        limiter = make_limiter(clock)
        limiter.check(1, "client")
        clock.advance(50)
        with pytest.raises(RateLimitExceededError):
            limiter.check(1, "client")
        # Only the first request (t=0) is in the ledger, so it expires at t=100.
        clock.advance(50)
        limiter.check(1, "client")

    def test_identities_do_not_interfere(self, clock):
        limiter = make_limiter(clock)
        limiter.check(2, "token-1")
        limiter.check(2, "token-1")
        with pytest.raises(RateLimitExceededError):
            limiter.check(2, "token-1")
        limiter.check(2, "token-2")

    def test_retry_after_is_the_interval(self, clock):
        limiter = make_limiter(clock, interval=60)
        limiter.check(1, "client")
        with pytest.raises(RateLimitExceededError) as exc_info:
            limiter.check(1, "client")
        assert exc_info.value.retry_after == 60
        assert exc_info.value.status_code == 429

    def test_remaining(self, clock):
        limiter = make_limiter(clock)
        assert limiter.remaining(3, "client") == 3
        limiter.check(3, "client")
        assert limiter.remaining(3, "client") == 2


class TestWindow:
    """Old requests stop counting once they leave the window."""

    def test_counter_resets_after_interval(self, clock):
        limiter = make_limiter(clock)
        limiter.check(2, "client")
        limiter.check(2, "client")
        with pytest.raises(RateLimitExceededError):
            limiter.check(2, "client")
        clock.advance(150)
        limiter.check(2, "client")

    def test_request_expires_exactly_at_interval(self, clock):
        limiter = make_limiter(clock)
        limiter.check(2, "client")
        limiter.check(2, "client")
        clock.advance(99)
        with pytest.raises(RateLimitExceededError):
            limiter.check(2, "client")
        clock.advance(1)
        limiter.check(2, "client")

    def test_window_slides_one_request_at_a_time(self, clock):
        limiter = make_limiter(clock)
        limiter.check(2, "client")          # t=0
        clock.advance(60)
        limiter.check(2, "client")          # t=60
        clock.advance(40)                   # t=100: first request expired, second still counts
        limiter.check(2, "client")
        with pytest.raises(RateLimitExceededError):
            limiter.check(2, "client")

    def test_tiny_interval(self, clock):
        limiter = make_limiter(clock, interval=0.001)
        limiter.check(2, "client")
        limiter.check(2, "client")
        with pytest.raises(RateLimitExceededError):
            limiter.check(2, "client")
        clock.advance(0.002)
        limiter.check(2, "client")


class TestIdentityCap:
    """Beyond max_unique_identities the identity with the oldest first request is dropped."""

    def test_oldest_identity_is_evicted(self, clock):
        limiter = make_limiter(clock, max_unique_identities=2)
        limiter.check(1, "token-old-1")
        clock.advance(10)
        limiter.check(1, "token-old-2")
        clock.advance(10)
        limiter.check(1, "token-new")

        assert "token-old-1" not in limiter
        assert "token-old-2" in limiter
        assert "token-new" in limiter
        assert len(limiter) == 2

        # Evicted identity starts over immediately.
        limiter.check(1, "token-old-1")

    def test_surviving_identity_keeps_its_count(self, clock):
        limiter = make_limiter(clock, max_unique_identities=2)
        limiter.check(1, "token-old-1")
        clock.advance(10)
        limiter.check(1, "token-old-2")
        clock.advance(10)
        limiter.check(1, "token-new")
        with pytest.raises(RateLimitExceededError):
            limiter.check(1, "token-old-2")

    def test_eviction_is_by_first_request_not_last_use(self, clock):
        limiter = make_limiter(clock, max_unique_identities=2)
        limiter.check(5, "early")           # first seen t=0
        clock.advance(10)
        limiter.check(5, "later")           # first seen t=10
        clock.advance(10)
        limiter.check(5, "early")           # recently used, but still first seen at t=0
        clock.advance(10)
        limiter.check(5, "newest")
        assert "early" not in limiter
        assert "later" in limiter

    def test_capacity_of_one_with_simultaneous_requests(self, clock):
        limiter = make_limiter(clock, max_unique_identities=1)
        limiter.check(1, "single-token-1")
        limiter.check(1, "single-token-2")
        assert "single-token-1" not in limiter
        limiter.check(1, "single-token-1")

    def test_many_identities_within_capacity(self, clock):
        limiter = make_limiter(clock, max_unique_identities=1000)
        for i in range(100):
            limiter.check(1, f"mass-token-{i}")
        assert len(limiter) == 100


class TestInvalidArguments:
    """Bad parameters are rejected without touching the ledger."""

    @pytest.mark.parametrize("max_requests", [0, -1])
    def test_non_positive_max_requests(self, clock, max_requests):
        limiter = make_limiter(clock)
        with pytest.raises(InvalidArgumentError, match="Invalid parameters"):
            limiter.check(max_requests, "x")
        assert "x" not in limiter
        assert len(limiter) == 0

    def test_empty_identity(self, clock):
        limiter = make_limiter(clock)
        with pytest.raises(InvalidArgumentError, match="Invalid parameters"):
            limiter.check(1, "")
        assert len(limiter) == 0

    def test_invalid_arguments_leave_existing_entries_alone(self, clock):
        limiter = make_limiter(clock)
        limiter.check(1, "x")
        with pytest.raises(InvalidArgumentError):
            limiter.check(0, "x")
        with pytest.raises(RateLimitExceededError):
            limiter.check(1, "x")

    @pytest.mark.parametrize("interval,capacity", [(0, 5), (-1, 5), (100, 0), (float("nan"), 5), (float("inf"), 5)])
    def test_bad_construction(self, interval, capacity):
        with pytest.raises(InvalidArgumentError):
            SlidingWindowRateLimiter(interval=interval, max_unique_identities=capacity)


class TestSweep:
    """Periodic cleanup of identities that went quiet."""

    def test_sweep_removes_expired_identities(self, clock):
        limiter = make_limiter(clock)
        limiter.check(2, "idle")
        clock.advance(50)
        limiter.check(2, "active")
        clock.advance(60)                   # idle: 110 old, active: 60 old

        assert limiter.sweep() == 1
        assert "idle" not in limiter
        assert "active" in limiter

    def test_sweep_trims_but_keeps_partially_expired_identity(self, clock):
        limiter = make_limiter(clock)
        limiter.check(2, "client")
        clock.advance(60)
        limiter.check(2, "client")
        clock.advance(50)
        limiter.sweep()
        assert "client" in limiter
        assert limiter.remaining(2, "client") == 1

    def test_identity_starts_fresh_after_sweep(self, clock):
        limiter = make_limiter(clock)
        limiter.check(2, "unused-token")
        clock.advance(100)
        limiter.sweep()
        limiter.check(1, "unused-token")
        with pytest.raises(RateLimitExceededError):
            limiter.check(1, "unused-token")

    @pytest.mark.asyncio
    async def test_background_sweep_runs_until_stopped(self):
        limiter = SlidingWindowRateLimiter(interval=0.05, max_unique_identities=5)
        limiter.start()
        assert limiter.running
        limiter.check(1, "client")

        await asyncio.sleep(0.2)
        assert "client" not in limiter

        await limiter.stop()
        assert not limiter.running

    @pytest.mark.asyncio
    async def test_stop_without_start(self):
        limiter = SlidingWindowRateLimiter(interval=1, max_unique_identities=5)
        await limiter.stop()
        assert not limiter.running

    @pytest.mark.asyncio
    async def test_independent_instances(self, clock):
        first = make_limiter(clock)
        second = make_limiter(clock)
        first.start()
        second.start()
        first.check(1, "client")
        second.check(1, "client")
        with pytest.raises(RateLimitExceededError):
            first.check(1, "client")
        await first.stop()
        assert second.running
        await second.stop()
