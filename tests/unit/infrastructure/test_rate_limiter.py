"""Tests for the per-client rate limiter."""

import asyncio
import time

import pytest

from chartpulse.infrastructure.rate_limiter import (
    DEFAULT_MIN_INTERVAL,
    MUSICBRAINZ_MIN_INTERVAL,
    RateLimiter,
    RateLimiterConfig,
)


class TestRateLimiterFactories:
    def test_provider_default_interval(self) -> None:
        limiter = RateLimiter.for_provider("spotify")
        assert limiter.min_interval == DEFAULT_MIN_INTERVAL
        assert limiter.name == "spotify"

    def test_musicbrainz_is_one_per_second(self) -> None:
        assert RateLimiter.for_musicbrainz().min_interval == MUSICBRAINZ_MIN_INTERVAL == 1.0

    def test_instances_do_not_share_state(self) -> None:
        """Two clients of the same provider never throttle each other."""
        first = RateLimiter.for_provider("lastfm")
        second = RateLimiter.for_provider("lastfm")
        assert first is not second
        assert first._lock is not second._lock


class TestRateLimiterTiming:
    async def test_first_request_does_not_wait(self) -> None:
        limiter = RateLimiter.for_provider("test", min_interval=5.0)

        started = time.monotonic()
        await limiter.acquire()

        assert time.monotonic() - started < 1.0

    @pytest.mark.slow
    async def test_sequential_requests_are_spaced(self) -> None:
        limiter = RateLimiter.for_provider("test", min_interval=0.1)

        stamps = []
        for _ in range(3):
            async with limiter:
                stamps.append(time.monotonic())

        gaps = [b - a for a, b in zip(stamps, stamps[1:])]
        assert all(gap >= 0.09 for gap in gaps)

    @pytest.mark.slow
    async def test_concurrent_callers_queue_up(self) -> None:
        """Concurrent acquirers go out one at a time, min_interval apart."""
        limiter = RateLimiter.for_provider("test", min_interval=0.1)
        stamps: list[float] = []

        async def call() -> None:
            async with limiter:
                stamps.append(time.monotonic())

        await asyncio.gather(*(call() for _ in range(4)))

        stamps.sort()
        assert stamps[-1] - stamps[0] >= 0.29


class TestRateLimiterBackoff:
    async def test_retry_after_header_wins(self, mocker) -> None:  # type: ignore[no-untyped-def]
        sleep = mocker.patch(
            "chartpulse.infrastructure.rate_limiter.asyncio.sleep", return_value=None
        )
        limiter = RateLimiter(config=RateLimiterConfig(initial_backoff_seconds=1.0))

        waited = await limiter.handle_rate_limit_response(retry_after=7)

        assert waited == 7.0
        sleep.assert_awaited_once_with(7.0)

    async def test_backoff_doubles_and_caps(self, mocker) -> None:  # type: ignore[no-untyped-def]
        mocker.patch(
            "chartpulse.infrastructure.rate_limiter.asyncio.sleep", return_value=None
        )
        limiter = RateLimiter(
            config=RateLimiterConfig(initial_backoff_seconds=1.0, max_backoff_seconds=3.0)
        )

        waits = [await limiter.handle_rate_limit_response() for _ in range(4)]

        assert waits == [1.0, 2.0, 3.0, 3.0]

    async def test_successful_request_resets_backoff(self, mocker) -> None:  # type: ignore[no-untyped-def]
        mocker.patch(
            "chartpulse.infrastructure.rate_limiter.asyncio.sleep", return_value=None
        )
        limiter = RateLimiter(config=RateLimiterConfig(min_interval=0.0))
        await limiter.handle_rate_limit_response()
        await limiter.handle_rate_limit_response()

        async with limiter:
            pass

        assert await limiter.handle_rate_limit_response() == 1.0
