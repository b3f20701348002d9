"""
Per-client Rate Limiter for External API Calls.

Hey future me - every provider client owns ONE of these. There is deliberately no
module-level singleton: two SpotifyClient instances (say, the scheduler's and a test's)
must not throttle each other, and nothing here survives the client that created it.

ALGORITHM: minimum interval
- One "last request" watermark per limiter
- acquire() waits until at least min_interval has passed since the watermark
- The wait happens while holding the lock, so concurrent callers queue up and go
  out one by one, each min_interval apart

ADAPTIVE BACKOFF on 429:
- Retry-After header wins if present
- Otherwise 1s, 2s, 4s ... capped at max_backoff_seconds
- Reset after the next successful request

USAGE:
    limiter = RateLimiter.for_musicbrainz()  # 1 req/sec, no bursts

    async with limiter:
        response = await client.get(url)

    # On 429:
    await limiter.handle_rate_limit_response(retry_after)
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

DEFAULT_MIN_INTERVAL = 0.2
MUSICBRAINZ_MIN_INTERVAL = 1.0


@dataclass
class RateLimiterConfig:
    """Configuration for rate limiter.

    Hey future me - max_backoff_seconds must be HIGH enough! Spotify can send
    Retry-After of several minutes. If we cap that at 60s we ignore the header
    and get 429 again immediately.
    """

    min_interval: float = DEFAULT_MIN_INTERVAL  # Seconds between two requests
    max_backoff_seconds: float = 600.0
    initial_backoff_seconds: float = 1.0
    backoff_multiplier: float = 2.0


@dataclass
class RateLimiter:
    """Minimum-interval rate limiter with adaptive 429 backoff.

    Attributes:
        config: Rate limiter configuration
        name: Label used in log lines
        _last_request: Monotonic time of the last released request (0 = never)
        _current_backoff: Current backoff delay (resets on success)
        _lock: Serialises acquire() callers
    """

    config: RateLimiterConfig = field(default_factory=RateLimiterConfig)
    name: str = "default"

    _last_request: float = field(default=0.0, init=False)
    _current_backoff: float = field(default=0.0, init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)

    def __post_init__(self) -> None:
        self._current_backoff = self.config.initial_backoff_seconds

    @classmethod
    def for_provider(
        cls, name: str, min_interval: float = DEFAULT_MIN_INTERVAL
    ) -> "RateLimiter":
        """Create a limiter for a provider with a generic budget (200ms by default)."""
        return cls(config=RateLimiterConfig(min_interval=min_interval), name=name)

    @classmethod
    def for_musicbrainz(cls) -> "RateLimiter":
        """Create rate limiter for MusicBrainz API.

        Hey future me - MusicBrainz is STRICT: 1 req/sec, and they ban clients
        that ignore it. No bursts, long backoff.
        """
        return cls(
            config=RateLimiterConfig(
                min_interval=MUSICBRAINZ_MIN_INTERVAL,
                max_backoff_seconds=120.0,
                initial_backoff_seconds=2.0,
            ),
            name="musicbrainz",
        )

    async def acquire(self) -> None:
        """Wait until the next request may go out, then move the watermark."""
        async with self._lock:
            if self._last_request:
                elapsed = time.monotonic() - self._last_request
                wait_time = self.config.min_interval - elapsed
                if wait_time > 0:
                    logger.debug(
                        f"RateLimiter[{self.name}]: waiting {wait_time:.2f}s"
                    )
                    await asyncio.sleep(wait_time)
            self._last_request = time.monotonic()

    async def handle_rate_limit_response(self, retry_after: float | None = None) -> float:
        """Handle a 429 rate limit response with adaptive backoff.

        Args:
            retry_after: Retry-After header from API response (seconds)

        Returns:
            The actual wait time used
        """
        async with self._lock:
            if retry_after is not None:
                wait_time = float(retry_after)
            else:
                wait_time = self._current_backoff

            wait_time = min(wait_time, self.config.max_backoff_seconds)

            logger.warning(
                f"RateLimiter[{self.name}]: 429 Rate Limited! "
                f"Waiting {wait_time:.1f}s before retry "
                f"(backoff level: {self._current_backoff:.1f}s)"
            )

            self._current_backoff = min(
                self._current_backoff * self.config.backoff_multiplier,
                self.config.max_backoff_seconds,
            )

        # Wait outside lock, then push the watermark so the retry is spaced too
        await asyncio.sleep(wait_time)
        self._last_request = time.monotonic()
        return wait_time

    def reset_backoff(self) -> None:
        """Reset backoff after a successful request."""
        self._current_backoff = self.config.initial_backoff_seconds

    async def __aenter__(self) -> "RateLimiter":
        await self.acquire()
        return self

    async def __aexit__(
        self, exc_type: type | None, exc_val: Exception | None, exc_tb: object
    ) -> None:
        if exc_type is None:
            self.reset_backoff()

    @property
    def min_interval(self) -> float:
        return self.config.min_interval


__all__ = [
    "DEFAULT_MIN_INTERVAL",
    "MUSICBRAINZ_MIN_INTERVAL",
    "RateLimiter",
    "RateLimiterConfig",
]
