"""Spotify HTTP client implementation (client-credentials flow)."""

import asyncio
import logging
import time
from datetime import date
from typing import Any

import httpx

from chartpulse.config.settings import SpotifySettings
from chartpulse.domain.exceptions import ProviderAuthenticationError
from chartpulse.domain.ports import ISpotifyClient
from chartpulse.domain.value_objects import ImageRef, SpotifyArtist, SpotifyTrack
from chartpulse.infrastructure.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

PROVIDER = "spotify"

# Refresh the app token this many seconds before Spotify says it expires
TOKEN_EXPIRY_MARGIN = 60.0


def parse_release_date(value: str | None) -> date | None:
    """Parse Spotify's release_date which may be "2021-03-05", "2021-03" or "2021"."""
    if not value:
        return None
    parts = value.split("-")
    try:
        year = int(parts[0])
        month = int(parts[1]) if len(parts) > 1 else 1
        day = int(parts[2]) if len(parts) > 2 else 1
        return date(year, month, day)
    except (ValueError, IndexError):
        return None


def _parse_retry_after(value: str | None) -> float | None:
    """Retry-After in seconds; None when missing or not a number (HTTP-date form)."""
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


def _parse_images(items: list[dict[str, Any]] | None) -> tuple[ImageRef, ...]:
    return tuple(
        ImageRef(
            url=item["url"],
            source=PROVIDER,
            width=item.get("width"),
            height=item.get("height"),
        )
        for item in items or []
        if item.get("url")
    )


class SpotifyClient(ISpotifyClient):
    """HTTP client for Spotify Web API catalog lookups (no user login)."""

    TOKEN_URL = "https://accounts.spotify.com/api/token"  # nosec B105 - public endpoint URL
    API_BASE_URL = "https://api.spotify.com/v1"

    # Hey future me, this init is deceptively simple - we DON'T create the HTTP client here
    # because we need to be async-friendly. The actual client gets lazy-loaded in _get_client().
    # The app token is private state of THIS instance, guarded by _token_lock so ten
    # concurrent callers trigger exactly one token exchange.
    def __init__(
        self,
        settings: SpotifySettings,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        """
        Initialize Spotify client.

        Args:
            settings: Spotify configuration settings
            rate_limiter: Optional limiter override (defaults to 200ms spacing)
        """
        self.settings = settings
        self._client: httpx.AsyncClient | None = None
        self._rate_limiter = rate_limiter or RateLimiter.for_provider(PROVIDER)
        self._access_token: str | None = None
        self._token_expires_at: float = 0.0
        self._token_lock = asyncio.Lock()

        if not self.settings.is_configured:
            logger.warning(
                "Spotify client credentials not configured - Spotify lookups will return no data"
            )

    @property
    def is_configured(self) -> bool:
        return self.settings.is_configured

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=30.0)
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _token_valid(self) -> bool:
        return (
            self._access_token is not None
            and time.monotonic() < self._token_expires_at - TOKEN_EXPIRY_MARGIN
        )

    def _invalidate_token(self) -> None:
        self._access_token = None
        self._token_expires_at = 0.0

    # Yo, client-credentials is the boring OAuth flow: app id + secret in, bearer token out,
    # valid for ~1 hour. No refresh token - when it's about to expire we just ask again.
    # 400/401 from the token endpoint means the credentials are wrong, not that Spotify is
    # down, so that becomes ProviderAuthenticationError.
    async def _get_access_token(self) -> str:
        """Return a cached app token, exchanging credentials when it is missing or stale."""
        if self._token_valid():
            return self._access_token  # type: ignore[return-value]

        async with self._token_lock:
            # Another coroutine may have refreshed while we waited for the lock
            if self._token_valid():
                return self._access_token  # type: ignore[return-value]

            client = await self._get_client()
            response = await client.post(
                self.TOKEN_URL,
                data={"grant_type": "client_credentials"},
                auth=(self.settings.client_id, self.settings.client_secret),
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
            if response.status_code in (400, 401, 403):
                raise ProviderAuthenticationError(
                    PROVIDER, http_status=response.status_code
                )
            response.raise_for_status()

            data = response.json()
            self._access_token = data["access_token"]
            self._token_expires_at = time.monotonic() + float(
                data.get("expires_in", 3600)
            )
            logger.debug("Spotify app token refreshed")
            return self._access_token  # type: ignore[return-value]

    # Hey future me - CENTRALIZED API REQUEST with Rate Limiting!
    # All API calls go through here:
    # - per-client min-interval limiter (prevents 429s)
    # - retry with Retry-After on 429, max 3 retries to prevent infinite loops
    # - one token refresh + retry on 401 (token revoked early)
    async def _api_request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        max_retries: int = 3,
    ) -> httpx.Response:
        """Make rate-limited API request with automatic retry on 429.

        Args:
            method: HTTP method
            path: Path below API_BASE_URL
            params: Query parameters
            max_retries: Max retries on 429 (default 3)

        Returns:
            httpx.Response object

        Raises:
            httpx.HTTPStatusError: On non-retryable HTTP errors
            ProviderAuthenticationError: If Spotify rejects the app credentials
        """
        client = await self._get_client()
        url = f"{self.API_BASE_URL}{path}"
        token_retried = False
        attempt = 0

        while True:
            access_token = await self._get_access_token()
            async with self._rate_limiter:
                response = await client.request(
                    method=method,
                    url=url,
                    params=params,
                    headers={"Authorization": f"Bearer {access_token}"},
                )

            if response.status_code == 401 and not token_retried:
                token_retried = True
                self._invalidate_token()
                continue

            if response.status_code == 429:
                retry_after = _parse_retry_after(response.headers.get("Retry-After"))

                if attempt >= max_retries:
                    error_msg = (
                        f"Spotify API rate limited (429) after {max_retries} retries. "
                        f"URL: {url}. Retry-After: {retry_after or 'not provided'} seconds."
                    )
                    logger.error(error_msg)
                    raise httpx.HTTPStatusError(
                        error_msg,
                        request=response.request,
                        response=response,
                    )

                wait_time = await self._rate_limiter.handle_rate_limit_response(
                    retry_after
                )
                attempt += 1
                logger.warning(
                    f"Spotify 429 Rate Limit (attempt {attempt}/{max_retries}): "
                    f"Waited {wait_time:.1f}s, retrying {url}"
                )
                continue

            return response

    @staticmethod
    def _parse_artist(item: dict[str, Any]) -> SpotifyArtist:
        return SpotifyArtist(
            id=item["id"],
            name=item.get("name", ""),
            followers=int((item.get("followers") or {}).get("total") or 0),
            popularity=int(item.get("popularity") or 0),
            genres=tuple(item.get("genres") or ()),
            images=_parse_images(item.get("images")),
        )

    @staticmethod
    def _parse_track(item: dict[str, Any]) -> SpotifyTrack:
        album = item.get("album") or {}
        return SpotifyTrack(
            id=item["id"],
            name=item.get("name", ""),
            artist_names=tuple(
                artist.get("name", "") for artist in item.get("artists") or []
            ),
            album=album.get("name"),
            release_date=parse_release_date(album.get("release_date")),
            duration_ms=int(item.get("duration_ms") or 0),
            popularity=int(item.get("popularity") or 0),
            album_images=_parse_images(album.get("images")),
        )

    async def search_by_name(self, name: str, limit: int = 10) -> list[SpotifyArtist]:
        """
        Search artists by name.

        Args:
            name: Artist name
            limit: Maximum results (Spotify caps this at 50)

        Returns:
            Matching artists, best match first
        """
        if not self.is_configured or not name.strip():
            return []

        response = await self._api_request(
            "GET",
            "/search",
            params={"q": name, "type": "artist", "limit": min(limit, 50)},
        )
        response.raise_for_status()
        items = ((response.json().get("artists") or {}).get("items")) or []
        return [self._parse_artist(item) for item in items if item and item.get("id")]

    async def get_by_id(self, artist_id: str) -> SpotifyArtist | None:
        """
        Get an artist by Spotify id.

        Args:
            artist_id: Spotify artist id

        Returns:
            Artist or None if not found
        """
        if not self.is_configured or not artist_id:
            return None

        try:
            response = await self._api_request("GET", f"/artists/{artist_id}")
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            # 400 = malformed id (e.g. a stale URI got stored), treat like "unknown"
            if e.response.status_code in (400, 404):
                return None
            raise
        return self._parse_artist(response.json())

    # Listen, Spotify's field filters make this much sharper than a free-text search.
    # We still can't trust the first hit blindly - the track aggregator checks the artist
    # names with names_match() before accepting it.
    async def search_tracks(
        self, track_name: str, artist_name: str, limit: int = 1
    ) -> list[SpotifyTrack]:
        """
        Search tracks by track and artist name.

        Args:
            track_name: Track title
            artist_name: Artist name
            limit: Maximum results

        Returns:
            Matching tracks, best match first
        """
        if not self.is_configured or not track_name.strip():
            return []

        response = await self._api_request(
            "GET",
            "/search",
            params={
                "q": f"track:{track_name} artist:{artist_name}",
                "type": "track",
                "limit": min(limit, 50),
            },
        )
        response.raise_for_status()
        items = ((response.json().get("tracks") or {}).get("items")) or []
        return [self._parse_track(item) for item in items if item and item.get("id")]

    async def __aenter__(self) -> "SpotifyClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()
