"""ListenBrainz HTTP client implementation."""

import logging
from typing import Any

import httpx

from chartpulse.config.settings import ListenBrainzSettings
from chartpulse.domain.exceptions import ProviderAuthenticationError
from chartpulse.domain.ports import IListenBrainzClient
from chartpulse.domain.value_objects import ListenBrainzArtist, ListenBrainzStats
from chartpulse.infrastructure.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

PROVIDER = "listenbrainz"

STATS_WINDOWS = ("week", "month", "year", "all_time")


def _first_mbid(item: dict[str, Any]) -> str | None:
    # Sitewide stats moved from artist_mbid to an artist_mbids list at some point
    mbid = item.get("artist_mbid")
    if mbid:
        return str(mbid)
    mbids = item.get("artist_mbids") or []
    return str(mbids[0]) if mbids else None


class ListenBrainzClient(IListenBrainzClient):
    """HTTP client for ListenBrainz statistics.

    Stats endpoints are public; the user token only raises our rate limit.
    ListenBrainz answers 204 No Content while stats are still being computed,
    which we treat exactly like 404.
    """

    API_BASE_URL = "https://api.listenbrainz.org/1"

    def __init__(
        self,
        settings: ListenBrainzSettings,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        """
        Initialize ListenBrainz client.

        Args:
            settings: ListenBrainz configuration settings
            rate_limiter: Optional limiter override (defaults to 200ms spacing)
        """
        self.settings = settings
        self._client: httpx.AsyncClient | None = None
        self._rate_limiter = rate_limiter or RateLimiter.for_provider(PROVIDER)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            headers = {"Accept": "application/json"}
            if self.settings.user_token:
                headers["Authorization"] = f"Token {self.settings.user_token}"
            self._client = httpx.AsyncClient(
                base_url=self.API_BASE_URL,
                headers=headers,
                timeout=30.0,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _get_json(
        self, path: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any] | None:
        """
        GET a JSON document.

        Returns:
            Parsed body, or None for 204/404

        Raises:
            httpx.HTTPError: If the request fails
            ProviderAuthenticationError: If the configured token is rejected
        """
        async with self._rate_limiter:
            client = await self._get_client()
            response = await client.get(path, params=params)

        if response.status_code in (204, 404):
            return None
        if response.status_code == 401:
            raise ProviderAuthenticationError(PROVIDER, "user token rejected", 401)
        response.raise_for_status()

        data = response.json()
        return data if isinstance(data, dict) else None

    async def search_by_name(
        self, name: str, limit: int = 10
    ) -> list[ListenBrainzArtist]:
        """
        Search artists by name.

        Args:
            name: Artist name
            limit: Maximum results

        Returns:
            Matching artists
        """
        if not name or not name.strip():
            return []

        data = await self._get_json("/search/artist", {"q": name, "count": limit})
        if not data:
            return []
        return [
            ListenBrainzArtist(
                name=str(item.get("name") or item.get("artist_name") or ""),
                mbid=item.get("mbid") or _first_mbid(item),
                listen_count=int(item.get("listen_count") or 0),
            )
            for item in data.get("artists") or []
            if item.get("name") or item.get("artist_name")
        ][:limit]

    async def get_by_id(self, artist_mbid: str) -> ListenBrainzStats | None:
        """
        Listener statistics for an artist.

        Args:
            artist_mbid: MusicBrainz artist ID

        Returns:
            Stats or None if ListenBrainz has none yet
        """
        if not artist_mbid:
            return None

        data = await self._get_json(f"/stats/artist/{artist_mbid}/listeners")
        if not data or not data.get("payload"):
            return None

        payload = data["payload"]
        listeners = payload.get("total_user_count")
        if listeners is None:
            raw = payload.get("listeners")
            listeners = len(raw) if isinstance(raw, list) else raw
        listen_count = payload.get("total_listen_count", payload.get("listen_count"))

        return ListenBrainzStats(
            name=str(payload.get("artist_name") or ""),
            mbid=_first_mbid(payload) or artist_mbid,
            listeners=int(listeners or 0),
            listen_count=int(listen_count or 0),
        )

    async def get_top_entities(
        self, limit: int = 100, window: str = "week"
    ) -> list[ListenBrainzArtist]:
        """
        Sitewide top artists.

        Args:
            limit: Maximum results
            window: One of week, month, year, all_time

        Returns:
            Artists in rank order

        Raises:
            ValueError: For an unknown window
        """
        if window not in STATS_WINDOWS:
            raise ValueError(
                f"Unknown stats window '{window}', expected one of {', '.join(STATS_WINDOWS)}"
            )

        data = await self._get_json(
            "/stats/sitewide/artists", {"count": limit, "range": window}
        )
        if not data:
            return []
        artists = (data.get("payload") or {}).get("artists") or []
        return [
            ListenBrainzArtist(
                name=str(item["artist_name"]),
                mbid=_first_mbid(item),
                listen_count=int(item.get("listen_count") or 0),
            )
            for item in artists
            if item.get("artist_name")
        ][:limit]

    async def __aenter__(self) -> "ListenBrainzClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()
