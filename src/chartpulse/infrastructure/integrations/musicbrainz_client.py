"""MusicBrainz HTTP client implementation with rate limiting."""

import logging
from typing import Any

import httpx

from chartpulse.config.settings import MusicBrainzSettings
from chartpulse.domain.ports import IMusicBrainzClient
from chartpulse.domain.value_objects import MusicBrainzArtist
from chartpulse.infrastructure.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


class MusicBrainzClient(IMusicBrainzClient):
    """HTTP client for the MusicBrainz registry with strict 1 req/sec pacing."""

    API_BASE_URL = "https://musicbrainz.org/ws/2"

    # Hey future me, MusicBrainz is STRICT about rate limiting - 1 req/sec, NO EXCEPTIONS!
    # The limiter is per instance (not module state) and serialises every request of this
    # client. If you violate the limit they'll IP-ban you for hours. Don't share one client
    # across processes thinking the limiter protects you - it only sees this instance.
    def __init__(
        self,
        settings: MusicBrainzSettings,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        """
        Initialize MusicBrainz client.

        Args:
            settings: MusicBrainz configuration settings
            rate_limiter: Optional limiter override (defaults to 1 req/sec)
        """
        self.settings = settings
        self._client: httpx.AsyncClient | None = None
        self._rate_limiter = rate_limiter or RateLimiter.for_musicbrainz()

    # Listen future me, MusicBrainz REQUIRES a User-Agent with your app name, version, AND
    # contact info. Without it they reject requests with 403. The format matters:
    # "AppName/Version ( contact )" with those exact spaces and parens.
    @property
    def user_agent(self) -> str:
        return (
            f"{self.settings.app_name}/{self.settings.app_version} "
            f"( {self.settings.contact} )"
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.API_BASE_URL,
                headers={
                    "User-Agent": self.user_agent,
                    "Accept": "application/json",
                },
                timeout=30.0,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _rate_limited_request(
        self, method: str, url: str, **kwargs: Any
    ) -> httpx.Response:
        """
        Make a rate-limited request to MusicBrainz API.

        Args:
            method: HTTP method
            url: Request URL
            **kwargs: Additional request parameters

        Returns:
            HTTP response

        Raises:
            httpx.HTTPError: If the request fails
        """
        async with self._rate_limiter:
            client = await self._get_client()
            return await client.request(method, url, **kwargs)

    # Hey future me, MusicBrainz search uses Lucene query syntax. The quotes are IMPORTANT -
    # without them "The Beatles" becomes "the OR beatles" and you get garbage. Results come
    # sorted by relevance "score" (0-100), so the first one is the best guess. It's only a
    # guess though - the identity resolver takes it anyway, that's the accepted trade-off.
    async def search_by_name(
        self, name: str, limit: int = 10
    ) -> list[MusicBrainzArtist]:
        """
        Search for artists by name.

        Args:
            name: Artist name
            limit: Maximum number of results

        Returns:
            Matching artists, highest score first

        Raises:
            httpx.HTTPError: If the request fails
        """
        if not name or not name.strip():
            return []

        escaped = name.replace('"', '\\"')
        response = await self._rate_limited_request(
            "GET",
            "/artist",
            params={"query": f'artist:"{escaped}"', "fmt": "json", "limit": limit},
        )
        response.raise_for_status()
        data = response.json()

        return [self._parse_artist(item) for item in data.get("artists", []) if item.get("id")]

    # Yo, inc=url-rels is what makes the identity bridge work: the registry lists
    # links like https://open.spotify.com/artist/<id> as URL relations. Without the inc
    # param you get the bare record and no links at all. 404 = unknown or merged MBID,
    # that's normal flow, not an error.
    async def get_by_id(self, mbid: str) -> MusicBrainzArtist | None:
        """
        Lookup an artist by MusicBrainz ID, including URL relations.

        Args:
            mbid: MusicBrainz artist ID

        Returns:
            Artist record or None if not found

        Raises:
            httpx.HTTPError: If the request fails
        """
        try:
            response = await self._rate_limited_request(
                "GET",
                f"/artist/{mbid}",
                params={"fmt": "json", "inc": "url-rels"},
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            if e.response.status_code in (400, 404):
                return None
            raise

        if not data.get("id"):
            return None
        return self._parse_artist(data)

    @staticmethod
    def _parse_artist(data: dict[str, Any]) -> MusicBrainzArtist:
        relation_urls: list[str] = []
        for relation in data.get("relations") or []:
            resource = (relation.get("url") or {}).get("resource")
            if resource:
                relation_urls.append(resource)

        # Some mirrors expose identifiers directly; the public WS/2 does not.
        external_ids: dict[str, str] = {}
        for key, value in (data.get("external-ids") or {}).items():
            if isinstance(value, str) and value:
                external_ids[key] = value

        area = data.get("area") or {}
        return MusicBrainzArtist(
            id=data["id"],
            name=data.get("name", ""),
            score=int(data.get("score") or 0),
            artist_type=data.get("type"),
            country=data.get("country"),
            area=area.get("name"),
            disambiguation=data.get("disambiguation") or None,
            relation_urls=tuple(relation_urls),
            external_ids=external_ids,
        )

    async def __aenter__(self) -> "MusicBrainzClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()
