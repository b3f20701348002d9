"""Last.fm HTTP client implementation."""

import logging
from typing import Any

import httpx

from chartpulse.config.settings import LastfmSettings
from chartpulse.domain.exceptions import ProviderAuthenticationError, ProviderError
from chartpulse.domain.ports import ILastfmClient
from chartpulse.domain.value_objects import LastfmArtist, LastfmTrack
from chartpulse.infrastructure.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

PROVIDER = "lastfm"

# Hey future me - Last.fm answers most failures with HTTP 200 and {"error": N, "message": ...}.
# 6 = "artist/track not found", 7 = "invalid resource" -> normal "no data" flow.
# The auth family (invalid key, suspended key, ...) is worth its own exception so the logs
# say "rotate your key" instead of "Last.fm is flaky".
NOT_FOUND_ERROR_CODES = frozenset({6, 7})
AUTH_ERROR_CODES = frozenset({4, 9, 10, 14, 26})


def _to_int(value: Any) -> int:
    """Last.fm sends counts as strings ("12345"). Anything unparsable is 0."""
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _as_list(value: Any) -> list[dict[str, Any]]:
    """Last.fm collapses one-element lists into a bare object. Undo that."""
    if value is None:
        return []
    if isinstance(value, dict):
        return [value]
    return [item for item in value if isinstance(item, dict)]


def _artist_name(value: Any) -> str:
    # chart tracks use {"name": ...}, track.getInfo may use {"#text": ...} or a plain string
    if isinstance(value, dict):
        return str(value.get("name") or value.get("#text") or "")
    return str(value or "")


class LastfmClient(ILastfmClient):
    """HTTP client for Last.fm API operations (read-only methods, no signing)."""

    API_BASE_URL = "https://ws.audioscrobbler.com/2.0/"

    def __init__(
        self,
        settings: LastfmSettings,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        """
        Initialize Last.fm client.

        Args:
            settings: Last.fm configuration settings
            rate_limiter: Optional limiter override (defaults to 200ms spacing)
        """
        self.settings = settings
        self._client: httpx.AsyncClient | None = None
        self._rate_limiter = rate_limiter or RateLimiter.for_provider(PROVIDER)

        if not self.settings.is_configured:
            logger.warning(
                "Last.fm API key not configured - Last.fm lookups will return no data"
            )

    @property
    def is_configured(self) -> bool:
        return self.settings.is_configured

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.API_BASE_URL,
                timeout=30.0,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _check_error_payload(self, method: str, data: dict[str, Any]) -> bool:
        """Return True if the payload is a not-found error, raise for other errors."""
        code = data.get("error")
        if code is None:
            return False

        code = _to_int(code)
        message = str(data.get("message") or f"error {code}")
        if code in NOT_FOUND_ERROR_CODES:
            logger.debug(f"Last.fm {method}: not found ({message})")
            return True
        if code in AUTH_ERROR_CODES:
            raise ProviderAuthenticationError(PROVIDER, message)
        raise ProviderError(PROVIDER, f"{method} failed with code {code}: {message}")

    async def _make_request(
        self, method: str, params: dict[str, Any]
    ) -> dict[str, Any] | None:
        """
        Make a request to Last.fm API.

        Args:
            method: API method name
            params: Request parameters

        Returns:
            Response data or None if not found (or no API key)

        Raises:
            httpx.HTTPError: If the request fails
            ProviderAuthenticationError: If Last.fm rejects the API key
            ProviderError: For any other Last.fm error payload
        """
        if not self.settings.is_configured:
            return None

        request_params = {
            "method": method,
            "api_key": self.settings.api_key,
            "format": "json",
            **params,
        }

        async with self._rate_limiter:
            client = await self._get_client()
            response = await client.get("", params=request_params)

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                return None
            # Last.fm puts the real reason in the body even for 4xx
            try:
                body = e.response.json()
            except ValueError:
                raise e from None
            if isinstance(body, dict) and self._check_error_payload(method, body):
                return None
            raise

        data = response.json()
        if not isinstance(data, dict):
            return None
        if self._check_error_payload(method, data):
            return None
        return data

    @staticmethod
    def _parse_artist(item: dict[str, Any]) -> LastfmArtist:
        # artist.getInfo nests counts under "stats", charts keep them top-level
        stats = item.get("stats") or item
        return LastfmArtist(
            name=str(item.get("name") or ""),
            listeners=_to_int(stats.get("listeners")),
            playcount=_to_int(stats.get("playcount")),
            url=item.get("url") or None,
            mbid=item.get("mbid") or None,
        )

    @staticmethod
    def _parse_track(item: dict[str, Any]) -> LastfmTrack:
        return LastfmTrack(
            name=str(item.get("name") or ""),
            artist=_artist_name(item.get("artist")),
            listeners=_to_int(item.get("listeners")),
            playcount=_to_int(item.get("playcount")),
            url=item.get("url") or None,
        )

    def _parse_artists(self, items: Any) -> list[LastfmArtist]:
        return [self._parse_artist(item) for item in _as_list(items) if item.get("name")]

    def _parse_tracks(self, items: Any) -> list[LastfmTrack]:
        tracks = [self._parse_track(item) for item in _as_list(items)]
        return [track for track in tracks if track.name and track.artist]

    async def search_by_name(self, name: str, limit: int = 10) -> list[LastfmArtist]:
        """
        Search artists by name (artist.search).

        Args:
            name: Artist name
            limit: Maximum results

        Returns:
            Matching artists
        """
        data = await self._make_request("artist.search", {"artist": name, "limit": limit})
        if not data:
            return []
        matches = (data.get("results") or {}).get("artistmatches") or {}
        return self._parse_artists(matches.get("artist"))

    # Hey future me - Last.fm prefers the MBID when you pass one, but its MBID coverage is
    # patchy. If the MBID lookup comes back "not found" we retry by name before giving up.
    async def get_by_id(
        self, name: str, mbid: str | None = None
    ) -> LastfmArtist | None:
        """
        Get artist information (artist.getInfo).

        Args:
            name: Artist name
            mbid: Optional MusicBrainz ID

        Returns:
            Artist or None if not found
        """
        data = None
        if mbid:
            data = await self._make_request("artist.getInfo", {"mbid": mbid})
        if not data and name:
            data = await self._make_request(
                "artist.getInfo", {"artist": name, "autocorrect": 1}
            )
        if not data or not data.get("artist"):
            return None
        return self._parse_artist(data["artist"])

    async def get_top_entities(
        self, limit: int = 100, window: str | None = None
    ) -> list[LastfmArtist]:
        """
        Global top artists (chart.getTopArtists).

        Args:
            limit: Maximum results
            window: Ignored - the Last.fm global chart is always "this week"

        Returns:
            Chart entries in rank order
        """
        if window:
            logger.debug(f"Last.fm chart has no window parameter, ignoring '{window}'")
        data = await self._make_request("chart.getTopArtists", {"limit": limit})
        if not data:
            return []
        return self._parse_artists((data.get("artists") or {}).get("artist"))[:limit]

    # Listen, tag charts do NOT carry listeners/playcount - entries come back with zeros.
    # The aggregator fetches artist.getInfo afterwards when it needs real numbers.
    async def get_top_artists_by_tag(
        self, tag: str, limit: int = 50
    ) -> list[LastfmArtist]:
        """Top artists for a genre tag (tag.getTopArtists)."""
        data = await self._make_request("tag.getTopArtists", {"tag": tag, "limit": limit})
        if not data:
            return []
        return self._parse_artists((data.get("topartists") or {}).get("artist"))[:limit]

    async def get_top_tracks(self, limit: int = 100) -> list[LastfmTrack]:
        """Global top tracks (chart.getTopTracks)."""
        data = await self._make_request("chart.getTopTracks", {"limit": limit})
        if not data:
            return []
        return self._parse_tracks((data.get("tracks") or {}).get("track"))[:limit]

    async def get_top_tracks_by_tag(
        self, tag: str, limit: int = 50
    ) -> list[LastfmTrack]:
        """Top tracks for a genre tag (tag.getTopTracks)."""
        data = await self._make_request("tag.getTopTracks", {"tag": tag, "limit": limit})
        if not data:
            return []
        return self._parse_tracks((data.get("tracks") or {}).get("track"))[:limit]

    async def get_track_info(
        self, track_name: str, artist_name: str
    ) -> LastfmTrack | None:
        """
        Get track listeners/playcount (track.getInfo).

        Args:
            track_name: Track title
            artist_name: Artist name

        Returns:
            Track or None if not found
        """
        data = await self._make_request(
            "track.getInfo",
            {"track": track_name, "artist": artist_name, "autocorrect": 1},
        )
        if not data or not data.get("track"):
            return None
        track = self._parse_track(data["track"])
        if not track.artist:
            track = LastfmTrack(
                name=track.name,
                artist=artist_name,
                listeners=track.listeners,
                playcount=track.playcount,
                url=track.url,
            )
        return track

    async def __aenter__(self) -> "LastfmClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()
