"""Identity resolution: map a name to a registry id, and a registry id to provider ids."""

import logging
import re
from dataclasses import dataclass

import httpx

from chartpulse.domain.exceptions import ProviderAuthenticationError, ProviderError
from chartpulse.domain.ports import IMusicBrainzClient
from chartpulse.infrastructure.observability.log_messages import LogMessages

logger = logging.getLogger(__name__)

SPOTIFY_ARTIST_URL = re.compile(r"open\.spotify\.com/artist/([A-Za-z0-9]+)")
LASTFM_ARTIST_URL = re.compile(r"last\.fm/(?:[a-z]{2}/)?music/([^/?#]+)")


@dataclass(frozen=True)
class BridgedIds:
    """Provider ids and enrichment fields read off one registry record."""

    musicbrainz_id: str | None = None
    spotify_id: str | None = None
    lastfm_url: str | None = None
    country: str | None = None
    artist_type: str | None = None

    @property
    def is_empty(self) -> bool:
        return not (self.spotify_id or self.lastfm_url)


def extract_spotify_id(urls: list[str] | tuple[str, ...]) -> str | None:
    """First Spotify artist id found in a list of URLs."""
    for url in urls:
        match = SPOTIFY_ARTIST_URL.search(url)
        if match:
            return match.group(1)
    return None


def extract_lastfm_url(urls: list[str] | tuple[str, ...]) -> str | None:
    """First Last.fm artist page, normalised to https://www.last.fm/music/<name>."""
    for url in urls:
        match = LASTFM_ARTIST_URL.search(url)
        if match:
            return f"https://www.last.fm/music/{match.group(1)}"
    return None


class IdentityResolver:
    """Bridge between artist names, the MusicBrainz registry and provider ids.

    Hey future me - there is NO shared key across providers, so the registry is the hub:
    name -> MBID (fuzzy search, top hit wins) -> registry record -> URL relations ->
    Spotify id / Last.fm page. Every step is best effort. A failure anywhere is logged and
    turns into None or an empty BridgedIds, never an exception for the caller.
    """

    def __init__(self, musicbrainz_client: IMusicBrainzClient) -> None:
        self._musicbrainz = musicbrainz_client

    async def resolve_external_id(self, name: str) -> str | None:
        """
        Find the registry id for an artist name.

        Args:
            name: Artist name

        Returns:
            MBID of the top search hit, or None
        """
        if not name or not name.strip():
            return None

        try:
            results = await self._musicbrainz.search_by_name(name, limit=5)
        except ProviderAuthenticationError as e:
            logger.warning(LogMessages.provider_auth_failed("MusicBrainz", str(e)))
            return None
        except (httpx.HTTPError, ProviderError) as e:
            logger.warning(
                LogMessages.provider_failed(
                    provider="MusicBrainz",
                    operation="search_by_name",
                    entity=name,
                    error=f"{type(e).__name__}: {e}",
                )
            )
            return None

        if not results:
            logger.debug(f"No MusicBrainz match for '{name}'")
            return None
        return results[0].id

    async def bridge_external_ids(self, registry_id: str) -> BridgedIds:
        """
        Read provider ids from a registry record.

        Args:
            registry_id: MusicBrainz artist id

        Returns:
            BridgedIds (empty when the record is missing or the lookup failed)
        """
        if not registry_id:
            return BridgedIds()

        try:
            record = await self._musicbrainz.get_by_id(registry_id)
        except ProviderAuthenticationError as e:
            logger.warning(LogMessages.provider_auth_failed("MusicBrainz", str(e)))
            return BridgedIds(musicbrainz_id=registry_id)
        except (httpx.HTTPError, ProviderError) as e:
            logger.warning(
                LogMessages.provider_failed(
                    provider="MusicBrainz",
                    operation="get_by_id",
                    entity=registry_id,
                    error=f"{type(e).__name__}: {e}",
                )
            )
            return BridgedIds(musicbrainz_id=registry_id)

        if record is None:
            return BridgedIds(musicbrainz_id=registry_id)

        # Explicit identifier fields win over URL scraping when a record has both
        spotify_id = record.external_ids.get("spotify") or extract_spotify_id(
            record.relation_urls
        )
        lastfm_url = record.external_ids.get("lastfm") or extract_lastfm_url(
            record.relation_urls
        )

        return BridgedIds(
            musicbrainz_id=record.id,
            spotify_id=spotify_id,
            lastfm_url=lastfm_url,
            country=record.country,
            artist_type=record.artist_type,
        )
