"""Domain ports (interfaces) for dependency inversion."""

from abc import ABC, abstractmethod
from typing import Any, Protocol, runtime_checkable

from chartpulse.domain.entities import UnifiedArtist, UnifiedTrack
from chartpulse.domain.value_objects import (
    LastfmArtist,
    LastfmTrack,
    ListenBrainzArtist,
    ListenBrainzStats,
    MusicBrainzArtist,
    SpotifyArtist,
    SpotifyTrack,
)


# Hey future me - this is the capability EVERY provider client shares. It's a Protocol (not an
# ABC) so the scheduler/tests can ask isinstance(client, ProviderClient) without the clients
# inheriting from it. get_top_entities is optional - MusicBrainz has no chart, so it's not part
# of the protocol; check with hasattr() before calling it generically.
@runtime_checkable
class ProviderClient(Protocol):
    """Common capability of the provider clients."""

    async def search_by_name(self, name: str, limit: int = 10) -> list[Any]:
        """Fuzzy search by name. Empty list when nothing matches."""
        ...

    async def get_by_id(self, entity_id: str) -> Any | None:
        """Fetch one entity by the provider's own id. None when unknown."""
        ...

    async def close(self) -> None:
        """Release the HTTP connection pool."""
        ...


class ISpotifyClient(ABC):
    """Port for Spotify Web API operations (client-credentials flow)."""

    @abstractmethod
    async def search_by_name(self, name: str, limit: int = 10) -> list[SpotifyArtist]:
        """
        Search artists by name.

        Args:
            name: Artist name
            limit: Maximum results

        Returns:
            Matching artists, best match first
        """
        pass

    @abstractmethod
    async def get_by_id(self, artist_id: str) -> SpotifyArtist | None:
        """
        Get an artist by Spotify id.

        Args:
            artist_id: Spotify artist id (base62, not the URI)

        Returns:
            Artist or None if not found
        """
        pass

    @abstractmethod
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
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the HTTP client."""
        pass


class ILastfmClient(ABC):
    """Port for Last.fm API client operations."""

    @abstractmethod
    async def search_by_name(self, name: str, limit: int = 10) -> list[LastfmArtist]:
        """Search artists by name (artist.search)."""
        pass

    @abstractmethod
    async def get_by_id(
        self, name: str, mbid: str | None = None
    ) -> LastfmArtist | None:
        """
        Get artist information (artist.getInfo).

        Args:
            name: Artist name
            mbid: Optional MusicBrainz ID (preferred by Last.fm when given)

        Returns:
            Artist or None if not found
        """
        pass

    @abstractmethod
    async def get_top_entities(
        self, limit: int = 100, window: str | None = None
    ) -> list[LastfmArtist]:
        """Global top artists chart (chart.getTopArtists)."""
        pass

    @abstractmethod
    async def get_top_artists_by_tag(
        self, tag: str, limit: int = 50
    ) -> list[LastfmArtist]:
        """Top artists for a genre tag (tag.getTopArtists)."""
        pass

    @abstractmethod
    async def get_top_tracks(self, limit: int = 100) -> list[LastfmTrack]:
        """Global top tracks chart (chart.getTopTracks)."""
        pass

    @abstractmethod
    async def get_top_tracks_by_tag(
        self, tag: str, limit: int = 50
    ) -> list[LastfmTrack]:
        """Top tracks for a genre tag (tag.getTopTracks)."""
        pass

    @abstractmethod
    async def get_track_info(
        self, track_name: str, artist_name: str
    ) -> LastfmTrack | None:
        """Track listeners/playcount (track.getInfo). None if not found."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the HTTP client."""
        pass


class IMusicBrainzClient(ABC):
    """Port for MusicBrainz registry operations."""

    @abstractmethod
    async def search_by_name(
        self, name: str, limit: int = 10
    ) -> list[MusicBrainzArtist]:
        """Search the registry for artists, best score first."""
        pass

    @abstractmethod
    async def get_by_id(self, mbid: str) -> MusicBrainzArtist | None:
        """Get an artist record including its URL relations. None if not found."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the HTTP client."""
        pass


class IListenBrainzClient(ABC):
    """Port for ListenBrainz statistics operations."""

    @abstractmethod
    async def search_by_name(
        self, name: str, limit: int = 10
    ) -> list[ListenBrainzArtist]:
        """Search artists by name."""
        pass

    @abstractmethod
    async def get_by_id(self, artist_mbid: str) -> ListenBrainzStats | None:
        """Listener statistics for an artist MBID. None if no stats exist."""
        pass

    @abstractmethod
    async def get_top_entities(
        self, limit: int = 100, window: str = "week"
    ) -> list[ListenBrainzArtist]:
        """Sitewide top artists for a window (week, month, year, all_time)."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the HTTP client."""
        pass


class IUnifiedArtistRepository(ABC):
    """Repository interface for UnifiedArtist entities."""

    @abstractmethod
    async def add(self, artist: UnifiedArtist) -> None:
        """Add a new artist."""
        pass

    @abstractmethod
    async def get_by_id(self, artist_id: str) -> UnifiedArtist | None:
        """Get an artist by id."""
        pass

    @abstractmethod
    async def get_by_name(self, name: str) -> UnifiedArtist | None:
        """Get an artist by case-insensitive exact name."""
        pass

    @abstractmethod
    async def get_by_musicbrainz_id(self, musicbrainz_id: str) -> UnifiedArtist | None:
        """Get an artist by registry id."""
        pass

    @abstractmethod
    async def get_by_external_id(
        self, provider: str, external_id: str
    ) -> UnifiedArtist | None:
        """Get an artist by a provider id (spotify, lastfm, listenbrainz)."""
        pass

    @abstractmethod
    async def list_all(
        self, limit: int | None = None, offset: int = 0
    ) -> list[UnifiedArtist]:
        """List artists in creation order."""
        pass

    @abstractmethod
    async def list_independent(self, limit: int | None = None) -> list[UnifiedArtist]:
        """List independent artists in creation order."""
        pass

    @abstractmethod
    async def top_by_composite(
        self, limit: int = 50, independent_only: bool = False
    ) -> list[UnifiedArtist]:
        """Artists by composite score, highest first."""
        pass

    @abstractmethod
    async def top_by_momentum(
        self, limit: int = 50, independent_only: bool = False
    ) -> list[UnifiedArtist]:
        """Artists by momentum score, highest first."""
        pass

    @abstractmethod
    async def search(self, query: str, limit: int = 20) -> list[UnifiedArtist]:
        """Case-insensitive substring search over artist names."""
        pass

    @abstractmethod
    async def count(self, independent_only: bool = False) -> int:
        """Count artists."""
        pass

    @abstractmethod
    async def save_metrics(self, artist: UnifiedArtist) -> None:
        """Persist the metric snapshots only."""
        pass

    @abstractmethod
    async def save_identity(self, artist: UnifiedArtist) -> None:
        """Persist registry id and external ids only."""
        pass

    @abstractmethod
    async def save_enrichment(self, artist: UnifiedArtist) -> None:
        """Persist genres, images, country, type and label only."""
        pass

    @abstractmethod
    async def save_scores(self, artist: UnifiedArtist) -> None:
        """Persist scores, last_score_update and score history only."""
        pass

    @abstractmethod
    async def save_independence(self, artist: UnifiedArtist) -> None:
        """Persist the independence flag only."""
        pass


class IUnifiedTrackRepository(ABC):
    """Repository interface for UnifiedTrack entities."""

    @abstractmethod
    async def add(self, track: UnifiedTrack) -> None:
        """Add a new track."""
        pass

    @abstractmethod
    async def get_by_id(self, track_id: str) -> UnifiedTrack | None:
        """Get a track by id."""
        pass

    @abstractmethod
    async def get_by_name_and_artist(
        self, name: str, artist_id: str
    ) -> UnifiedTrack | None:
        """Get a track by case-insensitive name within one artist."""
        pass

    @abstractmethod
    async def list_by_artist(self, artist_id: str) -> list[UnifiedTrack]:
        """All tracks of one artist in creation order."""
        pass

    @abstractmethod
    async def list_for_independent_artists(
        self, limit: int | None = None
    ) -> list[UnifiedTrack]:
        """Tracks whose owning artist is independent."""
        pass

    @abstractmethod
    async def top_by_composite(
        self, limit: int = 50, independent_only: bool = False
    ) -> list[UnifiedTrack]:
        """Tracks by composite score, highest first."""
        pass

    @abstractmethod
    async def search(self, query: str, limit: int = 20) -> list[UnifiedTrack]:
        """Case-insensitive substring search over track and artist names."""
        pass

    @abstractmethod
    async def count(self) -> int:
        """Count tracks."""
        pass

    @abstractmethod
    async def save_metrics(self, track: UnifiedTrack) -> None:
        """Persist the metric snapshots only."""
        pass

    @abstractmethod
    async def save_enrichment(self, track: UnifiedTrack) -> None:
        """Persist external ids, album, release date, genres, images and duration."""
        pass

    @abstractmethod
    async def save_scores(self, track: UnifiedTrack) -> None:
        """Persist scores, last_score_update and score history only."""
        pass


__all__ = [
    "ILastfmClient",
    "IListenBrainzClient",
    "IMusicBrainzClient",
    "ISpotifyClient",
    "IUnifiedArtistRepository",
    "IUnifiedTrackRepository",
    "ProviderClient",
]
