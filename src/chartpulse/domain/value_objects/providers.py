"""Provider-specific value objects.

Hey future me - these are the ONLY shapes that leave a provider client. Each client
translates its raw JSON into one of these inside its own module, so a Last.fm payload
quirk (counts as strings!) never leaks into the aggregators. No cross-provider logic
lives here, just data.
"""

from dataclasses import dataclass, field
from datetime import date

from chartpulse.domain.value_objects.image_ref import ImageRef


@dataclass(frozen=True)
class SpotifyArtist:
    """Artist object from the Spotify Web API."""

    id: str
    name: str
    followers: int = 0
    popularity: int = 0
    genres: tuple[str, ...] = ()
    images: tuple[ImageRef, ...] = ()


@dataclass(frozen=True)
class SpotifyTrack:
    """Track object from the Spotify search endpoint."""

    id: str
    name: str
    artist_names: tuple[str, ...] = ()
    album: str | None = None
    release_date: date | None = None
    duration_ms: int = 0
    popularity: int = 0
    album_images: tuple[ImageRef, ...] = ()


@dataclass(frozen=True)
class LastfmArtist:
    """Artist entry from Last.fm charts, tag charts, search or artist.getInfo."""

    name: str
    listeners: int = 0
    playcount: int = 0
    url: str | None = None
    mbid: str | None = None


@dataclass(frozen=True)
class LastfmTrack:
    """Track entry from Last.fm charts, tag charts or track.getInfo."""

    name: str
    artist: str
    listeners: int = 0
    playcount: int = 0
    url: str | None = None


@dataclass(frozen=True)
class MusicBrainzArtist:
    """Artist record from the MusicBrainz registry.

    relation_urls holds every url-rel resource; external_ids holds explicit
    identifier fields when the registry exposes them directly.
    """

    id: str
    name: str
    score: int = 0
    artist_type: str | None = None
    country: str | None = None
    area: str | None = None
    disambiguation: str | None = None
    relation_urls: tuple[str, ...] = ()
    external_ids: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ListenBrainzArtist:
    """Artist entry from ListenBrainz sitewide stats or search."""

    name: str
    mbid: str | None = None
    listen_count: int = 0


@dataclass(frozen=True)
class ListenBrainzStats:
    """Listener statistics for one artist."""

    name: str
    mbid: str | None = None
    listeners: int = 0
    listen_count: int = 0
