"""Domain entities."""

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime

from chartpulse.domain.entities.metrics import (
    SCORE_HISTORY_WINDOW_DAYS,
    ArtistMetrics,
    LastfmArtistMetrics,
    LastfmTrackMetrics,
    ListenBrainzArtistMetrics,
    MetricSource,
    ScoreHistoryEntry,
    SpotifyArtistMetrics,
    SpotifyTrackMetrics,
    TrackMetrics,
    append_score_history,
    ensure_utc_aware,
    utc_now,
)
from chartpulse.domain.value_objects import ImageRef


def new_entity_id() -> str:
    """Generate a new entity id (UUID4 string)."""
    return str(uuid.uuid4())


# Hey future me - ExternalIds is the "bridge" between our entity and each provider. Any subset
# may be missing, and a missing id just means "we haven't managed to link that provider yet".
# lastfm holds the Last.fm artist URL (Last.fm has no stable opaque artist id), listenbrainz
# holds the MBID ListenBrainz uses (usually identical to musicbrainz_id).
@dataclass
class ExternalIds:
    """Provider identifiers of an artist."""

    spotify: str | None = None
    lastfm: str | None = None
    listenbrainz: str | None = None


@dataclass
class TrackExternalIds:
    """Provider identifiers of a track."""

    spotify: str | None = None
    lastfm: str | None = None


# Yo, UnifiedArtist is THE canonical artist! One row per real-world act (best effort - the
# name matching is fuzzy and "The Midnight Hour" vs "Midnight Hour" stay two entities).
# Scores are DERIVED ONLY: nothing but the scoring service writes composite/momentum/reach.
# is_independent defaults to True because brand-new artists have no evidence against them yet.
# Artists are never deleted.
@dataclass
class UnifiedArtist:
    """Canonical artist aggregated across providers."""

    name: str
    id: str = field(default_factory=new_entity_id)
    musicbrainz_id: str | None = None
    external_ids: ExternalIds = field(default_factory=ExternalIds)
    metrics: ArtistMetrics = field(default_factory=ArtistMetrics)
    composite_score: float = 0.0
    momentum_score: float = 0.0
    reach_score: float = 0.0
    last_score_update: datetime | None = None
    is_independent: bool = True
    score_history: list[ScoreHistoryEntry] = field(default_factory=list)
    genres: list[str] = field(default_factory=list)
    images: list[ImageRef] = field(default_factory=list)
    country: str | None = None
    artist_type: str | None = None
    label: str | None = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        """Validate artist data."""
        if not self.name or not self.name.strip():
            raise ValueError("Artist name cannot be empty")

    @property
    def has_spotify_id(self) -> bool:
        return bool(self.external_ids.spotify)

    def merge_genres(self, genres: list[str] | tuple[str, ...]) -> None:
        """Add genres we don't have yet, keeping first-seen order."""
        for genre in genres:
            if genre and genre not in self.genres:
                self.genres.append(genre)


# Listen, artist_name is denormalised at creation and NEVER re-synced - if the artist gets
# renamed later the track keeps the old spelling. artist_id is immutable.
# Tracks have no reach score, and their scores stay 0 while the owning artist is not
# independent.
@dataclass
class UnifiedTrack:
    """Canonical track aggregated across providers."""

    name: str
    artist_id: str
    artist_name: str
    id: str = field(default_factory=new_entity_id)
    musicbrainz_id: str | None = None
    external_ids: TrackExternalIds = field(default_factory=TrackExternalIds)
    metrics: TrackMetrics = field(default_factory=TrackMetrics)
    composite_score: float = 0.0
    momentum_score: float = 0.0
    last_score_update: datetime | None = None
    score_history: list[ScoreHistoryEntry] = field(default_factory=list)
    album: str | None = None
    release_date: date | None = None
    genres: list[str] = field(default_factory=list)
    images: list[ImageRef] = field(default_factory=list)
    duration: int | None = None  # seconds
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        """Validate track data."""
        if not self.name or not self.name.strip():
            raise ValueError("Track name cannot be empty")
        if not self.artist_id:
            raise ValueError("Track must belong to an artist")

    def merge_genres(self, genres: list[str] | tuple[str, ...]) -> None:
        """Add genres we don't have yet, keeping first-seen order."""
        for genre in genres:
            if genre and genre not in self.genres:
                self.genres.append(genre)


__all__ = [
    "SCORE_HISTORY_WINDOW_DAYS",
    "ArtistMetrics",
    "ExternalIds",
    "LastfmArtistMetrics",
    "LastfmTrackMetrics",
    "ListenBrainzArtistMetrics",
    "MetricSource",
    "ScoreHistoryEntry",
    "SpotifyArtistMetrics",
    "SpotifyTrackMetrics",
    "TrackExternalIds",
    "TrackMetrics",
    "UnifiedArtist",
    "UnifiedTrack",
    "append_score_history",
    "ensure_utc_aware",
    "new_entity_id",
    "utc_now",
]
