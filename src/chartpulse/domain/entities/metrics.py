"""Per-provider metric snapshots and score history.

Hey future me - a snapshot is "what provider X said about this entity at time T". We keep
exactly ONE snapshot per provider per entity (the latest), growth fields are the delta
against the snapshot it replaced. Anything older than that lives only in score_history.

Snapshots are stored as JSON columns, so every class here has to_dict/from_dict. Timestamps
go to ISO strings and come back UTC-aware (SQLite drops tzinfo, see ensure_utc_aware).
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

SCORE_HISTORY_WINDOW_DAYS = 30


def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


# Hey future me - SQLite doesn't preserve timezone info! Anything read back from a JSON
# column or DateTime column comes back naive. Attach UTC before comparing with utc_now().
def ensure_utc_aware(dt: datetime) -> datetime:
    """Ensure datetime is UTC-aware, assuming naive datetimes are UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return ensure_utc_aware(value)
    if isinstance(value, str) and value:
        return ensure_utc_aware(datetime.fromisoformat(value))
    return utc_now()


class MetricSource(str, Enum):
    """Provider a snapshot came from."""

    SPOTIFY = "spotify"
    LASTFM = "lastfm"
    LISTENBRAINZ = "listenbrainz"


@dataclass
class SpotifyArtistMetrics:
    """Spotify follower/popularity snapshot with 7-day growth."""

    followers: int = 0
    popularity: int = 0
    followers_growth_7d: int | None = None
    followers_growth_pct_7d: float | None = None
    timestamp: datetime = field(default_factory=utc_now)
    source: MetricSource = MetricSource.SPOTIFY

    def to_dict(self) -> dict[str, Any]:
        return {
            "followers": self.followers,
            "popularity": self.popularity,
            "followers_growth_7d": self.followers_growth_7d,
            "followers_growth_pct_7d": self.followers_growth_pct_7d,
            "timestamp": self.timestamp.isoformat(),
            "source": self.source.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SpotifyArtistMetrics":
        return cls(
            followers=int(data.get("followers") or 0),
            popularity=int(data.get("popularity") or 0),
            followers_growth_7d=data.get("followers_growth_7d"),
            followers_growth_pct_7d=data.get("followers_growth_pct_7d"),
            timestamp=_parse_timestamp(data.get("timestamp")),
        )


@dataclass
class LastfmArtistMetrics:
    """Last.fm listener/playcount snapshot with growth vs. the previous snapshot."""

    listeners: int = 0
    playcount: int = 0
    listeners_growth_7d: int | None = None
    playcount_growth_7d: int | None = None
    timestamp: datetime = field(default_factory=utc_now)
    source: MetricSource = MetricSource.LASTFM

    def to_dict(self) -> dict[str, Any]:
        return {
            "listeners": self.listeners,
            "playcount": self.playcount,
            "listeners_growth_7d": self.listeners_growth_7d,
            "playcount_growth_7d": self.playcount_growth_7d,
            "timestamp": self.timestamp.isoformat(),
            "source": self.source.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LastfmArtistMetrics":
        return cls(
            listeners=int(data.get("listeners") or 0),
            playcount=int(data.get("playcount") or 0),
            listeners_growth_7d=data.get("listeners_growth_7d"),
            playcount_growth_7d=data.get("playcount_growth_7d"),
            timestamp=_parse_timestamp(data.get("timestamp")),
        )


@dataclass
class ListenBrainzArtistMetrics:
    """ListenBrainz listener snapshot."""

    listeners: int = 0
    listen_count: int = 0
    timestamp: datetime = field(default_factory=utc_now)
    source: MetricSource = MetricSource.LISTENBRAINZ

    def to_dict(self) -> dict[str, Any]:
        return {
            "listeners": self.listeners,
            "listen_count": self.listen_count,
            "timestamp": self.timestamp.isoformat(),
            "source": self.source.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ListenBrainzArtistMetrics":
        return cls(
            listeners=int(data.get("listeners") or 0),
            listen_count=int(data.get("listen_count") or 0),
            timestamp=_parse_timestamp(data.get("timestamp")),
        )


@dataclass
class SpotifyTrackMetrics:
    """Spotify track snapshot.

    Spotify does not expose play counts publicly, playcount stays 0 unless
    some later source fills it.
    """

    popularity: int = 0
    playcount: int = 0
    timestamp: datetime = field(default_factory=utc_now)
    source: MetricSource = MetricSource.SPOTIFY

    def to_dict(self) -> dict[str, Any]:
        return {
            "popularity": self.popularity,
            "playcount": self.playcount,
            "timestamp": self.timestamp.isoformat(),
            "source": self.source.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SpotifyTrackMetrics":
        return cls(
            popularity=int(data.get("popularity") or 0),
            playcount=int(data.get("playcount") or 0),
            timestamp=_parse_timestamp(data.get("timestamp")),
        )


@dataclass
class LastfmTrackMetrics:
    """Last.fm track snapshot."""

    listeners: int = 0
    playcount: int = 0
    timestamp: datetime = field(default_factory=utc_now)
    source: MetricSource = MetricSource.LASTFM

    def to_dict(self) -> dict[str, Any]:
        return {
            "listeners": self.listeners,
            "playcount": self.playcount,
            "timestamp": self.timestamp.isoformat(),
            "source": self.source.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LastfmTrackMetrics":
        return cls(
            listeners=int(data.get("listeners") or 0),
            playcount=int(data.get("playcount") or 0),
            timestamp=_parse_timestamp(data.get("timestamp")),
        )


@dataclass
class ArtistMetrics:
    """Latest snapshot per provider. Any of them may be missing."""

    spotify: SpotifyArtistMetrics | None = None
    lastfm: LastfmArtistMetrics | None = None
    listenbrainz: ListenBrainzArtistMetrics | None = None

    def sources(self) -> list[MetricSource]:
        """Providers that currently have a snapshot, in fixed order."""
        present: list[MetricSource] = []
        if self.spotify is not None:
            present.append(MetricSource.SPOTIFY)
        if self.lastfm is not None:
            present.append(MetricSource.LASTFM)
        if self.listenbrainz is not None:
            present.append(MetricSource.LISTENBRAINZ)
        return present


@dataclass
class TrackMetrics:
    """Latest snapshot per provider for a track."""

    spotify: SpotifyTrackMetrics | None = None
    lastfm: LastfmTrackMetrics | None = None


@dataclass(frozen=True)
class ScoreHistoryEntry:
    """One point of the rolling score history. reach_score is None for tracks."""

    date: datetime
    composite_score: float
    momentum_score: float
    reach_score: float | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "date": self.date.isoformat(),
            "composite_score": self.composite_score,
            "momentum_score": self.momentum_score,
        }
        if self.reach_score is not None:
            data["reach_score"] = self.reach_score
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ScoreHistoryEntry":
        return cls(
            date=_parse_timestamp(data.get("date")),
            composite_score=float(data.get("composite_score") or 0.0),
            momentum_score=float(data.get("momentum_score") or 0.0),
            reach_score=data.get("reach_score"),
        )


# Hey future me - append-THEN-filter, in that order! The new entry is always dated "now" so
# it survives the filter. There is NO per-day dedup: two rescoring runs on the same day give
# two entries. Readers wanting one point per day must collapse on their side.
def append_score_history(
    history: list[ScoreHistoryEntry],
    entry: ScoreHistoryEntry,
    now: datetime | None = None,
    window_days: int = SCORE_HISTORY_WINDOW_DAYS,
) -> list[ScoreHistoryEntry]:
    """Append an entry and drop everything older than the rolling window.

    Args:
        history: Existing entries, oldest first
        entry: New entry to append
        now: Reference time (defaults to utc_now())
        window_days: Size of the rolling window

    Returns:
        New list, oldest first, containing only entries within the window
    """
    cutoff = ensure_utc_aware(now or utc_now()) - timedelta(days=window_days)
    combined = [*history, entry]
    return [item for item in combined if ensure_utc_aware(item.date) >= cutoff]
