"""Chart scoring: composite, momentum and reach scores for artists and tracks.

Hey future me - the calculate_* functions are PURE. They only look at the entity's current
metric snapshots (plus "now" for recency), never at the database or a provider. That's what
makes them easy to test and safe to rerun as often as we like. ChartScoringService is the thin
persistence shell around them.

Every input is normalised to 0-100 with a linear cap: min(100, value / cap * 100). Missing
metrics contribute nothing, they are NOT a penalty. All outputs are clamped to [0, 100].
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chartpulse.domain.entities import (
    ArtistMetrics,
    LastfmArtistMetrics,
    ScoreHistoryEntry,
    UnifiedArtist,
    UnifiedTrack,
    append_score_history,
    ensure_utc_aware,
    utc_now,
)
from chartpulse.infrastructure.persistence.repositories import (
    UnifiedArtistRepository,
    UnifiedTrackRepository,
)

logger = logging.getLogger(__name__)

# Indie-oriented caps: anything at or above the cap normalises to 100
SPOTIFY_FOLLOWERS_CAP = 1_000_000
SPOTIFY_POPULARITY_CAP = 100
LASTFM_LISTENERS_CAP = 500_000
LASTFM_PLAYCOUNT_CAP = 10_000_000
LISTENBRAINZ_LISTENERS_CAP = 100_000

TRACK_SPOTIFY_PLAYCOUNT_CAP = 10_000_000
TRACK_LASTFM_LISTENERS_CAP = 3_000_000
TRACK_LASTFM_PLAYCOUNT_CAP = 30_000_000

# 50 plays per listener normalises to 100
PLAYS_PER_LISTENER_CAP = 50

RECENT_RELEASE_DAYS = 90


@dataclass(frozen=True)
class ScoringWeights:
    """Composite score weights. The defaults sum to 1.0."""

    spotify_followers: float = 0.15
    spotify_popularity: float = 0.10
    lastfm_listeners: float = 0.10
    lastfm_playcount: float = 0.08
    listenbrainz_listeners: float = 0.07
    spotify_growth_7d: float = 0.15
    lastfm_growth_7d: float = 0.10
    cross_platform: float = 0.10
    plays_per_listener: float = 0.08


DEFAULT_WEIGHTS = ScoringWeights()


@dataclass(frozen=True)
class ArtistScores:
    composite_score: float
    momentum_score: float
    reach_score: float


@dataclass(frozen=True)
class TrackScores:
    composite_score: float
    momentum_score: float


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def normalize(value: float | None, cap: float) -> float:
    """Linear cap to 0-100. Zero, negative or missing values give 0."""
    if not value or value <= 0:
        return 0.0
    return min(100.0, value / cap * 100.0)


def cross_platform_presence(metrics: ArtistMetrics) -> float:
    """100/60/30/0 for 3+/2/1/0 providers with a snapshot."""
    count = len(metrics.sources())
    if count >= 3:
        return 100.0
    if count == 2:
        return 60.0
    if count == 1:
        return 30.0
    return 0.0


def plays_per_listener(lastfm: LastfmArtistMetrics | None) -> float:
    """Engagement ratio normalised to 0-100 (50 plays per listener = 100)."""
    if not lastfm or lastfm.listeners <= 0:
        return 0.0
    ratio = lastfm.playcount / lastfm.listeners
    return min(100.0, ratio / PLAYS_PER_LISTENER_CAP * 100.0)


def growth_percent(growth: int | float | None, base: int | float | None) -> float:
    """Growth as a percentage of the base, clamped to 0-100."""
    if not growth:
        return 0.0
    return clamp(growth / (base or 1) * 100.0)


# Hey future me - this is a deliberate anti-collision hack, not randomness! Artists with the
# same thin metrics would otherwise get identical momentum and tie in every chart. Same name
# always gives the same offset (0.0 - 4.5), so tests stay reproducible. If you find a real
# proxy for "trending", swap it in HERE and nowhere else.
def name_variation(name: str) -> float:
    """Deterministic per-name offset in [0, 4.5]."""
    return (sum(ord(char) for char in name) % 10) * 0.5


def _measured_momentum(artist: UnifiedArtist) -> float | None:
    """Momentum from real week-over-week growth, or None if there is no growth data."""
    spotify = artist.metrics.spotify
    lastfm = artist.metrics.lastfm
    momentum = 0.0
    has_growth = False

    if spotify and spotify.followers_growth_pct_7d:
        momentum += clamp(spotify.followers_growth_pct_7d) * 0.5
        has_growth = True

    if lastfm and lastfm.listeners_growth_7d:
        momentum += growth_percent(lastfm.listeners_growth_7d, lastfm.listeners) * 0.3
        has_growth = True

    if lastfm and lastfm.playcount_growth_7d:
        momentum += growth_percent(lastfm.playcount_growth_7d, lastfm.playcount) * 0.2
        has_growth = True

    return min(100.0, momentum) if has_growth else None


# Listen up - this fallback is a HEURISTIC APPROXIMATION of momentum, not a measured trend!
# It only runs when we have no growth numbers at all (new artists, first snapshot). It rewards
# "sweet spot" values that look like a growing independent act: engaged listeners, mid-range
# popularity, 10K-200K listeners, 10K-500K followers, fresh data. Readers of momentum_score
# can't tell the two apart, so don't build anything on the absolute values of the fallback.
def _heuristic_momentum(artist: UnifiedArtist, now: datetime) -> float:
    spotify = artist.metrics.spotify
    lastfm = artist.metrics.lastfm

    momentum = plays_per_listener(lastfm) * 0.4
    momentum += cross_platform_presence(artist.metrics) / 100 * 25

    if spotify and spotify.popularity:
        popularity = spotify.popularity
        if 40 <= popularity <= 70:
            momentum += (popularity - 40) / 30 * 15
        elif popularity > 70:
            momentum += 10
        elif 20 <= popularity < 40:
            momentum += (popularity - 20) / 20 * 8

    if lastfm and lastfm.listeners:
        listeners = lastfm.listeners
        if 10_000 <= listeners <= 200_000:
            momentum += min(1.0, (listeners - 10_000) / 190_000) * 15
        elif 200_000 < listeners < 500_000:
            momentum += 8
        elif 1_000 <= listeners < 10_000:
            momentum += (listeners - 1_000) / 9_000 * 10

    if lastfm and lastfm.playcount and lastfm.listeners:
        ratio = lastfm.playcount / lastfm.listeners
        if ratio >= 50:
            momentum += 10
        elif ratio >= 30:
            momentum += 5
        elif ratio >= 20:
            momentum += 2

    if spotify and spotify.followers:
        followers = spotify.followers
        if 10_000 <= followers <= 500_000:
            momentum += min(1.0, (followers - 10_000) / 490_000) * 12
        elif 1_000 <= followers < 10_000:
            momentum += (followers - 1_000) / 9_000 * 8

    timestamps = [
        ensure_utc_aware(snapshot.timestamp)
        for snapshot in (spotify, lastfm)
        if snapshot is not None
    ]
    if timestamps:
        days_since_update = (now - max(timestamps)).total_seconds() / 86_400
        if days_since_update <= 7:
            momentum += 5
        elif days_since_update <= 30:
            momentum += 2

    if 0 < momentum < 20:
        momentum += name_variation(artist.name)

    return clamp(momentum)


def calculate_momentum(artist: UnifiedArtist, now: datetime | None = None) -> float:
    """Measured growth momentum when available, heuristic fallback otherwise."""
    measured = _measured_momentum(artist)
    if measured is not None:
        return clamp(measured)
    return _heuristic_momentum(artist, ensure_utc_aware(now or utc_now()))


def calculate_reach(artist: UnifiedArtist) -> float:
    """Total audience: 0.4 followers + 0.3 Last.fm listeners + 0.3 ListenBrainz listeners."""
    metrics = artist.metrics
    reach = 0.0
    if metrics.spotify:
        reach += normalize(metrics.spotify.followers, SPOTIFY_FOLLOWERS_CAP) * 0.4
    if metrics.lastfm:
        reach += normalize(metrics.lastfm.listeners, LASTFM_LISTENERS_CAP) * 0.3
    if metrics.listenbrainz:
        reach += normalize(metrics.listenbrainz.listeners, LISTENBRAINZ_LISTENERS_CAP) * 0.3
    return clamp(reach)


def calculate_artist_score(
    artist: UnifiedArtist,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
    now: datetime | None = None,
) -> ArtistScores:
    """
    Compute all three artist scores from the current snapshots.

    Args:
        artist: Artist with metric snapshots
        weights: Composite weights
        now: Reference time for the recency bonus

    Returns:
        ArtistScores, each within [0, 100]
    """
    metrics = artist.metrics
    composite = 0.0

    if metrics.spotify:
        spotify = metrics.spotify
        composite += normalize(spotify.followers, SPOTIFY_FOLLOWERS_CAP) * weights.spotify_followers
        composite += (
            normalize(spotify.popularity, SPOTIFY_POPULARITY_CAP) * weights.spotify_popularity
        )
        if spotify.followers_growth_pct_7d:
            composite += clamp(spotify.followers_growth_pct_7d) * weights.spotify_growth_7d

    if metrics.lastfm:
        lastfm = metrics.lastfm
        composite += normalize(lastfm.listeners, LASTFM_LISTENERS_CAP) * weights.lastfm_listeners
        composite += normalize(lastfm.playcount, LASTFM_PLAYCOUNT_CAP) * weights.lastfm_playcount
        composite += (
            growth_percent(lastfm.listeners_growth_7d, lastfm.listeners)
            * weights.lastfm_growth_7d
        )

    if metrics.listenbrainz:
        composite += (
            normalize(metrics.listenbrainz.listeners, LISTENBRAINZ_LISTENERS_CAP)
            * weights.listenbrainz_listeners
        )

    composite += cross_platform_presence(metrics) * weights.cross_platform
    composite += plays_per_listener(metrics.lastfm) * weights.plays_per_listener

    return ArtistScores(
        composite_score=clamp(composite),
        momentum_score=calculate_momentum(artist, now),
        reach_score=calculate_reach(artist),
    )


def calculate_track_momentum(track: UnifiedTrack, now: datetime | None = None) -> float:
    """Popularity band + engagement band + recent-release bonus."""
    momentum = 0.0
    spotify = track.metrics.spotify
    lastfm = track.metrics.lastfm

    if spotify and spotify.popularity:
        popularity = spotify.popularity
        if 30 <= popularity <= 70:
            momentum += (popularity - 30) / 40 * 40
        elif popularity > 70:
            momentum += 30

    if lastfm and lastfm.playcount and lastfm.listeners:
        ratio = lastfm.playcount / lastfm.listeners
        if ratio >= 30:
            momentum += 30
        elif ratio >= 20:
            momentum += 20
        elif ratio >= 10:
            momentum += 10

    if track.release_date:
        today: date = ensure_utc_aware(now or utc_now()).date()
        if (today - track.release_date).days <= RECENT_RELEASE_DAYS:
            momentum += 10

    return clamp(momentum)


def calculate_track_score(track: UnifiedTrack, now: datetime | None = None) -> TrackScores:
    """
    Compute track scores from the current snapshots.

    Callers must only apply this to tracks of independent artists.
    """
    composite = 0.0
    spotify = track.metrics.spotify
    lastfm = track.metrics.lastfm

    if spotify:
        composite += normalize(spotify.popularity, 100) * 0.5
        composite += normalize(spotify.playcount, TRACK_SPOTIFY_PLAYCOUNT_CAP) * 0.1
    if lastfm:
        composite += normalize(lastfm.listeners, TRACK_LASTFM_LISTENERS_CAP) * 0.3
        composite += normalize(lastfm.playcount, TRACK_LASTFM_PLAYCOUNT_CAP) * 0.2

    return TrackScores(
        composite_score=clamp(composite),
        momentum_score=calculate_track_momentum(track, now),
    )


class ChartScoringService:
    """Recomputes and persists scores plus the rolling score history."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        weights: ScoringWeights = DEFAULT_WEIGHTS,
    ) -> None:
        self._session_factory = session_factory
        self.weights = weights

    async def update_artist_score(self, artist_id: str) -> ArtistScores | None:
        """
        Rescore one artist and append to its history.

        Returns:
            New scores, or None if the artist doesn't exist
        """
        async with self._session_factory() as session:
            repo = UnifiedArtistRepository(session)
            artist = await repo.get_by_id(artist_id)
            if artist is None:
                return None

            now = utc_now()
            scores = calculate_artist_score(artist, self.weights, now)
            artist.composite_score = scores.composite_score
            artist.momentum_score = scores.momentum_score
            artist.reach_score = scores.reach_score
            artist.last_score_update = now
            artist.score_history = append_score_history(
                artist.score_history,
                ScoreHistoryEntry(
                    date=now,
                    composite_score=scores.composite_score,
                    momentum_score=scores.momentum_score,
                    reach_score=scores.reach_score,
                ),
                now,
            )
            await repo.save_scores(artist)
            await session.commit()
            return scores

    async def update_artist_scores(self, artist_ids: list[str]) -> int:
        """Rescore a list of artists, one failure doesn't stop the rest."""
        updated = 0
        for artist_id in artist_ids:
            try:
                if await self.update_artist_score(artist_id) is not None:
                    updated += 1
            except Exception:
                logger.exception(f"Failed to update score for artist {artist_id}")
        return updated

    async def update_all_artist_scores(self) -> int:
        """Rescore every artist. Returns the number updated."""
        async with self._session_factory() as session:
            artist_ids = [a.id for a in await UnifiedArtistRepository(session).list_all()]

        updated = await self.update_artist_scores(artist_ids)
        logger.info(f"Updated scores for {updated}/{len(artist_ids)} artists")
        return updated

    # Hey future me - track scores stay frozen (usually at 0) while the owning artist is
    # mainstream. We return None and don't touch the row at all, not even the history.
    async def update_track_score(self, track_id: str) -> TrackScores | None:
        """
        Rescore one track if its artist is independent.

        Returns:
            New scores, or None if the track is missing or its artist isn't independent
        """
        async with self._session_factory() as session:
            track_repo = UnifiedTrackRepository(session)
            track = await track_repo.get_by_id(track_id)
            if track is None:
                return None

            artist = await UnifiedArtistRepository(session).get_by_id(track.artist_id)
            if artist is None or not artist.is_independent:
                return None

            now = utc_now()
            scores = calculate_track_score(track, now)
            track.composite_score = scores.composite_score
            track.momentum_score = scores.momentum_score
            track.last_score_update = now
            track.score_history = append_score_history(
                track.score_history,
                ScoreHistoryEntry(
                    date=now,
                    composite_score=scores.composite_score,
                    momentum_score=scores.momentum_score,
                ),
                now,
            )
            await track_repo.save_scores(track)
            await session.commit()
            return scores

    async def update_track_scores(self, track_ids: list[str]) -> int:
        """Rescore a list of tracks, one failure doesn't stop the rest."""
        updated = 0
        for track_id in track_ids:
            try:
                if await self.update_track_score(track_id) is not None:
                    updated += 1
            except Exception:
                logger.exception(f"Failed to update score for track {track_id}")
        return updated

    async def update_all_track_scores(self) -> int:
        """Rescore every track of an independent artist. Returns the number updated."""
        async with self._session_factory() as session:
            tracks = await UnifiedTrackRepository(session).list_for_independent_artists()
        track_ids = [track.id for track in tracks]

        updated = await self.update_track_scores(track_ids)
        logger.info(f"Updated scores for {updated}/{len(track_ids)} tracks")
        return updated
