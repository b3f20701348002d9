"""Independent-artist classification."""

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chartpulse.config.settings import ClassifierSettings
from chartpulse.domain.entities import UnifiedArtist
from chartpulse.infrastructure.persistence.repositories import UnifiedArtistRepository

logger = logging.getLogger(__name__)

# Matched as case-insensitive substrings of the artist's label
MAJOR_LABELS: tuple[str, ...] = (
    "universal music",
    "sony music",
    "warner music",
    "emi",
    "atlantic records",
    "republic records",
    "interscope",
    "columbia records",
    "capitol records",
    "def jam",
    "island records",
    "motown",
    "epic records",
    "rca records",
    "geffen",
    "polydor",
    "virgin records",
)


@dataclass(frozen=True)
class IndependenceThresholds:
    """Cut-offs above which an artist counts as mainstream.

    Hand-tuned numbers. Treat them as configuration, not business truth.
    """

    spotify_followers: int = 500_000
    spotify_popularity: int = 65
    lastfm_listeners: int = 300_000
    composite_score: float = 50.0
    min_momentum: float = 5.0
    very_small_followers: int = 100_000
    very_small_listeners: int = 50_000

    @classmethod
    def from_settings(cls, settings: ClassifierSettings) -> "IndependenceThresholds":
        return cls(
            spotify_followers=settings.spotify_followers,
            spotify_popularity=settings.spotify_popularity,
            lastfm_listeners=settings.lastfm_listeners,
            composite_score=settings.composite_score,
            min_momentum=settings.min_momentum,
            very_small_followers=settings.very_small_followers,
            very_small_listeners=settings.very_small_listeners,
        )


def has_major_label(label: str | None) -> bool:
    """True if the label mentions one of the major labels."""
    if not label:
        return False
    lowered = label.lower()
    return any(major in lowered for major in MAJOR_LABELS)


def is_very_small(artist: UnifiedArtist, thresholds: IndependenceThresholds) -> bool:
    """Both audience numbers (where known) are far below the mainstream cut-offs."""
    spotify = artist.metrics.spotify
    lastfm = artist.metrics.lastfm
    small_followers = not spotify or spotify.followers < thresholds.very_small_followers
    small_listeners = not lastfm or lastfm.listeners < thresholds.very_small_listeners
    return small_followers and small_listeners


# Hey future me - rules run top to bottom and the FIRST disqualifier wins. Anything that
# survives all five is independent; with no evidence at all we assume indie, which is why
# brand-new artists start as is_independent=True.
#
# Rule 5 ("no momentum") applies from the first import on: momentum defaults to 0.0, so an
# unscored artist that is not very small counts as mainstream until a score run lifts it.
def is_independent_artist(
    artist: UnifiedArtist,
    thresholds: IndependenceThresholds = IndependenceThresholds(),
) -> bool:
    """
    Classify an artist as independent or mainstream.

    Args:
        artist: Artist with its current metric snapshots and scores
        thresholds: Classification cut-offs

    Returns:
        True if no rule disqualifies the artist
    """
    spotify = artist.metrics.spotify
    lastfm = artist.metrics.lastfm

    if spotify:
        if spotify.followers >= thresholds.spotify_followers:
            return False
        if spotify.popularity >= thresholds.spotify_popularity:
            return False

    if lastfm and lastfm.listeners >= thresholds.lastfm_listeners:
        return False

    if has_major_label(artist.label):
        return False

    if (
        artist.composite_score >= thresholds.composite_score
        and spotify
        and spotify.followers >= thresholds.spotify_followers
    ):
        return False

    if (
        artist.momentum_score < thresholds.min_momentum
        and not is_very_small(artist, thresholds)
    ):
        return False

    return True


class IndependentArtistService:
    """Persists the independence flag computed by is_independent_artist()."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        thresholds: IndependenceThresholds | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.thresholds = thresholds or IndependenceThresholds()

    async def update_flag(self, artist_id: str) -> bool | None:
        """
        Reclassify one artist.

        Args:
            artist_id: Artist id

        Returns:
            The new flag, or None if the artist doesn't exist
        """
        async with self._session_factory() as session:
            repo = UnifiedArtistRepository(session)
            artist = await repo.get_by_id(artist_id)
            if artist is None:
                return None

            flag = is_independent_artist(artist, self.thresholds)
            if flag != artist.is_independent:
                logger.info(
                    f"Artist '{artist.name}' is now "
                    f"{'independent' if flag else 'mainstream'}"
                )
                artist.is_independent = flag
                await repo.save_independence(artist)
                await session.commit()
            return flag

    async def update_all_flags(self) -> int:
        """
        Reclassify every artist.

        Returns:
            Number of artists processed
        """
        async with self._session_factory() as session:
            artist_ids = [artist.id for artist in await UnifiedArtistRepository(session).list_all()]

        processed = 0
        for artist_id in artist_ids:
            try:
                await self.update_flag(artist_id)
                processed += 1
            except Exception:
                logger.exception(f"Failed to update independence flag for artist {artist_id}")

        logger.info(f"Updated independence flags for {processed} artists")
        return processed
