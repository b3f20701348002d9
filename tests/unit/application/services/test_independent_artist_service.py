"""Tests for independent-artist classification."""

from datetime import UTC, datetime

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chartpulse.application.services.independent_artist_service import (
    IndependenceThresholds,
    IndependentArtistService,
    has_major_label,
    is_independent_artist,
)
from chartpulse.config.settings import ClassifierSettings
from chartpulse.domain.entities import (
    LastfmArtistMetrics,
    SpotifyArtistMetrics,
    UnifiedArtist,
)
from chartpulse.infrastructure.persistence import UnifiedArtistRepository

SCORED_AT = datetime(2026, 4, 1, tzinfo=UTC)


def _artist(
    followers: int | None = None,
    popularity: int = 0,
    listeners: int | None = None,
    **kwargs: object,
) -> UnifiedArtist:
    artist = UnifiedArtist(name=str(kwargs.pop("name", "Test Artist")), **kwargs)  # type: ignore[arg-type]
    if followers is not None:
        artist.metrics.spotify = SpotifyArtistMetrics(followers=followers, popularity=popularity)
    if listeners is not None:
        artist.metrics.lastfm = LastfmArtistMetrics(listeners=listeners)
    return artist


class TestClassificationRules:
    def test_no_evidence_is_independent(self) -> None:
        """Zero metrics everywhere means nothing disqualifies the artist."""
        assert is_independent_artist(_artist(followers=0, listeners=0)) is True
        assert is_independent_artist(_artist()) is True

    def test_large_follower_count_is_mainstream(self) -> None:
        assert is_independent_artist(_artist(followers=2_000_000)) is False

    def test_high_popularity_is_mainstream(self) -> None:
        assert is_independent_artist(_artist(followers=1000, popularity=65)) is False

    def test_many_lastfm_listeners_is_mainstream(self) -> None:
        assert is_independent_artist(_artist(listeners=300_000)) is False

    def test_major_label_is_mainstream(self) -> None:
        artist = _artist(followers=500, label="Columbia Records / Sony Music")
        assert is_independent_artist(artist) is False

    def test_unscored_mid_sized_artist_is_mainstream(self) -> None:
        """Default momentum 0.0 counts even before the first score run."""
        assert is_independent_artist(_artist(listeners=150_000)) is False
        assert is_independent_artist(_artist(followers=200_000, listeners=80_000)) is False

    def test_unscored_artist_with_momentum_stays_independent(self) -> None:
        artist = _artist(followers=200_000, listeners=80_000, momentum_score=12.0)
        assert is_independent_artist(artist) is True

    def test_scored_without_momentum_and_not_small_is_mainstream(self) -> None:
        artist = _artist(
            followers=200_000,
            listeners=80_000,
            momentum_score=1.0,
            last_score_update=SCORED_AT,
        )
        assert is_independent_artist(artist) is False

    def test_very_small_artist_keeps_flag_without_momentum(self) -> None:
        artist = _artist(
            followers=5_000,
            listeners=2_000,
            momentum_score=0.0,
            last_score_update=SCORED_AT,
        )
        assert is_independent_artist(artist) is True

    def test_thresholds_are_configurable(self) -> None:
        strict = IndependenceThresholds.from_settings(
            ClassifierSettings(spotify_followers=1_000)
        )
        assert is_independent_artist(_artist(followers=1_500), strict) is False


class TestMajorLabels:
    @pytest.mark.parametrize(
        ("label", "expected"),
        [
            ("Universal Music Group", True),
            ("sub pop", False),
            ("Interscope / Polydor", True),
            (None, False),
            ("", False),
        ],
    )
    def test_label_substrings(self, label: str | None, expected: bool) -> None:
        assert has_major_label(label) is expected


class TestIndependentArtistService:
    async def test_update_flag_persists_change(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        artist = _artist(followers=3_000_000, name="Mega Star")
        async with session_factory() as session:
            await UnifiedArtistRepository(session).add(artist)
            await session.commit()

        service = IndependentArtistService(session_factory)
        assert await service.update_flag(artist.id) is False

        async with session_factory() as session:
            loaded = await UnifiedArtistRepository(session).get_by_id(artist.id)
        assert loaded is not None
        assert loaded.is_independent is False

    async def test_update_flag_unknown_artist(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        assert await IndependentArtistService(session_factory).update_flag("missing") is None

    async def test_update_all_flags_counts_artists(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        async with session_factory() as session:
            repo = UnifiedArtistRepository(session)
            await repo.add(_artist(name="Small"))
            await repo.add(_artist(followers=900_000, name="Big"))
            await session.commit()

        processed = await IndependentArtistService(session_factory).update_all_flags()

        assert processed == 2
        async with session_factory() as session:
            independent = await UnifiedArtistRepository(session).list_independent()
        assert [a.name for a in independent] == ["Small"]
