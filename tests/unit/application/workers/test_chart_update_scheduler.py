"""Tests for the chart update scheduler."""

import asyncio
from datetime import datetime
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chartpulse.application.services.artist_aggregator import ArtistAggregator
from chartpulse.application.services.chart_scoring_service import ChartScoringService
from chartpulse.application.services.independent_artist_service import (
    IndependentArtistService,
)
from chartpulse.application.services.track_aggregator import TrackAggregator
from chartpulse.application.workers.chart_update_scheduler import (
    FULL_METRICS_UPDATE,
    IMPORT_NEW_ARTISTS,
    IMPORT_NEW_TRACKS,
    SCORE_RECALCULATION,
    TOP_ARTISTS_UPDATE,
    UPDATE_ARTIST_IMAGES,
    ChartUpdateScheduler,
    JobState,
)
from chartpulse.application.workers.scheduling import JobSchedule
from chartpulse.config.settings import SchedulerSettings
from chartpulse.domain.entities import UnifiedArtist
from chartpulse.infrastructure.observability.logging import get_correlation_id
from chartpulse.infrastructure.persistence import UnifiedArtistRepository

SessionFactory = async_sessionmaker[AsyncSession]


@pytest.fixture
def artists() -> AsyncMock:
    return AsyncMock(spec=ArtistAggregator)


@pytest.fixture
def tracks() -> AsyncMock:
    return AsyncMock(spec=TrackAggregator)


@pytest.fixture
def scoring() -> AsyncMock:
    return AsyncMock(spec=ChartScoringService)


@pytest.fixture
def independence() -> AsyncMock:
    return AsyncMock(spec=IndependentArtistService)


def _scheduler(
    session_factory: SessionFactory,
    artists: AsyncMock,
    tracks: AsyncMock,
    scoring: AsyncMock,
    independence: AsyncMock,
    settings: SchedulerSettings | None = None,
) -> ChartUpdateScheduler:
    return ChartUpdateScheduler(
        session_factory,
        artists,
        tracks,
        scoring,
        independence,
        settings=settings or SchedulerSettings(indie_genres=["shoegaze", "lo-fi"]),
        clock=lambda: datetime(2026, 4, 15, 10, 30),
    )


@pytest.fixture
def scheduler(
    session_factory: SessionFactory,
    artists: AsyncMock,
    tracks: AsyncMock,
    scoring: AsyncMock,
    independence: AsyncMock,
) -> ChartUpdateScheduler:
    return _scheduler(session_factory, artists, tracks, scoring, independence)


def _clear_default_jobs(scheduler: ChartUpdateScheduler) -> None:
    # Default jobs would hit the mocks on startup (the hourly one runs immediately)
    scheduler._jobs.clear()


class TestJobRegistry:
    def test_default_jobs(self, scheduler: ChartUpdateScheduler) -> None:
        jobs = scheduler.get_status()["jobs"]

        assert set(jobs) == {
            FULL_METRICS_UPDATE,
            SCORE_RECALCULATION,
            IMPORT_NEW_ARTISTS,
            IMPORT_NEW_TRACKS,
            TOP_ARTISTS_UPDATE,
            UPDATE_ARTIST_IMAGES,
        }
        assert jobs[FULL_METRICS_UPDATE]["schedule"] == "daily 02:00"
        assert jobs[IMPORT_NEW_ARTISTS]["schedule"] == "weekly Sun 01:00"
        assert jobs[TOP_ARTISTS_UPDATE]["schedule"] == "hourly (also on start)"
        assert jobs[UPDATE_ARTIST_IMAGES]["schedule"] == "manual only"

    def test_status_before_start(self, scheduler: ChartUpdateScheduler) -> None:
        status = scheduler.get_status()

        assert status["enabled"] is True
        assert status["running"] is False
        assert status["active_schedules"] == []
        assert status["schedule_count"] == 0


class TestLifecycle:
    async def test_start_and_stop_are_idempotent(
        self, scheduler: ChartUpdateScheduler
    ) -> None:
        _clear_default_jobs(scheduler)
        scheduler.register_job("slow", JobSchedule.every(3600), AsyncMock())

        await scheduler.start()
        await scheduler.start()
        assert scheduler.is_running is True
        assert scheduler.get_status()["active_schedules"] == ["slow"]

        await scheduler.stop()
        await scheduler.stop()
        assert scheduler.is_running is False
        assert scheduler.get_status()["schedule_count"] == 0

    async def test_disabled_scheduler_does_not_start(
        self,
        session_factory: SessionFactory,
        artists: AsyncMock,
        tracks: AsyncMock,
        scoring: AsyncMock,
        independence: AsyncMock,
    ) -> None:
        scheduler = _scheduler(
            session_factory,
            artists,
            tracks,
            scoring,
            independence,
            settings=SchedulerSettings(enabled=False),
        )

        await scheduler.start()

        assert scheduler.is_running is False
        assert scheduler.get_status()["enabled"] is False
        await scheduler.stop()

    async def test_failing_job_does_not_stop_others(
        self, scheduler: ChartUpdateScheduler
    ) -> None:
        _clear_default_jobs(scheduler)
        healthy = AsyncMock()
        broken = AsyncMock(side_effect=RuntimeError("provider exploded"))
        scheduler.register_job("healthy", JobSchedule.every(0.01, run_on_start=True), healthy)
        scheduler.register_job("broken", JobSchedule.every(0.01, run_on_start=True), broken)

        await scheduler.start()
        await asyncio.sleep(0.1)
        await scheduler.stop()

        jobs = scheduler.get_status()["jobs"]
        assert broken.await_count >= 2
        assert healthy.await_count >= 2
        assert jobs["broken"]["last_error"] == "RuntimeError: provider exploded"
        assert jobs["healthy"]["last_error"] is None
        assert jobs["broken"]["state"] == JobState.IDLE.value

    async def test_manual_job_gets_no_task(self, scheduler: ChartUpdateScheduler) -> None:
        _clear_default_jobs(scheduler)
        manual = AsyncMock()
        scheduler.register_job("on-demand", JobSchedule.manual(), manual)

        await scheduler.start()
        await asyncio.sleep(0.05)
        status = scheduler.get_status()
        await scheduler.stop()

        assert status["active_schedules"] == []
        assert status["jobs"]["on-demand"]["next_run"] is None
        manual.assert_not_awaited()


class TestRunJob:
    async def test_unknown_job(self, scheduler: ChartUpdateScheduler) -> None:
        with pytest.raises(ValueError, match="Unknown job"):
            await scheduler.run_job("nope")

    async def test_manual_run_reports_outcome(self, scheduler: ChartUpdateScheduler) -> None:
        scheduler.register_job("ok", JobSchedule.daily(1), AsyncMock())
        scheduler.register_job("bad", JobSchedule.daily(1), AsyncMock(side_effect=KeyError("x")))

        assert await scheduler.run_job("ok") is True
        assert await scheduler.run_job("bad") is False

        jobs = scheduler.get_status()["jobs"]
        assert jobs["ok"]["run_count"] == 1
        assert jobs["bad"]["run_count"] == 1
        assert jobs["ok"]["last_run"] == "2026-04-15T10:30:00"
        assert get_correlation_id() == ""

    async def test_score_recalculation_order(
        self,
        scheduler: ChartUpdateScheduler,
        scoring: AsyncMock,
        independence: AsyncMock,
    ) -> None:
        calls: list[str] = []
        scoring.update_all_artist_scores.side_effect = lambda: calls.append("artists")
        scoring.update_all_track_scores.side_effect = lambda: calls.append("tracks")
        independence.update_all_flags.side_effect = lambda: calls.append("flags")

        assert await scheduler.run_job(SCORE_RECALCULATION) is True
        assert calls == ["artists", "tracks", "flags"]

    async def test_genre_failure_does_not_abort_artist_import(
        self,
        scheduler: ChartUpdateScheduler,
        artists: AsyncMock,
        scoring: AsyncMock,
        independence: AsyncMock,
    ) -> None:
        calls: list[str] = []
        artists.import_by_genre_count.side_effect = [RuntimeError("tag gone"), 3]
        scoring.update_all_artist_scores.side_effect = lambda: calls.append("scores")
        independence.update_all_flags.side_effect = lambda: calls.append("flags")

        assert await scheduler.run_job(IMPORT_NEW_ARTISTS) is True

        artists.import_from_top_chart.assert_awaited_once_with(limit=100)
        assert artists.import_by_genre_count.await_count == 2
        assert calls == ["scores", "flags"]

    async def test_top_artists_update_rescores_independent_top(
        self,
        scheduler: ChartUpdateScheduler,
        artists: AsyncMock,
        scoring: AsyncMock,
        session_factory: SessionFactory,
    ) -> None:
        linked = UnifiedArtist(name="Linked", composite_score=50.0)
        linked.external_ids.spotify = "sp-1"
        mainstream = UnifiedArtist(name="Major", composite_score=90.0, is_independent=False)
        async with session_factory() as session:
            repo = UnifiedArtistRepository(session)
            await repo.add(linked)
            await repo.add(mainstream)
            await session.commit()
        scoring.update_artist_scores.return_value = 1
        scoring.update_track_scores.return_value = 0

        assert await scheduler.run_job(TOP_ARTISTS_UPDATE) is True

        artists.refresh_spotify_metrics.assert_awaited_once()
        scoring.update_artist_scores.assert_awaited_once_with([linked.id])

    async def test_artist_images_on_demand(
        self, scheduler: ChartUpdateScheduler, artists: AsyncMock
    ) -> None:
        artists.update_artist_images.return_value = 4

        assert await scheduler.run_job(UPDATE_ARTIST_IMAGES) is True

        artists.update_artist_images.assert_awaited_once_with()
        assert scheduler.get_status()["jobs"][UPDATE_ARTIST_IMAGES]["run_count"] == 1
