"""In-process scheduler for the chart update jobs."""

import asyncio
import contextlib
import logging
import time
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chartpulse.application.services.artist_aggregator import ArtistAggregator
from chartpulse.application.services.chart_scoring_service import ChartScoringService
from chartpulse.application.services.independent_artist_service import (
    IndependentArtistService,
)
from chartpulse.application.services.track_aggregator import TrackAggregator
from chartpulse.application.workers.scheduling import JobSchedule, seconds_until
from chartpulse.config.settings import SchedulerSettings
from chartpulse.infrastructure.observability.log_messages import LogMessages
from chartpulse.infrastructure.observability.logging import set_correlation_id
from chartpulse.infrastructure.persistence.repositories import (
    UnifiedArtistRepository,
    UnifiedTrackRepository,
)

logger = logging.getLogger(__name__)

FULL_METRICS_UPDATE = "full-metrics-update"
SCORE_RECALCULATION = "score-recalculation"
IMPORT_NEW_ARTISTS = "import-new-artists"
IMPORT_NEW_TRACKS = "import-new-tracks"
TOP_ARTISTS_UPDATE = "top-artists-update"
UPDATE_ARTIST_IMAGES = "update-artist-images"


class JobState(Enum):
    """Job lifecycle: IDLE -> RUNNING -> IDLE."""

    IDLE = "idle"
    RUNNING = "running"


@dataclass
class ScheduledJob:
    """A named job, its schedule and what happened on its last run."""

    name: str
    schedule: JobSchedule
    action: Callable[[], Awaitable[Any]]
    state: JobState = JobState.IDLE
    last_run: datetime | None = None
    last_error: str | None = None
    next_run: datetime | None = None
    run_count: int = 0
    task: asyncio.Task[None] | None = None

    def get_status(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "schedule": self.schedule.describe(),
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "last_error": self.last_error,
            "next_run": self.next_run.isoformat() if self.next_run else None,
            "run_count": self.run_count,
        }


def local_now() -> datetime:
    """Local wall-clock time; the job cadences are expressed in it."""
    return datetime.now()


class ChartUpdateScheduler:
    """Runs the chart update jobs on their daily/weekly/hourly cadence.

    Hey future me - no external queue, no cron. Each job is ONE asyncio task that sleeps until
    its next firing, runs, and computes the next firing again. A job that raises is caught at
    the job boundary (logged with its name, stored as last_error) and simply waits for its
    next firing - one broken provider must never kill the whole schedule.

    Jobs are independent tasks, so e.g. the hourly top-artists refresh can overlap the nightly
    metrics run. That's fine: repository writes are field-scoped, last write wins per group.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        artist_aggregator: ArtistAggregator,
        track_aggregator: TrackAggregator,
        scoring_service: ChartScoringService,
        independence_service: IndependentArtistService,
        settings: SchedulerSettings | None = None,
        clock: Callable[[], datetime] = local_now,
    ) -> None:
        self._session_factory = session_factory
        self.artists = artist_aggregator
        self.tracks = track_aggregator
        self.scoring = scoring_service
        self.independence = independence_service
        self.settings = settings or SchedulerSettings()
        self._clock = clock
        self._running = False
        self._jobs: dict[str, ScheduledJob] = {}
        self._register_default_jobs()

    # === Job registry ===

    def register_job(
        self,
        name: str,
        schedule: JobSchedule,
        action: Callable[[], Awaitable[Any]],
    ) -> ScheduledJob:
        """Add (or replace) a job. Takes effect on the next start()."""
        job = ScheduledJob(name=name, schedule=schedule, action=action)
        self._jobs[name] = job
        return job

    def _register_default_jobs(self) -> None:
        s = self.settings
        self.register_job(
            FULL_METRICS_UPDATE, JobSchedule.daily(s.metrics_hour), self.full_metrics_update
        )
        self.register_job(
            SCORE_RECALCULATION, JobSchedule.daily(s.scores_hour), self.recalculate_scores
        )
        self.register_job(
            IMPORT_NEW_ARTISTS,
            JobSchedule.weekly(s.weekly_day, s.artist_import_hour),
            self.import_new_artists,
        )
        self.register_job(
            IMPORT_NEW_TRACKS,
            JobSchedule.weekly(s.weekly_day, s.track_import_hour),
            self.import_new_tracks,
        )
        self.register_job(
            TOP_ARTISTS_UPDATE,
            JobSchedule.every(3600, run_on_start=True),
            self.update_top_artists,
        )
        self.register_job(UPDATE_ARTIST_IMAGES, JobSchedule.manual(), self.update_artist_images)

    @property
    def is_running(self) -> bool:
        return self._running

    # === Lifecycle ===

    async def start(self) -> None:
        """Start one task per job. Calling it twice only logs a warning."""
        if self._running:
            logger.warning("Chart update scheduler is already running")
            return
        if not self.settings.enabled:
            logger.info("Chart update scheduler is disabled (CHARTPULSE_SCHEDULER__ENABLED)")
            return

        self._running = True
        for job in self._jobs.values():
            if job.schedule.is_manual:
                continue
            job.task = asyncio.create_task(self._job_loop(job), name=f"job:{job.name}")

        logger.info(
            LogMessages.scheduler_started(
                {name: job.schedule.describe() for name, job in self._jobs.items()}
            )
        )

    async def stop(self) -> None:
        """Cancel every job task. Safe to call when not running."""
        tasks = [job.task for job in self._jobs.values() if job.task is not None]
        if not self._running and not tasks:
            return

        self._running = False
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        for job in self._jobs.values():
            job.task = None
            job.next_run = None
            job.state = JobState.IDLE

        logger.info(LogMessages.scheduler_stopped(len(tasks)))

    def get_status(self) -> dict[str, Any]:
        """Scheduler status for monitoring.

        Returns:
            Dict with enabled flag, active schedule count and per-job state
        """
        active = [
            name
            for name, job in self._jobs.items()
            if job.task is not None and not job.task.done()
        ]
        return {
            "enabled": self.settings.enabled,
            "running": self._running,
            "active_schedules": active,
            "schedule_count": len(active),
            "jobs": {name: job.get_status() for name, job in self._jobs.items()},
        }

    async def run_job(self, name: str) -> bool:
        """
        Run a job right now, outside its schedule.

        Args:
            name: Job name (e.g. "score-recalculation")

        Returns:
            True if the job finished without raising

        Raises:
            ValueError: Unknown job name
        """
        job = self._jobs.get(name)
        if job is None:
            raise ValueError(f"Unknown job '{name}'. Known jobs: {', '.join(self._jobs)}")
        return await self._execute(job, trigger="manual")

    # === Loop ===

    async def _job_loop(self, job: ScheduledJob) -> None:
        first = True
        while self._running:
            now = self._clock()
            if first and job.schedule.run_on_start:
                job.next_run = now
                trigger = "startup"
            else:
                job.next_run = job.schedule.next_run(now)
                trigger = "schedule"
            first = False

            await asyncio.sleep(seconds_until(now, job.next_run))
            if not self._running:
                break
            await self._execute(job, trigger=trigger)

    async def _execute(self, job: ScheduledJob, trigger: str) -> bool:
        """Run a job once, catching everything at the job boundary."""
        set_correlation_id(f"{job.name}-{uuid.uuid4().hex[:8]}")
        job.state = JobState.RUNNING
        started = time.monotonic()
        logger.info(LogMessages.job_started(job.name, trigger))

        try:
            await job.action()
        except Exception as e:
            job.last_error = f"{type(e).__name__}: {e}"
            logger.error(LogMessages.job_failed(job.name, job.last_error), exc_info=True)
            return False
        else:
            job.last_error = None
            logger.info(
                LogMessages.job_completed(
                    job.name,
                    time.monotonic() - started,
                    None if job.schedule.is_manual else job.schedule.next_run(self._clock()),
                )
            )
            return True
        finally:
            job.state = JobState.IDLE
            job.last_run = self._clock()
            job.run_count += 1
            set_correlation_id("")

    # === Jobs ===

    async def full_metrics_update(self) -> None:
        """Daily: refresh artist snapshots, then track snapshots."""
        await self.artists.update_all_metrics()
        await self.tracks.update_all_track_metrics()

    async def recalculate_scores(self) -> None:
        """Daily: artist scores, track scores, then independence flags."""
        await self.scoring.update_all_artist_scores()
        await self.scoring.update_all_track_scores()
        await self.independence.update_all_flags()

    async def import_new_artists(self) -> None:
        """Weekly: top chart plus indie genres, then rescore and reclassify everyone."""
        await self.artists.import_from_top_chart(limit=self.settings.import_limit)
        for genre in self.settings.indie_genres:
            try:
                imported = await self.artists.import_by_genre_count(
                    genre, limit=self.settings.genre_import_limit
                )
                logger.info(f"Imported {imported} independent artists for tag '{genre}'")
            except Exception:
                logger.exception(f"Genre import failed for tag '{genre}'")
        await self.scoring.update_all_artist_scores()
        await self.independence.update_all_flags()

    async def import_new_tracks(self) -> None:
        """Weekly: top tracks plus the indie genre list, then rescore tracks."""
        await self.tracks.import_from_top_chart(limit=self.settings.import_limit)
        for genre in self.settings.indie_genres:
            try:
                await self.tracks.import_by_genre(
                    genre, limit=self.settings.genre_import_limit
                )
            except Exception:
                logger.exception(f"Track genre import failed for tag '{genre}'")
        await self.scoring.update_all_track_scores()

    async def update_top_artists(self) -> None:
        """Hourly: refresh Spotify + score for the top independent artists and their tracks."""
        async with self._session_factory() as session:
            top_artists = await UnifiedArtistRepository(session).top_by_composite(
                limit=self.settings.top_artists_limit, independent_only=True
            )

        for artist in top_artists:
            if artist.has_spotify_id:
                await self.artists.refresh_spotify_metrics(artist)
        updated = await self.scoring.update_artist_scores([a.id for a in top_artists])

        track_ids: list[str] = []
        async with self._session_factory() as session:
            track_repo = UnifiedTrackRepository(session)
            for artist in top_artists:
                if len(track_ids) >= self.settings.top_tracks_limit:
                    break
                track_ids.extend(t.id for t in await track_repo.list_by_artist(artist.id))
        rescored = await self.scoring.update_track_scores(
            track_ids[: self.settings.top_tracks_limit]
        )
        logger.info(f"Top artists refresh: {updated} artists, {rescored} tracks rescored")

    async def update_artist_images(self) -> None:
        """Manual: artwork for independent artists that have none."""
        updated = await self.artists.update_artist_images()
        logger.info(f"Artist image update: {updated} artists now have images")
