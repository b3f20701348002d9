"""Application lifecycle: wire settings -> clients -> services -> scheduler, and tear down.

Everything long-lived is built exactly once here and handed down by constructor injection.
No module-level singletons: each provider client owns its own rate limiter and HTTP pool.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

from sqlalchemy.engine import make_url

from chartpulse.application.services.artist_aggregator import ArtistAggregator
from chartpulse.application.services.chart_scoring_service import ChartScoringService
from chartpulse.application.services.identity_resolver import IdentityResolver
from chartpulse.application.services.independent_artist_service import (
    IndependenceThresholds,
    IndependentArtistService,
)
from chartpulse.application.services.track_aggregator import TrackAggregator
from chartpulse.application.workers.chart_update_scheduler import ChartUpdateScheduler
from chartpulse.config import Settings, get_settings
from chartpulse.domain.exceptions import ConfigurationError
from chartpulse.infrastructure.integrations import (
    LastfmClient,
    ListenBrainzClient,
    MusicBrainzClient,
    SpotifyClient,
)
from chartpulse.infrastructure.observability import configure_logging
from chartpulse.infrastructure.persistence import Database

logger = logging.getLogger(__name__)


def _sqlite_db_path(url: str) -> Path | None:
    """File path of a SQLite URL, None for other backends and in-memory databases."""
    parsed = make_url(url)
    if not parsed.drivername.startswith("sqlite"):
        return None
    if not parsed.database or parsed.database == ":memory:":
        return None
    return Path(parsed.database)


# Hey future me, this validates the SQLite location BEFORE the engine exists. SQLite needs to
# create -journal/-wal files next to the .db, so the directory must be writable, not just the
# file. We don't pre-create the .db itself - SQLite initialises it properly on first connect.
def _validate_sqlite_path(settings: Settings) -> None:
    """Ensure the SQLite database directory exists and is writable."""
    db_path = _sqlite_db_path(settings.database.url)
    if db_path is None:
        return

    try:
        if db_path.parent and str(db_path.parent) != ".":
            db_path.parent.mkdir(parents=True, exist_ok=True)
        test_file = db_path.parent / f".{db_path.stem}_write_test"
        test_file.write_bytes(b"test")
        test_file.unlink()
    except OSError as exc:
        raise ConfigurationError(
            f"Unable to write to database directory '{db_path.parent}': {exc}. "
            "Update CHARTPULSE_DATABASE__URL or adjust directory permissions."
        ) from exc


@dataclass
class ChartPulseContainer:
    """Every long-lived component of a running pipeline."""

    settings: Settings
    database: Database
    spotify: SpotifyClient
    lastfm: LastfmClient
    musicbrainz: MusicBrainzClient
    listenbrainz: ListenBrainzClient
    identity_resolver: IdentityResolver
    artist_aggregator: ArtistAggregator
    track_aggregator: TrackAggregator
    scoring_service: ChartScoringService
    independence_service: IndependentArtistService
    scheduler: ChartUpdateScheduler

    async def close(self) -> None:
        """Stop the scheduler, then release HTTP pools and the database engine."""
        await self.scheduler.stop()
        for client in (self.spotify, self.lastfm, self.musicbrainz, self.listenbrainz):
            await client.close()
        await self.database.close()


def build_container(settings: Settings) -> ChartPulseContainer:
    """Construct (but don't start) every component from settings."""
    database = Database(settings.database)
    session_factory = database.session_factory

    spotify = SpotifyClient(settings.spotify)
    lastfm = LastfmClient(settings.lastfm)
    musicbrainz = MusicBrainzClient(settings.musicbrainz)
    listenbrainz = ListenBrainzClient(settings.listenbrainz)

    thresholds = IndependenceThresholds.from_settings(settings.classifier)
    identity_resolver = IdentityResolver(musicbrainz)
    artist_aggregator = ArtistAggregator(
        session_factory,
        spotify=spotify,
        lastfm=lastfm,
        musicbrainz=musicbrainz,
        listenbrainz=listenbrainz,
        identity_resolver=identity_resolver,
        request_delay=settings.aggregator.request_delay,
        thresholds=thresholds,
        genre_candidates_multiplier=settings.aggregator.genre_candidates_multiplier,
    )
    track_aggregator = TrackAggregator(
        session_factory,
        spotify=spotify,
        lastfm=lastfm,
        artists=artist_aggregator,
        request_delay=settings.aggregator.request_delay,
        genre_candidates_multiplier=settings.aggregator.genre_candidates_multiplier,
    )
    scoring_service = ChartScoringService(session_factory)
    independence_service = IndependentArtistService(session_factory, thresholds)
    scheduler = ChartUpdateScheduler(
        session_factory,
        artist_aggregator=artist_aggregator,
        track_aggregator=track_aggregator,
        scoring_service=scoring_service,
        independence_service=independence_service,
        settings=settings.scheduler,
    )

    return ChartPulseContainer(
        settings=settings,
        database=database,
        spotify=spotify,
        lastfm=lastfm,
        musicbrainz=musicbrainz,
        listenbrainz=listenbrainz,
        identity_resolver=identity_resolver,
        artist_aggregator=artist_aggregator,
        track_aggregator=track_aggregator,
        scoring_service=scoring_service,
        independence_service=independence_service,
        scheduler=scheduler,
    )


# Listen future me, everything before `yield` is STARTUP, everything after is SHUTDOWN. The
# try/finally makes sure HTTP pools and the engine are released even when startup blows up
# halfway. start_scheduler=False is for one-shot runs (python -m chartpulse run-job ...).
@asynccontextmanager
async def lifespan(
    settings: Settings | None = None, start_scheduler: bool = True
) -> AsyncGenerator[ChartPulseContainer, None]:
    """Build, start and finally tear down the pipeline."""
    settings = settings or get_settings()

    configure_logging(
        log_level=settings.observability.log_level,
        json_format=settings.observability.log_json_format,
        app_name=settings.app_name,
    )
    logger.info("Starting %s", settings.app_name)

    _validate_sqlite_path(settings)
    container = build_container(settings)
    try:
        # create_all only adds missing tables, Alembic stays the source of truth for changes
        await container.database.create_tables()
        logger.info("Database initialized: %s", settings.database.url)

        if not settings.spotify.is_configured:
            logger.warning("Spotify credentials missing - Spotify metrics are disabled")

        if start_scheduler:
            await container.scheduler.start()

        yield container
    finally:
        logger.info("Shutting down %s", settings.app_name)
        await container.close()
