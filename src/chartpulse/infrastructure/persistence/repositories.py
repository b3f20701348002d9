"""Repository implementations for the entity store."""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from chartpulse.domain.entities import (
    ArtistMetrics,
    ExternalIds,
    LastfmArtistMetrics,
    LastfmTrackMetrics,
    ListenBrainzArtistMetrics,
    ScoreHistoryEntry,
    SpotifyArtistMetrics,
    SpotifyTrackMetrics,
    TrackExternalIds,
    TrackMetrics,
    UnifiedArtist,
    UnifiedTrack,
    ensure_utc_aware,
    utc_now,
)
from chartpulse.domain.exceptions import EntityNotFoundException
from chartpulse.domain.ports import IUnifiedArtistRepository, IUnifiedTrackRepository
from chartpulse.domain.value_objects import ImageRef
from chartpulse.infrastructure.persistence.models import (
    UnifiedArtistModel,
    UnifiedTrackModel,
)

# Column behind each ExternalIds field, used by get_by_external_id()
_ARTIST_EXTERNAL_ID_COLUMNS = {
    "spotify": UnifiedArtistModel.spotify_id,
    "lastfm": UnifiedArtistModel.lastfm_url,
    "listenbrainz": UnifiedArtistModel.listenbrainz_id,
}


def _history_to_json(history: list[ScoreHistoryEntry]) -> list[dict]:
    return [entry.to_dict() for entry in history]


def _history_from_json(data: list[dict] | None) -> list[ScoreHistoryEntry]:
    return [ScoreHistoryEntry.from_dict(item) for item in data or []]


def _images_from_json(data: list[dict] | None) -> list[ImageRef]:
    return [ImageRef.from_dict(item) for item in data or []]


class UnifiedArtistRepository(IUnifiedArtistRepository):
    """SQLAlchemy implementation of the UnifiedArtist repository."""

    # Hey future me, this is the Repository pattern! The session is injected and NOT committed
    # here - the caller commits when its unit of work ends. Writes are FIELD-SCOPED: each
    # save_* method only touches its own column group, so the metrics refresh and the scoring
    # run can both write the same row without clobbering each other (last write wins per group).
    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    @staticmethod
    def _model_to_entity(model: UnifiedArtistModel) -> UnifiedArtist:
        return UnifiedArtist(
            id=model.id,
            name=model.name,
            musicbrainz_id=model.musicbrainz_id,
            external_ids=ExternalIds(
                spotify=model.spotify_id,
                lastfm=model.lastfm_url,
                listenbrainz=model.listenbrainz_id,
            ),
            metrics=ArtistMetrics(
                spotify=SpotifyArtistMetrics.from_dict(model.spotify_metrics)
                if model.spotify_metrics
                else None,
                lastfm=LastfmArtistMetrics.from_dict(model.lastfm_metrics)
                if model.lastfm_metrics
                else None,
                listenbrainz=ListenBrainzArtistMetrics.from_dict(
                    model.listenbrainz_metrics
                )
                if model.listenbrainz_metrics
                else None,
            ),
            composite_score=model.composite_score or 0.0,
            momentum_score=model.momentum_score or 0.0,
            reach_score=model.reach_score or 0.0,
            last_score_update=ensure_utc_aware(model.last_score_update)
            if model.last_score_update
            else None,
            is_independent=bool(model.is_independent),
            score_history=_history_from_json(model.score_history),
            genres=list(model.genres or []),
            images=_images_from_json(model.images),
            country=model.country,
            artist_type=model.artist_type,
            label=model.label,
            created_at=ensure_utc_aware(model.created_at),
            updated_at=ensure_utc_aware(model.updated_at),
        )

    async def _get_model(self, artist_id: str) -> UnifiedArtistModel:
        stmt = select(UnifiedArtistModel).where(UnifiedArtistModel.id == artist_id)
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        if not model:
            raise EntityNotFoundException("UnifiedArtist", artist_id)
        return model

    async def _fetch(self, stmt) -> list[UnifiedArtist]:  # type: ignore[no-untyped-def]
        result = await self.session.execute(stmt)
        return [self._model_to_entity(model) for model in result.scalars().all()]

    # Yo, add() stages the full row. It's the ONLY write that touches every column - after
    # that, use the save_* methods.
    async def add(self, artist: UnifiedArtist) -> None:
        """Add a new artist."""
        model = UnifiedArtistModel(
            id=artist.id,
            name=artist.name,
            musicbrainz_id=artist.musicbrainz_id,
            spotify_id=artist.external_ids.spotify,
            lastfm_url=artist.external_ids.lastfm,
            listenbrainz_id=artist.external_ids.listenbrainz,
            spotify_metrics=artist.metrics.spotify.to_dict()
            if artist.metrics.spotify
            else None,
            lastfm_metrics=artist.metrics.lastfm.to_dict()
            if artist.metrics.lastfm
            else None,
            listenbrainz_metrics=artist.metrics.listenbrainz.to_dict()
            if artist.metrics.listenbrainz
            else None,
            composite_score=artist.composite_score,
            momentum_score=artist.momentum_score,
            reach_score=artist.reach_score,
            last_score_update=artist.last_score_update,
            is_independent=artist.is_independent,
            score_history=_history_to_json(artist.score_history),
            genres=list(artist.genres),
            images=[image.to_dict() for image in artist.images],
            country=artist.country,
            artist_type=artist.artist_type,
            label=artist.label,
            created_at=artist.created_at,
            updated_at=artist.updated_at,
        )
        self.session.add(model)
        await self.session.flush()

    async def get_by_id(self, artist_id: str) -> UnifiedArtist | None:
        """Get an artist by id."""
        stmt = select(UnifiedArtistModel).where(UnifiedArtistModel.id == artist_id)
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._model_to_entity(model) if model else None

    # Hey future me - exact match, case-insensitive, NO fuzzy logic! "The Midnight Hour" and
    # "Midnight Hour" are two different artists here. If duplicates ever exist, the oldest wins.
    async def get_by_name(self, name: str) -> UnifiedArtist | None:
        """Get an artist by case-insensitive exact name."""
        stmt = (
            select(UnifiedArtistModel)
            .where(func.lower(UnifiedArtistModel.name) == name.strip().lower())
            .order_by(UnifiedArtistModel.row_id)
            .limit(1)
        )
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._model_to_entity(model) if model else None

    async def get_by_musicbrainz_id(self, musicbrainz_id: str) -> UnifiedArtist | None:
        """Get an artist by registry id."""
        stmt = (
            select(UnifiedArtistModel)
            .where(UnifiedArtistModel.musicbrainz_id == musicbrainz_id)
            .order_by(UnifiedArtistModel.row_id)
            .limit(1)
        )
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._model_to_entity(model) if model else None

    async def get_by_external_id(
        self, provider: str, external_id: str
    ) -> UnifiedArtist | None:
        """Get an artist by a provider id (spotify, lastfm, listenbrainz)."""
        column = _ARTIST_EXTERNAL_ID_COLUMNS.get(str(provider))
        if column is None:
            raise ValueError(f"Unknown provider '{provider}'")
        stmt = (
            select(UnifiedArtistModel)
            .where(column == external_id)
            .order_by(UnifiedArtistModel.row_id)
            .limit(1)
        )
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._model_to_entity(model) if model else None

    async def list_all(
        self, limit: int | None = None, offset: int = 0
    ) -> list[UnifiedArtist]:
        """List artists in creation order."""
        stmt = select(UnifiedArtistModel).order_by(UnifiedArtistModel.row_id).offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        return await self._fetch(stmt)

    async def list_independent(self, limit: int | None = None) -> list[UnifiedArtist]:
        """List independent artists in creation order."""
        stmt = (
            select(UnifiedArtistModel)
            .where(UnifiedArtistModel.is_independent.is_(True))
            .order_by(UnifiedArtistModel.row_id)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return await self._fetch(stmt)

    async def list_missing_spotify_id(self, limit: int = 500) -> list[UnifiedArtist]:
        """Artists without a Spotify id, independent ones first."""
        stmt = (
            select(UnifiedArtistModel)
            .where(UnifiedArtistModel.spotify_id.is_(None))
            .order_by(
                UnifiedArtistModel.is_independent.desc(), UnifiedArtistModel.row_id
            )
            .limit(limit)
        )
        return await self._fetch(stmt)

    async def top_by_composite(
        self, limit: int = 50, independent_only: bool = False
    ) -> list[UnifiedArtist]:
        """Artists by composite score, highest first."""
        stmt = select(UnifiedArtistModel)
        if independent_only:
            stmt = stmt.where(UnifiedArtistModel.is_independent.is_(True))
        stmt = stmt.order_by(
            UnifiedArtistModel.composite_score.desc(), UnifiedArtistModel.row_id
        ).limit(limit)
        return await self._fetch(stmt)

    async def top_by_momentum(
        self, limit: int = 50, independent_only: bool = False
    ) -> list[UnifiedArtist]:
        """Artists by momentum score, highest first."""
        stmt = select(UnifiedArtistModel)
        if independent_only:
            stmt = stmt.where(UnifiedArtistModel.is_independent.is_(True))
        stmt = stmt.order_by(
            UnifiedArtistModel.momentum_score.desc(), UnifiedArtistModel.row_id
        ).limit(limit)
        return await self._fetch(stmt)

    async def search(self, query: str, limit: int = 20) -> list[UnifiedArtist]:
        """Case-insensitive substring search over artist names."""
        needle = query.strip().lower()
        if not needle:
            return []
        stmt = (
            select(UnifiedArtistModel)
            .where(func.lower(UnifiedArtistModel.name).contains(needle, autoescape=True))
            .order_by(
                UnifiedArtistModel.composite_score.desc(), UnifiedArtistModel.row_id
            )
            .limit(limit)
        )
        return await self._fetch(stmt)

    async def count(self, independent_only: bool = False) -> int:
        """Count artists."""
        stmt = select(func.count(UnifiedArtistModel.row_id))
        if independent_only:
            stmt = stmt.where(UnifiedArtistModel.is_independent.is_(True))
        result = await self.session.execute(stmt)
        return int(result.scalar_one())

    async def save_metrics(self, artist: UnifiedArtist) -> None:
        """Persist the metric snapshots only."""
        model = await self._get_model(artist.id)
        metrics = artist.metrics
        model.spotify_metrics = metrics.spotify.to_dict() if metrics.spotify else None
        model.lastfm_metrics = metrics.lastfm.to_dict() if metrics.lastfm else None
        model.listenbrainz_metrics = (
            metrics.listenbrainz.to_dict() if metrics.listenbrainz else None
        )
        model.updated_at = utc_now()

    async def save_identity(self, artist: UnifiedArtist) -> None:
        """Persist registry id and external ids only."""
        model = await self._get_model(artist.id)
        model.musicbrainz_id = artist.musicbrainz_id
        model.spotify_id = artist.external_ids.spotify
        model.lastfm_url = artist.external_ids.lastfm
        model.listenbrainz_id = artist.external_ids.listenbrainz
        model.updated_at = utc_now()

    async def save_enrichment(self, artist: UnifiedArtist) -> None:
        """Persist genres, images, country, type and label only."""
        model = await self._get_model(artist.id)
        model.genres = list(artist.genres)
        model.images = [image.to_dict() for image in artist.images]
        model.country = artist.country
        model.artist_type = artist.artist_type
        model.label = artist.label
        model.updated_at = utc_now()

    async def save_scores(self, artist: UnifiedArtist) -> None:
        """Persist scores, last_score_update and score history only."""
        model = await self._get_model(artist.id)
        model.composite_score = artist.composite_score
        model.momentum_score = artist.momentum_score
        model.reach_score = artist.reach_score
        model.last_score_update = artist.last_score_update
        model.score_history = _history_to_json(artist.score_history)
        model.updated_at = utc_now()

    async def save_independence(self, artist: UnifiedArtist) -> None:
        """Persist the independence flag only."""
        model = await self._get_model(artist.id)
        model.is_independent = artist.is_independent
        model.updated_at = utc_now()


class UnifiedTrackRepository(IUnifiedTrackRepository):
    """SQLAlchemy implementation of the UnifiedTrack repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    @staticmethod
    def _model_to_entity(model: UnifiedTrackModel) -> UnifiedTrack:
        return UnifiedTrack(
            id=model.id,
            name=model.name,
            artist_id=model.artist_id,
            artist_name=model.artist_name,
            musicbrainz_id=model.musicbrainz_id,
            external_ids=TrackExternalIds(
                spotify=model.spotify_id, lastfm=model.lastfm_url
            ),
            metrics=TrackMetrics(
                spotify=SpotifyTrackMetrics.from_dict(model.spotify_metrics)
                if model.spotify_metrics
                else None,
                lastfm=LastfmTrackMetrics.from_dict(model.lastfm_metrics)
                if model.lastfm_metrics
                else None,
            ),
            composite_score=model.composite_score or 0.0,
            momentum_score=model.momentum_score or 0.0,
            last_score_update=ensure_utc_aware(model.last_score_update)
            if model.last_score_update
            else None,
            score_history=_history_from_json(model.score_history),
            album=model.album,
            release_date=model.release_date,
            genres=list(model.genres or []),
            images=_images_from_json(model.images),
            duration=model.duration,
            created_at=ensure_utc_aware(model.created_at),
            updated_at=ensure_utc_aware(model.updated_at),
        )

    async def _get_model(self, track_id: str) -> UnifiedTrackModel:
        stmt = select(UnifiedTrackModel).where(UnifiedTrackModel.id == track_id)
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        if not model:
            raise EntityNotFoundException("UnifiedTrack", track_id)
        return model

    async def _fetch(self, stmt) -> list[UnifiedTrack]:  # type: ignore[no-untyped-def]
        result = await self.session.execute(stmt)
        return [self._model_to_entity(model) for model in result.scalars().all()]

    async def add(self, track: UnifiedTrack) -> None:
        """Add a new track."""
        model = UnifiedTrackModel(
            id=track.id,
            name=track.name,
            artist_id=track.artist_id,
            artist_name=track.artist_name,
            musicbrainz_id=track.musicbrainz_id,
            spotify_id=track.external_ids.spotify,
            lastfm_url=track.external_ids.lastfm,
            spotify_metrics=track.metrics.spotify.to_dict()
            if track.metrics.spotify
            else None,
            lastfm_metrics=track.metrics.lastfm.to_dict()
            if track.metrics.lastfm
            else None,
            composite_score=track.composite_score,
            momentum_score=track.momentum_score,
            last_score_update=track.last_score_update,
            score_history=_history_to_json(track.score_history),
            album=track.album,
            release_date=track.release_date,
            genres=list(track.genres),
            images=[image.to_dict() for image in track.images],
            duration=track.duration,
            created_at=track.created_at,
            updated_at=track.updated_at,
        )
        self.session.add(model)
        await self.session.flush()

    async def get_by_id(self, track_id: str) -> UnifiedTrack | None:
        """Get a track by id."""
        stmt = select(UnifiedTrackModel).where(UnifiedTrackModel.id == track_id)
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._model_to_entity(model) if model else None

    async def get_by_name_and_artist(
        self, name: str, artist_id: str
    ) -> UnifiedTrack | None:
        """Get a track by case-insensitive name within one artist."""
        stmt = (
            select(UnifiedTrackModel)
            .where(
                func.lower(UnifiedTrackModel.name) == name.strip().lower(),
                UnifiedTrackModel.artist_id == artist_id,
            )
            .order_by(UnifiedTrackModel.row_id)
            .limit(1)
        )
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._model_to_entity(model) if model else None

    async def list_by_artist(self, artist_id: str) -> list[UnifiedTrack]:
        """All tracks of one artist in creation order."""
        stmt = (
            select(UnifiedTrackModel)
            .where(UnifiedTrackModel.artist_id == artist_id)
            .order_by(UnifiedTrackModel.row_id)
        )
        return await self._fetch(stmt)

    async def list_all(self, limit: int | None = None) -> list[UnifiedTrack]:
        """All tracks in creation order."""
        stmt = select(UnifiedTrackModel).order_by(UnifiedTrackModel.row_id)
        if limit is not None:
            stmt = stmt.limit(limit)
        return await self._fetch(stmt)

    async def list_for_independent_artists(
        self, limit: int | None = None
    ) -> list[UnifiedTrack]:
        """Tracks whose owning artist is independent, in creation order."""
        stmt = (
            select(UnifiedTrackModel)
            .join(
                UnifiedArtistModel,
                UnifiedArtistModel.id == UnifiedTrackModel.artist_id,
            )
            .where(UnifiedArtistModel.is_independent.is_(True))
            .order_by(UnifiedTrackModel.row_id)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return await self._fetch(stmt)

    async def top_by_composite(
        self, limit: int = 50, independent_only: bool = False
    ) -> list[UnifiedTrack]:
        """Tracks by composite score, highest first."""
        stmt = select(UnifiedTrackModel)
        if independent_only:
            stmt = stmt.join(
                UnifiedArtistModel,
                UnifiedArtistModel.id == UnifiedTrackModel.artist_id,
            ).where(UnifiedArtistModel.is_independent.is_(True))
        stmt = stmt.order_by(
            UnifiedTrackModel.composite_score.desc(), UnifiedTrackModel.row_id
        ).limit(limit)
        return await self._fetch(stmt)

    async def list_scored(self, limit: int = 50) -> list[UnifiedTrack]:
        """Tracks with a composite score above zero, highest first."""
        stmt = (
            select(UnifiedTrackModel)
            .where(UnifiedTrackModel.composite_score > 0)
            .order_by(UnifiedTrackModel.composite_score.desc(), UnifiedTrackModel.row_id)
            .limit(limit)
        )
        return await self._fetch(stmt)

    async def search(self, query: str, limit: int = 20) -> list[UnifiedTrack]:
        """Case-insensitive substring search over track and artist names."""
        needle = query.strip().lower()
        if not needle:
            return []
        stmt = (
            select(UnifiedTrackModel)
            .where(
                func.lower(UnifiedTrackModel.name).contains(needle, autoescape=True)
                | func.lower(UnifiedTrackModel.artist_name).contains(
                    needle, autoescape=True
                )
            )
            .order_by(UnifiedTrackModel.composite_score.desc(), UnifiedTrackModel.row_id)
            .limit(limit)
        )
        return await self._fetch(stmt)

    async def count(self) -> int:
        """Count tracks."""
        result = await self.session.execute(select(func.count(UnifiedTrackModel.row_id)))
        return int(result.scalar_one())

    async def save_metrics(self, track: UnifiedTrack) -> None:
        """Persist the metric snapshots only."""
        model = await self._get_model(track.id)
        model.spotify_metrics = (
            track.metrics.spotify.to_dict() if track.metrics.spotify else None
        )
        model.lastfm_metrics = (
            track.metrics.lastfm.to_dict() if track.metrics.lastfm else None
        )
        model.updated_at = utc_now()

    async def save_enrichment(self, track: UnifiedTrack) -> None:
        """Persist external ids, album, release date, genres, images and duration."""
        model = await self._get_model(track.id)
        model.musicbrainz_id = track.musicbrainz_id
        model.spotify_id = track.external_ids.spotify
        model.lastfm_url = track.external_ids.lastfm
        model.album = track.album
        model.release_date = track.release_date
        model.genres = list(track.genres)
        model.images = [image.to_dict() for image in track.images]
        model.duration = track.duration
        model.updated_at = utc_now()

    async def save_scores(self, track: UnifiedTrack) -> None:
        """Persist scores, last_score_update and score history only."""
        model = await self._get_model(track.id)
        model.composite_score = track.composite_score
        model.momentum_score = track.momentum_score
        model.last_score_update = track.last_score_update
        model.score_history = _history_to_json(track.score_history)
        model.updated_at = utc_now()
