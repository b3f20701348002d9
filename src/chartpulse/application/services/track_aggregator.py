"""Track aggregation: Last.fm track charts into UnifiedTracks, enriched from Spotify."""

import asyncio
import logging
from collections.abc import Awaitable
from typing import TypeVar

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chartpulse.application.services.artist_aggregator import (
    SOFT_FAILURES,
    ArtistAggregator,
)
from chartpulse.domain.entities import (
    LastfmTrackMetrics,
    SpotifyTrackMetrics,
    UnifiedArtist,
    UnifiedTrack,
)
from chartpulse.domain.exceptions import ProviderAuthenticationError, ProviderError
from chartpulse.domain.ports import ILastfmClient, ISpotifyClient
from chartpulse.domain.value_objects import LastfmTrack, any_name_matches
from chartpulse.infrastructure.observability.log_messages import LogMessages
from chartpulse.infrastructure.persistence.repositories import (
    UnifiedArtistRepository,
    UnifiedTrackRepository,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TrackAggregator:
    """Imports tracks of independent artists and keeps their snapshots fresh.

    Hey future me - tracks only exist here for INDEPENDENT artists. Every chart entry first
    goes through ArtistAggregator.ensure_artist() (which links + classifies brand-new artists)
    and entries whose artist comes back mainstream are skipped without creating a track.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        spotify: ISpotifyClient,
        lastfm: ILastfmClient,
        artists: ArtistAggregator,
        request_delay: float = 0.2,
        genre_candidates_multiplier: int = 2,
    ) -> None:
        self._session_factory = session_factory
        self.spotify = spotify
        self.lastfm = lastfm
        self.artists = artists
        self.request_delay = request_delay
        self.genre_candidates_multiplier = genre_candidates_multiplier

    async def _pause(self) -> None:
        if self.request_delay > 0:
            await asyncio.sleep(self.request_delay)

    async def _soft_call(
        self, provider: str, operation: str, entity: str, call: Awaitable[T]
    ) -> T | None:
        try:
            return await call
        except ProviderAuthenticationError as e:
            logger.warning(LogMessages.provider_auth_failed(provider, str(e)))
        except (httpx.HTTPError, ProviderError) as e:
            logger.warning(
                LogMessages.provider_failed(
                    provider=provider,
                    operation=operation,
                    entity=entity,
                    error=f"{type(e).__name__}: {e}",
                )
            )
        return None

    async def _persist(
        self, track: UnifiedTrack, *, metrics: bool = False, enrichment: bool = False
    ) -> None:
        async with self._session_factory() as session:
            repo = UnifiedTrackRepository(session)
            if metrics:
                await repo.save_metrics(track)
            if enrichment:
                await repo.save_enrichment(track)
            await session.commit()

    async def find_or_create_track(
        self, name: str, artist: UnifiedArtist
    ) -> tuple[UnifiedTrack, bool]:
        """
        Look up a track by (case-insensitive name, artist id), creating it if missing.

        Returns:
            (track, created)
        """
        name = name.strip()
        async with self._session_factory() as session:
            repo = UnifiedTrackRepository(session)
            existing = await repo.get_by_name_and_artist(name, artist.id)
            if existing is not None:
                return existing, False

            track = UnifiedTrack(name=name, artist_id=artist.id, artist_name=artist.name)
            await repo.add(track)
            await session.commit()
        return track, True

    async def _lastfm_counts(self, entry: LastfmTrack) -> tuple[int, int]:
        """Counts from the chart entry, or from track.getInfo when the entry has none."""
        if entry.listeners or entry.playcount:
            return entry.listeners, entry.playcount

        await self._pause()
        info = await self._soft_call(
            "Last.fm",
            "track.getInfo",
            f"{entry.artist} - {entry.name}",
            self.lastfm.get_track_info(entry.name, entry.artist),
        )
        if info is None:
            return 0, 0
        return info.listeners, info.playcount

    async def _import_entry(self, entry: LastfmTrack, tag: str | None = None) -> bool:
        """Import one chart entry. Returns False when the artist isn't independent."""
        artist = await self.artists.ensure_artist(entry.artist)
        if not artist.is_independent:
            logger.debug(f"Skipping '{entry.name}': '{artist.name}' is not independent")
            return False

        track, _ = await self.find_or_create_track(entry.name, artist)

        listeners, playcount = await self._lastfm_counts(entry)
        track.metrics.lastfm = LastfmTrackMetrics(listeners=listeners, playcount=playcount)
        if entry.url:
            track.external_ids.lastfm = entry.url
        if tag:
            track.merge_genres([tag])
        await self._persist(track, metrics=True, enrichment=True)

        if not track.external_ids.spotify or not track.images:
            await self.enrich_from_spotify(track, artist)
        return True

    async def _import_entries(
        self, entries: list[LastfmTrack], source: str, tag: str | None = None
    ) -> int:
        imported = 0
        errors = 0
        for entry in entries:
            try:
                if await self._import_entry(entry, tag):
                    imported += 1
            except SOFT_FAILURES as e:
                errors += 1
                logger.warning(
                    LogMessages.provider_failed(
                        provider="Last.fm",
                        operation="import",
                        entity=f"{entry.artist} - {entry.name}",
                        error=f"{type(e).__name__}: {e}",
                    )
                )
            except Exception:
                errors += 1
                logger.exception(f"Error importing track '{entry.name}' by '{entry.artist}'")
            await self._pause()

        logger.info(
            LogMessages.import_completed(
                source=source, processed=len(entries), created=imported, errors=errors
            )
        )
        return imported

    async def import_from_top_chart(self, limit: int = 100) -> int:
        """
        Import the Last.fm global top tracks chart.

        Args:
            limit: Number of chart entries to fetch

        Returns:
            Number of tracks imported (entries of independent artists)
        """
        entries = await self.lastfm.get_top_tracks(limit=limit)
        return await self._import_entries(entries, source="Last.fm top tracks")

    async def import_by_genre(self, tag: str, limit: int = 50) -> int:
        """
        Import tracks tagged with a genre on Last.fm.

        Args:
            tag: Last.fm tag
            limit: Number of tracks we are after (we fetch a multiple of it)

        Returns:
            Number of tracks imported
        """
        candidates = limit * self.genre_candidates_multiplier
        entries = await self.lastfm.get_top_tracks_by_tag(tag, limit=candidates)
        return await self._import_entries(
            entries[:candidates], source=f"tag:{tag} tracks", tag=tag
        )

    # Listen up - Spotify track search is fuzzy and happily returns a cover or a karaoke
    # version by someone else. We only accept the FIRST result and only when one of its
    # credited artists name-matches ours. No second chances: a mismatch means "no data".
    async def enrich_from_spotify(self, track: UnifiedTrack, artist: UnifiedArtist) -> bool:
        """
        Fill Spotify id, album, release date, duration, artwork and popularity for a track.

        Args:
            track: Track to enrich
            artist: Owning artist (name used for search + verification, genres copied over)

        Returns:
            True if a verified Spotify match was stored
        """
        await self._pause()
        results = await self._soft_call(
            "Spotify",
            "search_tracks",
            f"{artist.name} - {track.name}",
            self.spotify.search_tracks(track.name, artist.name, limit=1),
        )
        if not results:
            return False

        match = results[0]
        if not any_name_matches(artist.name, match.artist_names):
            logger.debug(
                f"Spotify match for '{track.name}' rejected: "
                f"{', '.join(match.artist_names)} != {artist.name}"
            )
            return False

        track.external_ids.spotify = match.id
        track.album = match.album or track.album
        track.release_date = match.release_date or track.release_date
        if match.duration_ms:
            track.duration = match.duration_ms // 1000
        if match.album_images:
            track.images = list(match.album_images)
        track.merge_genres(artist.genres)
        # Search results carry popularity but never a play count
        track.metrics.spotify = SpotifyTrackMetrics(popularity=match.popularity)

        await self._persist(track, metrics=True, enrichment=True)
        return True

    async def update_all_track_metrics(self) -> None:
        """
        Refresh tracks of independent artists.

        Last.fm counts are refetched when missing or zero, Spotify enrichment runs when the
        track has no Spotify id or no artwork. Errors are logged, never raised.
        """
        async with self._session_factory() as session:
            tracks = await UnifiedTrackRepository(session).list_for_independent_artists()

        artists: dict[str, UnifiedArtist | None] = {}
        for track in tracks:
            try:
                if track.artist_id not in artists:
                    async with self._session_factory() as session:
                        artists[track.artist_id] = await UnifiedArtistRepository(
                            session
                        ).get_by_id(track.artist_id)
                artist = artists[track.artist_id]
                if artist is None:
                    continue

                lastfm = track.metrics.lastfm
                if lastfm is None or (lastfm.listeners == 0 and lastfm.playcount == 0):
                    await self._pause()
                    info = await self._soft_call(
                        "Last.fm",
                        "track.getInfo",
                        f"{track.artist_name} - {track.name}",
                        self.lastfm.get_track_info(track.name, track.artist_name),
                    )
                    if info is not None:
                        track.metrics.lastfm = LastfmTrackMetrics(
                            listeners=info.listeners, playcount=info.playcount
                        )
                        await self._persist(track, metrics=True)

                if not track.external_ids.spotify or not track.images:
                    await self.enrich_from_spotify(track, artist)
            except SOFT_FAILURES as e:
                logger.warning(
                    LogMessages.provider_failed(
                        provider="metrics",
                        operation="update",
                        entity=f"{track.artist_name} - {track.name}",
                        error=f"{type(e).__name__}: {e}",
                    )
                )
            except Exception:
                logger.exception(f"Error updating metrics for track '{track.name}'")

        logger.info(f"Updated metrics for {len(tracks)} tracks")
