"""Artist aggregation: pull artists from provider charts into the unified entity store.

Hey future me - this is where the four providers meet. The flow for every chart entry is:

    find-or-create by name -> Last.fm snapshot -> (new or unlinked?) registry id ->
    bridge to Spotify id -> Spotify snapshot + genres/images -> reclassify independence

Each step is best effort. A provider failing for one artist leaves that artist with whatever
it had before and the loop moves on. Only a failure to fetch the chart itself bubbles up,
because then there's nothing to loop over and the scheduler should log the job as failed.

We deliberately open a fresh session per write (field-scoped save_* + commit). Provider calls
can take seconds (MusicBrainz is 1 req/s!), and holding one session across the whole import
would keep a SQLite write lock for minutes.
"""

import asyncio
import logging
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import TypeVar

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chartpulse.application.services.identity_resolver import IdentityResolver
from chartpulse.application.services.independent_artist_service import (
    IndependenceThresholds,
    is_independent_artist,
)
from chartpulse.domain.entities import (
    LastfmArtistMetrics,
    ListenBrainzArtistMetrics,
    SpotifyArtistMetrics,
    UnifiedArtist,
)
from chartpulse.domain.exceptions import (
    EntityNotFoundException,
    ProviderAuthenticationError,
    ProviderError,
)
from chartpulse.domain.ports import (
    IListenBrainzClient,
    ILastfmClient,
    IMusicBrainzClient,
    ISpotifyClient,
)
from chartpulse.domain.value_objects import LastfmArtist, ListenBrainzArtist, names_match
from chartpulse.infrastructure.observability.log_messages import LogMessages
from chartpulse.infrastructure.persistence.repositories import UnifiedArtistRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Errors that mean "this provider gave us nothing for this entity right now"
SOFT_FAILURES = (httpx.HTTPError, ProviderError, EntityNotFoundException)


@dataclass(frozen=True)
class GenreImportResult:
    """Outcome of a tag import: entries processed and how many of them are independent."""

    processed: int
    imported: int


def next_spotify_snapshot(
    previous: SpotifyArtistMetrics | None, followers: int, popularity: int
) -> SpotifyArtistMetrics:
    """Build a Spotify snapshot with growth measured against the snapshot it replaces.

    Without a previous snapshot the growth fields stay None ("no growth data"), which
    sends the scoring engine to its heuristic momentum instead of reading a fake 0%.
    """
    if previous is None:
        return SpotifyArtistMetrics(followers=followers, popularity=popularity)

    growth = followers - previous.followers
    growth_pct = growth / previous.followers * 100 if previous.followers > 0 else 0.0
    return SpotifyArtistMetrics(
        followers=followers,
        popularity=popularity,
        followers_growth_7d=growth,
        followers_growth_pct_7d=growth_pct,
    )


def next_lastfm_snapshot(
    previous: LastfmArtistMetrics | None, listeners: int, playcount: int
) -> LastfmArtistMetrics:
    """Build a Last.fm snapshot with growth measured against the snapshot it replaces."""
    if previous is None:
        return LastfmArtistMetrics(listeners=listeners, playcount=playcount)
    return LastfmArtistMetrics(
        listeners=listeners,
        playcount=playcount,
        listeners_growth_7d=listeners - previous.listeners,
        playcount_growth_7d=playcount - previous.playcount,
    )


class ArtistAggregator:
    """Imports and refreshes UnifiedArtists from Last.fm, ListenBrainz, MusicBrainz and Spotify."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        spotify: ISpotifyClient,
        lastfm: ILastfmClient,
        musicbrainz: IMusicBrainzClient,
        listenbrainz: IListenBrainzClient,
        identity_resolver: IdentityResolver | None = None,
        request_delay: float = 0.2,
        thresholds: IndependenceThresholds | None = None,
        genre_candidates_multiplier: int = 2,
    ) -> None:
        """Initialize the aggregator.

        Args:
            session_factory: Factory for database sessions (one per write)
            spotify: Spotify client
            lastfm: Last.fm client
            musicbrainz: MusicBrainz client (only used to build the default resolver)
            listenbrainz: ListenBrainz client
            identity_resolver: Registry bridge, defaults to one over `musicbrainz`
            request_delay: Seconds slept between provider calls and entities
            thresholds: Independence classification cut-offs
            genre_candidates_multiplier: How many tag candidates to fetch per wanted artist
        """
        self._session_factory = session_factory
        self.spotify = spotify
        self.lastfm = lastfm
        self.musicbrainz = musicbrainz
        self.listenbrainz = listenbrainz
        self.identity = identity_resolver or IdentityResolver(musicbrainz)
        self.request_delay = request_delay
        self.thresholds = thresholds or IndependenceThresholds()
        self.genre_candidates_multiplier = genre_candidates_multiplier

    # === Plumbing ===

    async def _pause(self) -> None:
        if self.request_delay > 0:
            await asyncio.sleep(self.request_delay)

    async def _soft_call(
        self, provider: str, operation: str, entity: str, call: Awaitable[T]
    ) -> T | None:
        """Await a provider call, turning transport/auth/provider errors into None."""
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
        self,
        artist: UnifiedArtist,
        *,
        metrics: bool = False,
        identity: bool = False,
        enrichment: bool = False,
    ) -> None:
        """Write the requested field groups of an artist in one short transaction."""
        async with self._session_factory() as session:
            repo = UnifiedArtistRepository(session)
            if metrics:
                await repo.save_metrics(artist)
            if identity:
                await repo.save_identity(artist)
            if enrichment:
                await repo.save_enrichment(artist)
            await session.commit()

    async def reclassify(self, artist: UnifiedArtist) -> bool:
        """Recompute the independence flag from the in-memory artist and persist changes."""
        flag = is_independent_artist(artist, self.thresholds)
        if flag != artist.is_independent:
            artist.is_independent = flag
            async with self._session_factory() as session:
                await UnifiedArtistRepository(session).save_independence(artist)
                await session.commit()
        return flag

    # === Identity ===

    async def find_or_create_artist(
        self, name: str, musicbrainz_id: str | None = None
    ) -> tuple[UnifiedArtist, bool]:
        """
        Look up an artist by case-insensitive exact name, creating it if missing.

        A new artist gets its registry id resolved right away (unless one was passed in).
        Calling this twice with the same name in any casing yields one entity.

        Args:
            name: Artist name as the provider spelled it
            musicbrainz_id: Registry id, when the provider already knows it

        Returns:
            (artist, created)
        """
        name = name.strip()
        async with self._session_factory() as session:
            existing = await UnifiedArtistRepository(session).get_by_name(name)
        if existing is not None:
            return existing, False

        if not musicbrainz_id:
            musicbrainz_id = await self.identity.resolve_external_id(name)

        artist = UnifiedArtist(name=name, musicbrainz_id=musicbrainz_id or None)
        if artist.musicbrainz_id:
            artist.external_ids.listenbrainz = artist.musicbrainz_id

        async with self._session_factory() as session:
            repo = UnifiedArtistRepository(session)
            # Re-check: an overlapping job may have created it while we talked to the registry
            existing = await repo.get_by_name(name)
            if existing is not None:
                return existing, False
            await repo.add(artist)
            await session.commit()

        logger.info(f"Created artist '{artist.name}' (mbid={artist.musicbrainz_id})")
        return artist, True

    async def link_identity(self, artist: UnifiedArtist) -> bool:
        """
        Fill registry id, Spotify id and registry enrichment for an artist.

        Resolves the registry id when missing, bridges it to a Spotify id and then fetches
        the Spotify snapshot. Artists that already have a Spotify id but no Spotify snapshot
        just get the snapshot.

        Returns:
            True if the artist ended up with a Spotify snapshot
        """
        if not artist.musicbrainz_id:
            await self._pause()
            artist.musicbrainz_id = await self.identity.resolve_external_id(artist.name)
            if artist.musicbrainz_id:
                artist.external_ids.listenbrainz = (
                    artist.external_ids.listenbrainz or artist.musicbrainz_id
                )
                await self._persist(artist, identity=True)

        if artist.musicbrainz_id and not artist.has_spotify_id:
            await self._pause()
            bridged = await self.identity.bridge_external_ids(artist.musicbrainz_id)
            changed = False
            if bridged.spotify_id:
                artist.external_ids.spotify = bridged.spotify_id
                changed = True
            if bridged.lastfm_url and not artist.external_ids.lastfm:
                artist.external_ids.lastfm = bridged.lastfm_url
                changed = True
            if changed:
                await self._persist(artist, identity=True)
            if bridged.country or bridged.artist_type:
                artist.country = bridged.country or artist.country
                artist.artist_type = bridged.artist_type or artist.artist_type
                await self._persist(artist, enrichment=True)

        if artist.has_spotify_id and artist.metrics.spotify is None:
            await self._pause()
            return await self.refresh_spotify_metrics(artist)
        return artist.metrics.spotify is not None

    async def ensure_artist(self, name: str) -> UnifiedArtist:
        """Find-or-create an artist; new ones are linked and classified right away."""
        artist, created = await self.find_or_create_artist(name)
        if created:
            await self.link_identity(artist)
            await self.reclassify(artist)
        return artist

    # === Per-provider refreshes ===

    async def refresh_spotify_metrics(self, artist: UnifiedArtist) -> bool:
        """
        Fetch a new Spotify snapshot (plus genres and images) for an artist.

        Returns:
            True if a snapshot was stored
        """
        if not artist.external_ids.spotify:
            return False

        data = await self._soft_call(
            "Spotify",
            "get_by_id",
            artist.name,
            self.spotify.get_by_id(artist.external_ids.spotify),
        )
        if data is None:
            return False

        artist.metrics.spotify = next_spotify_snapshot(
            artist.metrics.spotify, data.followers, data.popularity
        )
        # Spotify is the authority for genres/images once linked
        if data.genres:
            artist.genres = list(data.genres)
        if data.images:
            artist.images = list(data.images)
        await self._persist(artist, metrics=True, enrichment=True)
        return True

    async def refresh_lastfm_metrics(self, artist: UnifiedArtist) -> bool:
        """Fetch a new Last.fm snapshot via artist.getInfo."""
        data = await self._soft_call(
            "Last.fm",
            "artist.getInfo",
            artist.name,
            self.lastfm.get_by_id(artist.name, mbid=artist.musicbrainz_id),
        )
        if data is None:
            return False

        artist.metrics.lastfm = next_lastfm_snapshot(
            artist.metrics.lastfm, data.listeners, data.playcount
        )
        if data.url and not artist.external_ids.lastfm:
            artist.external_ids.lastfm = data.url
            await self._persist(artist, metrics=True, identity=True)
        else:
            await self._persist(artist, metrics=True)
        return True

    async def refresh_listenbrainz_metrics(self, artist: UnifiedArtist) -> bool:
        """Fetch listener stats from ListenBrainz (needs a registry id)."""
        mbid = artist.external_ids.listenbrainz or artist.musicbrainz_id
        if not mbid:
            return False

        stats = await self._soft_call(
            "ListenBrainz",
            "artist listeners",
            artist.name,
            self.listenbrainz.get_by_id(mbid),
        )
        if stats is None:
            return False

        artist.metrics.listenbrainz = ListenBrainzArtistMetrics(
            listeners=stats.listeners, listen_count=stats.listen_count
        )
        await self._persist(artist, metrics=True)
        return True

    # === Imports ===

    async def _apply_lastfm_entry(self, artist: UnifiedArtist, entry: LastfmArtist) -> None:
        """Store the Last.fm snapshot carried by a chart/tag entry."""
        listeners, playcount = entry.listeners, entry.playcount

        # Tag charts come without counts. Ask artist.getInfo instead of storing zeros.
        if listeners == 0 and playcount == 0:
            await self._pause()
            info = await self._soft_call(
                "Last.fm",
                "artist.getInfo",
                artist.name,
                self.lastfm.get_by_id(entry.name, mbid=entry.mbid),
            )
            if info is not None:
                listeners, playcount = info.listeners, info.playcount
            elif artist.metrics.lastfm is not None:
                # Keep what we had rather than recording a fake drop to zero
                listeners = artist.metrics.lastfm.listeners
                playcount = artist.metrics.lastfm.playcount

        artist.metrics.lastfm = next_lastfm_snapshot(
            artist.metrics.lastfm, listeners, playcount
        )
        if entry.url:
            artist.external_ids.lastfm = entry.url
        await self._persist(artist, metrics=True, identity=bool(entry.url))

    async def _import_lastfm_entry(self, entry: LastfmArtist) -> UnifiedArtist:
        artist, created = await self.find_or_create_artist(entry.name, entry.mbid)
        await self._apply_lastfm_entry(artist, entry)

        if created or not artist.has_spotify_id or artist.metrics.spotify is None:
            await self.link_identity(artist)

        await self.reclassify(artist)
        return artist

    def _log_entry_failure(
        self, source: str, entity: str, error: Exception
    ) -> None:
        logger.warning(
            LogMessages.provider_failed(
                provider=source,
                operation="import",
                entity=entity,
                error=f"{type(error).__name__}: {error}",
            )
        )

    async def import_from_top_chart(self, limit: int = 100) -> int:
        """
        Import the Last.fm global top artists chart.

        Args:
            limit: Number of chart entries to fetch

        Returns:
            Number of entries processed (independent or not)
        """
        entries = await self.lastfm.get_top_entities(limit=limit)
        processed = 0
        created_before = await self._count_artists()
        errors = 0

        for entry in entries:
            try:
                await self._import_lastfm_entry(entry)
                processed += 1
            except SOFT_FAILURES as e:
                errors += 1
                self._log_entry_failure("Last.fm", entry.name, e)
            except Exception:
                errors += 1
                logger.exception(f"Error importing artist '{entry.name}'")
            await self._pause()

        logger.info(
            LogMessages.import_completed(
                source="Last.fm top artists",
                processed=processed,
                created=await self._count_artists() - created_before,
                errors=errors,
            )
        )
        return processed

    async def import_by_genre(self, tag: str, limit: int = 50) -> GenreImportResult:
        """
        Import artists tagged with a genre on Last.fm.

        We fetch `limit * genre_candidates_multiplier` candidates because a good share of
        any tag chart is mainstream and won't count.

        Args:
            tag: Last.fm tag (e.g. "indie rock")
            limit: Number of independent artists we are after

        Returns:
            GenreImportResult(processed, imported) where imported only counts
            artists classified independent
        """
        candidates = limit * self.genre_candidates_multiplier
        entries = await self.lastfm.get_top_artists_by_tag(tag, limit=candidates)
        processed = 0
        imported = 0
        errors = 0

        for entry in entries[:candidates]:
            try:
                artist = await self._import_lastfm_entry(entry)
                artist.merge_genres([tag])
                await self._persist(artist, enrichment=True)
                processed += 1
                if artist.is_independent:
                    imported += 1
            except SOFT_FAILURES as e:
                errors += 1
                self._log_entry_failure("Last.fm", entry.name, e)
            except Exception:
                errors += 1
                logger.exception(f"Error importing genre artist '{entry.name}'")
            await self._pause()

        logger.info(
            LogMessages.import_completed(
                source=f"tag:{tag}", processed=processed, created=imported, errors=errors
            )
        )
        return GenreImportResult(processed=processed, imported=imported)

    async def import_by_genre_count(self, tag: str, limit: int = 50) -> int:
        """Same as import_by_genre() but only returns the independent count."""
        result = await self.import_by_genre(tag, limit)
        return result.imported

    async def _import_listenbrainz_entry(self, entry: ListenBrainzArtist) -> None:
        artist, _ = await self.find_or_create_artist(entry.name, entry.mbid)

        previous = artist.metrics.listenbrainz
        artist.metrics.listenbrainz = ListenBrainzArtistMetrics(
            # Sitewide stats only carry listen counts, keep the last known listener number
            listeners=previous.listeners if previous else 0,
            listen_count=entry.listen_count,
        )
        await self._persist(artist, metrics=True)

        if entry.mbid and (
            artist.musicbrainz_id != entry.mbid
            or artist.external_ids.listenbrainz != entry.mbid
        ):
            artist.musicbrainz_id = artist.musicbrainz_id or entry.mbid
            artist.external_ids.listenbrainz = entry.mbid
            await self._persist(artist, identity=True)

        if artist.musicbrainz_id and not artist.has_spotify_id:
            await self.link_identity(artist)
        elif artist.has_spotify_id and artist.metrics.spotify is None:
            await self._pause()
            await self.refresh_spotify_metrics(artist)

        await self.reclassify(artist)

    async def import_from_listenbrainz(self, limit: int = 100, window: str = "week") -> int:
        """
        Import ListenBrainz sitewide top artists.

        Args:
            limit: Number of entries to fetch
            window: Stats range (week, month, year, all_time)

        Returns:
            Number of entries processed
        """
        entries = await self.listenbrainz.get_top_entities(limit=limit, window=window)
        processed = 0
        errors = 0

        for entry in entries:
            try:
                await self._import_listenbrainz_entry(entry)
                processed += 1
            except SOFT_FAILURES as e:
                errors += 1
                self._log_entry_failure("ListenBrainz", entry.name, e)
            except Exception:
                errors += 1
                logger.exception(f"Error importing ListenBrainz artist '{entry.name}'")
            await self._pause()

        logger.info(
            LogMessages.import_completed(
                source=f"ListenBrainz top artists ({window})",
                processed=processed,
                errors=errors,
            )
        )
        return processed

    async def fetch_missing_spotify_ids(self, limit: int = 500) -> int:
        """
        Link Spotify ids for artists that don't have one yet, independent artists first.

        Args:
            limit: Maximum number of artists to look at

        Returns:
            Number of artists that got a Spotify id
        """
        async with self._session_factory() as session:
            artists = await UnifiedArtistRepository(session).list_missing_spotify_id(limit)

        logger.info(f"Found {len(artists)} artists without a Spotify id")
        fetched = 0

        for artist in artists:
            try:
                await self.link_identity(artist)
                if artist.has_spotify_id:
                    fetched += 1
            except SOFT_FAILURES as e:
                self._log_entry_failure("Spotify", artist.name, e)
            except Exception:
                logger.exception(f"Error fetching Spotify id for '{artist.name}'")
            await self._pause()

        logger.info(f"Fetched Spotify ids for {fetched} artists")
        return fetched

    async def _link_by_spotify_search(self, artist: UnifiedArtist) -> bool:
        results = await self._soft_call(
            "Spotify",
            "search_by_name",
            artist.name,
            self.spotify.search_by_name(artist.name, limit=1),
        )
        if not results:
            return False

        match = results[0]
        if not names_match(artist.name, match.name):
            logger.debug(
                f"Spotify artist match rejected: '{match.name}' != '{artist.name}'"
            )
            return False

        artist.external_ids.spotify = match.id
        artist.metrics.spotify = next_spotify_snapshot(
            artist.metrics.spotify, match.followers, match.popularity
        )
        if match.images:
            artist.images = list(match.images)
        if match.genres:
            artist.genres = list(match.genres)
        await self._persist(artist, metrics=True, identity=True, enrichment=True)
        await self.reclassify(artist)
        return bool(match.images)

    async def update_artist_images(self, limit: int = 500) -> int:
        """
        Fill artwork for independent artists that have none.

        Linked artists get a regular Spotify refresh. Unlinked ones are searched on Spotify
        by name, and the first hit is only taken if names_match() accepts it; a taken hit
        also links the Spotify id and stores its snapshot and genres.

        Args:
            limit: Maximum number of independent artists to look at

        Returns:
            Number of artists that ended up with images
        """
        async with self._session_factory() as session:
            candidates = await UnifiedArtistRepository(session).list_independent(limit)
        artists = [a for a in candidates if not a.images]
        logger.info(
            f"Updating images for {len(artists)} artists (out of {len(candidates)} independent)"
        )

        updated = 0
        for artist in artists:
            await self._pause()
            try:
                if artist.has_spotify_id:
                    await self.refresh_spotify_metrics(artist)
                    found = bool(artist.images)
                else:
                    found = await self._link_by_spotify_search(artist)
                if found:
                    updated += 1
            except SOFT_FAILURES as e:
                self._log_entry_failure("Spotify", artist.name, e)
            except Exception:
                logger.exception(f"Error updating images for '{artist.name}'")

        logger.info(f"Updated images for {updated} artists")
        return updated

    async def update_all_metrics(self) -> None:
        """
        Refresh every artist's snapshots, in creation order.

        Spotify only when linked, Last.fm always (by name), ListenBrainz only with a
        registry id. Nothing in here raises: each failure is logged and we move on.
        """
        async with self._session_factory() as session:
            artists = await UnifiedArtistRepository(session).list_all()

        for artist in artists:
            try:
                if artist.has_spotify_id:
                    await self.refresh_spotify_metrics(artist)
                    await self._pause()

                await self.refresh_lastfm_metrics(artist)
                await self._pause()

                if artist.musicbrainz_id or artist.external_ids.listenbrainz:
                    await self.refresh_listenbrainz_metrics(artist)
                    await self._pause()
            except SOFT_FAILURES as e:
                self._log_entry_failure("metrics", artist.name, e)
            except Exception:
                logger.exception(f"Error updating metrics for '{artist.name}'")

        logger.info(f"Updated metrics for {len(artists)} artists")

    async def _count_artists(self) -> int:
        async with self._session_factory() as session:
            return await UnifiedArtistRepository(session).count()
