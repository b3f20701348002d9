"""Tests for the MusicBrainz registry client."""

import asyncio
import time
from collections.abc import Callable
from unittest.mock import MagicMock

import httpx
import pytest

from chartpulse.config.settings import MusicBrainzSettings
from chartpulse.infrastructure.integrations.musicbrainz_client import MusicBrainzClient
from chartpulse.infrastructure.rate_limiter import RateLimiter

MBID = "a74b1b7f-71a5-4011-9441-d0b5e4122711"


@pytest.fixture
def musicbrainz_settings() -> MusicBrainzSettings:
    """Create MusicBrainz settings for testing."""
    return MusicBrainzSettings(
        app_name="TestApp",
        app_version="1.0.0",
        contact="test@example.com",
    )


@pytest.fixture
def musicbrainz_client(musicbrainz_settings: MusicBrainzSettings) -> MusicBrainzClient:
    """Create MusicBrainz client for testing."""
    return MusicBrainzClient(musicbrainz_settings)


class TestMusicBrainzClientInit:
    def test_user_agent_identifies_app(self, musicbrainz_client: MusicBrainzClient) -> None:
        assert musicbrainz_client.user_agent == "TestApp/1.0.0 ( test@example.com )"

    def test_default_limiter_is_one_per_second(
        self, musicbrainz_client: MusicBrainzClient
    ) -> None:
        assert musicbrainz_client._rate_limiter.min_interval == 1.0

    def test_custom_limiter(self, musicbrainz_settings: MusicBrainzSettings) -> None:
        limiter = RateLimiter.for_provider("musicbrainz", min_interval=0.0)
        client = MusicBrainzClient(musicbrainz_settings, rate_limiter=limiter)
        assert client._rate_limiter is limiter


class TestMusicBrainzSearch:
    async def test_search_parses_artists(
        self,
        musicbrainz_client: MusicBrainzClient,
        mocker: MagicMock,
        make_response: Callable[..., httpx.Response],
    ) -> None:
        request = mocker.patch.object(
            musicbrainz_client,
            "_rate_limited_request",
            return_value=make_response(
                json={
                    "artists": [
                        {
                            "id": MBID,
                            "name": "Beach House",
                            "score": 100,
                            "type": "Group",
                            "country": "US",
                            "area": {"name": "Baltimore"},
                        },
                        {"name": "no id, skipped"},
                    ]
                }
            ),
        )

        results = await musicbrainz_client.search_by_name("Beach House", limit=5)

        assert len(results) == 1
        assert results[0].id == MBID
        assert results[0].artist_type == "Group"
        assert results[0].area == "Baltimore"
        params = request.call_args.kwargs["params"]
        assert params["query"] == 'artist:"Beach House"'
        assert params["limit"] == 5

    async def test_search_escapes_quotes(
        self,
        musicbrainz_client: MusicBrainzClient,
        mocker: MagicMock,
        make_response: Callable[..., httpx.Response],
    ) -> None:
        request = mocker.patch.object(
            musicbrainz_client,
            "_rate_limited_request",
            return_value=make_response(json={"artists": []}),
        )

        await musicbrainz_client.search_by_name('The "Band"')

        assert request.call_args.kwargs["params"]["query"] == 'artist:"The \\"Band\\""'

    async def test_blank_name_makes_no_request(
        self, musicbrainz_client: MusicBrainzClient, mocker: MagicMock
    ) -> None:
        request = mocker.patch.object(musicbrainz_client, "_rate_limited_request")

        assert await musicbrainz_client.search_by_name("  ") == []
        request.assert_not_called()

    async def test_server_error_propagates(
        self,
        musicbrainz_client: MusicBrainzClient,
        mocker: MagicMock,
        make_response: Callable[..., httpx.Response],
    ) -> None:
        mocker.patch.object(
            musicbrainz_client,
            "_rate_limited_request",
            return_value=make_response(503),
        )

        with pytest.raises(httpx.HTTPStatusError):
            await musicbrainz_client.search_by_name("Beach House")


class TestMusicBrainzLookup:
    async def test_lookup_reads_url_relations(
        self,
        musicbrainz_client: MusicBrainzClient,
        mocker: MagicMock,
        make_response: Callable[..., httpx.Response],
    ) -> None:
        request = mocker.patch.object(
            musicbrainz_client,
            "_rate_limited_request",
            return_value=make_response(
                json={
                    "id": MBID,
                    "name": "Beach House",
                    "country": "US",
                    "relations": [
                        {"url": {"resource": "https://open.spotify.com/artist/56ZTgzPBDge0OvCGgMO3OY"}},
                        {"url": {"resource": "https://www.last.fm/music/Beach+House"}},
                        {"type": "member of band"},
                    ],
                }
            ),
        )

        artist = await musicbrainz_client.get_by_id(MBID)

        assert artist is not None
        assert artist.relation_urls == (
            "https://open.spotify.com/artist/56ZTgzPBDge0OvCGgMO3OY",
            "https://www.last.fm/music/Beach+House",
        )
        assert request.call_args.kwargs["params"]["inc"] == "url-rels"

    @pytest.mark.parametrize("status", [400, 404])
    async def test_unknown_id_returns_none(
        self,
        status: int,
        musicbrainz_client: MusicBrainzClient,
        mocker: MagicMock,
        make_response: Callable[..., httpx.Response],
    ) -> None:
        mocker.patch.object(
            musicbrainz_client,
            "_rate_limited_request",
            return_value=make_response(status),
        )

        assert await musicbrainz_client.get_by_id("not-an-mbid") is None

    async def test_close_releases_client(
        self, musicbrainz_client: MusicBrainzClient
    ) -> None:
        await musicbrainz_client._get_client()
        await musicbrainz_client.close()
        assert musicbrainz_client._client is None


class TestMusicBrainzPacing:
    @pytest.mark.slow
    async def test_requests_are_one_second_apart(
        self, musicbrainz_client: MusicBrainzClient
    ) -> None:
        """Concurrent lookups through the default limiter hit the wire 1s apart."""
        sent_at: list[float] = []

        def handler(request: httpx.Request) -> httpx.Response:
            sent_at.append(time.monotonic())
            return httpx.Response(200, json={"artists": []})

        musicbrainz_client._client = httpx.AsyncClient(
            base_url=MusicBrainzClient.API_BASE_URL,
            transport=httpx.MockTransport(handler),
        )

        await asyncio.gather(
            *(musicbrainz_client.search_by_name(f"Artist {i}") for i in range(3))
        )
        await musicbrainz_client.close()

        assert len(sent_at) == 3
        gaps = [later - earlier for earlier, later in zip(sent_at, sent_at[1:])]
        assert all(gap >= 0.95 for gap in gaps)
