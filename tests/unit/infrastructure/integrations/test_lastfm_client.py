"""Tests for the Last.fm client."""

from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from chartpulse.config.settings import LastfmSettings
from chartpulse.domain.exceptions import ProviderAuthenticationError, ProviderError
from chartpulse.infrastructure.integrations.lastfm_client import LastfmClient
from chartpulse.infrastructure.rate_limiter import RateLimiter


@pytest.fixture
def lastfm_client() -> LastfmClient:
    return LastfmClient(
        LastfmSettings(api_key="test-key"),
        rate_limiter=RateLimiter.for_provider("lastfm", min_interval=0.0),
    )


@pytest.fixture
def http_get(lastfm_client: LastfmClient, mocker: MagicMock) -> AsyncMock:
    """Replace the HTTP client; tests set http_get.return_value."""
    http = MagicMock()
    http.get = AsyncMock()
    mocker.patch.object(lastfm_client, "_get_client", return_value=http)
    return http.get


class TestLastfmRequests:
    """Test _make_request error handling."""

    async def test_unconfigured_client_returns_nothing(self, mocker: MagicMock) -> None:
        client = LastfmClient(LastfmSettings())
        get_client = mocker.patch.object(client, "_get_client")

        assert await client.get_top_entities(limit=10) == []
        assert await client.get_by_id("Beach House") is None
        get_client.assert_not_called()

    async def test_request_params(
        self,
        lastfm_client: LastfmClient,
        http_get: AsyncMock,
        make_response: Callable[..., httpx.Response],
    ) -> None:
        http_get.return_value = make_response(json={"artists": {"artist": []}})

        await lastfm_client.get_top_entities(limit=25)

        params = http_get.call_args.kwargs["params"]
        assert params["method"] == "chart.getTopArtists"
        assert params["api_key"] == "test-key"
        assert params["format"] == "json"
        assert params["limit"] == 25

    async def test_not_found_error_code_is_none(
        self,
        lastfm_client: LastfmClient,
        http_get: AsyncMock,
        make_response: Callable[..., httpx.Response],
    ) -> None:
        http_get.return_value = make_response(
            json={"error": 6, "message": "The artist you supplied could not be found"}
        )

        assert await lastfm_client.get_by_id("Nobody At All") is None

    @pytest.mark.parametrize("code", [4, 9, 10, 14, 26])
    async def test_auth_error_codes_raise(
        self,
        code: int,
        lastfm_client: LastfmClient,
        http_get: AsyncMock,
        make_response: Callable[..., httpx.Response],
    ) -> None:
        http_get.return_value = make_response(json={"error": code, "message": "Invalid API key"})

        with pytest.raises(ProviderAuthenticationError):
            await lastfm_client.get_top_entities()

    async def test_auth_error_in_4xx_body_raises(
        self,
        lastfm_client: LastfmClient,
        http_get: AsyncMock,
        make_response: Callable[..., httpx.Response],
    ) -> None:
        """Last.fm answers 403 with the real reason in the JSON body."""
        http_get.return_value = make_response(
            403, json={"error": 10, "message": "Invalid API key"}
        )

        with pytest.raises(ProviderAuthenticationError):
            await lastfm_client.get_top_tracks()

    async def test_other_error_codes_raise_provider_error(
        self,
        lastfm_client: LastfmClient,
        http_get: AsyncMock,
        make_response: Callable[..., httpx.Response],
    ) -> None:
        http_get.return_value = make_response(json={"error": 11, "message": "Service Offline"})

        with pytest.raises(ProviderError) as exc_info:
            await lastfm_client.get_top_entities()
        assert not isinstance(exc_info.value, ProviderAuthenticationError)

    async def test_http_404_is_none(
        self,
        lastfm_client: LastfmClient,
        http_get: AsyncMock,
        make_response: Callable[..., httpx.Response],
    ) -> None:
        http_get.return_value = make_response(404)
        assert await lastfm_client.get_track_info("Myth", "Beach House") is None

    async def test_server_error_propagates(
        self,
        lastfm_client: LastfmClient,
        http_get: AsyncMock,
        make_response: Callable[..., httpx.Response],
    ) -> None:
        http_get.return_value = make_response(502)

        with pytest.raises(httpx.HTTPStatusError):
            await lastfm_client.get_top_entities()


class TestLastfmParsing:
    """Test payload parsing via a patched _make_request."""

    async def test_chart_counts_are_strings(
        self, lastfm_client: LastfmClient, mocker: MagicMock
    ) -> None:
        mocker.patch.object(
            lastfm_client,
            "_make_request",
            return_value={
                "artists": {
                    "artist": [
                        {
                            "name": "Beach House",
                            "listeners": "1234567",
                            "playcount": "98765432",
                            "mbid": "",
                            "url": "https://www.last.fm/music/Beach+House",
                        },
                        {"name": "", "listeners": "1"},
                    ]
                }
            },
        )

        artists = await lastfm_client.get_top_entities(limit=10)

        assert len(artists) == 1
        assert artists[0].listeners == 1_234_567
        assert artists[0].playcount == 98_765_432
        assert artists[0].mbid is None

    async def test_single_entry_object_is_treated_as_list(
        self, lastfm_client: LastfmClient, mocker: MagicMock
    ) -> None:
        mocker.patch.object(
            lastfm_client,
            "_make_request",
            return_value={"topartists": {"artist": {"name": "Alvvays"}}},
        )

        artists = await lastfm_client.get_top_artists_by_tag("indie pop")

        assert [a.name for a in artists] == ["Alvvays"]
        assert artists[0].listeners == 0

    async def test_get_info_reads_stats(
        self, lastfm_client: LastfmClient, mocker: MagicMock
    ) -> None:
        mocker.patch.object(
            lastfm_client,
            "_make_request",
            return_value={
                "artist": {
                    "name": "Alvvays",
                    "stats": {"listeners": "400000", "playcount": "20000000"},
                }
            },
        )

        artist = await lastfm_client.get_by_id("Alvvays")

        assert artist is not None
        assert artist.listeners == 400_000
        assert artist.playcount == 20_000_000

    async def test_get_info_falls_back_to_name_when_mbid_unknown(
        self, lastfm_client: LastfmClient, mocker: MagicMock
    ) -> None:
        request = mocker.patch.object(
            lastfm_client,
            "_make_request",
            side_effect=[None, {"artist": {"name": "Alvvays", "stats": {}}}],
        )

        artist = await lastfm_client.get_by_id("Alvvays", mbid="stale-mbid")

        assert artist is not None
        assert request.call_args_list[0].args[1] == {"mbid": "stale-mbid"}
        assert request.call_args_list[1].args[1] == {"artist": "Alvvays", "autocorrect": 1}

    async def test_track_chart_artist_shapes(
        self, lastfm_client: LastfmClient, mocker: MagicMock
    ) -> None:
        mocker.patch.object(
            lastfm_client,
            "_make_request",
            return_value={
                "tracks": {
                    "track": [
                        {"name": "Myth", "artist": {"name": "Beach House"}, "listeners": "10"},
                        {"name": "Archie, Marry Me", "artist": {"#text": "Alvvays"}},
                        {"name": "Orphan", "artist": ""},
                    ]
                }
            },
        )

        tracks = await lastfm_client.get_top_tracks_by_tag("dream pop")

        assert [(t.name, t.artist) for t in tracks] == [
            ("Myth", "Beach House"),
            ("Archie, Marry Me", "Alvvays"),
        ]

    async def test_track_info_keeps_requested_artist(
        self, lastfm_client: LastfmClient, mocker: MagicMock
    ) -> None:
        mocker.patch.object(
            lastfm_client,
            "_make_request",
            return_value={"track": {"name": "Myth", "listeners": "5", "playcount": "50"}},
        )

        track = await lastfm_client.get_track_info("Myth", "Beach House")

        assert track is not None
        assert track.artist == "Beach House"
        assert track.playcount == 50
