"""Tests for the Spotify client-credentials client."""

from collections.abc import Callable
from datetime import date
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from chartpulse.config.settings import SpotifySettings
from chartpulse.domain.exceptions import ProviderAuthenticationError
from chartpulse.infrastructure.integrations.spotify_client import (
    SpotifyClient,
    _parse_retry_after,
    parse_release_date,
)
from chartpulse.infrastructure.rate_limiter import RateLimiter

ARTIST_PAYLOAD = {
    "id": "56ZTgzPBDge0OvCGgMO3OY",
    "name": "Beach House",
    "followers": {"total": 1_900_000},
    "popularity": 68,
    "genres": ["dream pop", "indie rock"],
    "images": [{"url": "https://i.scdn.co/image/bh", "width": 640, "height": 640}],
}


@pytest.fixture
def spotify_client() -> SpotifyClient:
    return SpotifyClient(
        SpotifySettings(client_id="id", client_secret="secret"),
        rate_limiter=RateLimiter.for_provider("spotify", min_interval=0.0),
    )


@pytest.fixture
def http(spotify_client: SpotifyClient, mocker: MagicMock) -> MagicMock:
    """Fake HTTP client with post (token) and request (API) mocks."""
    client = MagicMock()
    client.post = AsyncMock()
    client.request = AsyncMock()
    mocker.patch.object(spotify_client, "_get_client", return_value=client)
    return client


def _token(make_response: Callable[..., httpx.Response]) -> httpx.Response:
    return make_response(json={"access_token": "app-token", "expires_in": 3600})


class TestParseReleaseDate:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("2022-02-18", date(2022, 2, 18)),
            ("2022-02", date(2022, 2, 1)),
            ("2022", date(2022, 1, 1)),
            ("", None),
            (None, None),
            ("not-a-date", None),
        ],
    )
    def test_precision_variants(self, value: str | None, expected: date | None) -> None:
        assert parse_release_date(value) == expected


class TestParseRetryAfter:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("2", 2.0),
            ("1.5", 1.5),
            ("Wed, 21 Oct 2026 07:28:00 GMT", None),
            ("-3", None),
            ("", None),
            (None, None),
        ],
    )
    def test_header_forms(self, value: str | None, expected: float | None) -> None:
        assert _parse_retry_after(value) == expected


class TestSpotifyToken:
    async def test_token_is_cached(
        self,
        spotify_client: SpotifyClient,
        http: MagicMock,
        make_response: Callable[..., httpx.Response],
    ) -> None:
        http.post.return_value = _token(make_response)
        http.request.return_value = make_response(json=ARTIST_PAYLOAD)

        await spotify_client.get_by_id("56ZTgzPBDge0OvCGgMO3OY")
        await spotify_client.get_by_id("56ZTgzPBDge0OvCGgMO3OY")

        assert http.post.await_count == 1
        headers = http.request.call_args.kwargs["headers"]
        assert headers["Authorization"] == "Bearer app-token"

    @pytest.mark.parametrize("status", [400, 401])
    async def test_rejected_credentials_raise(
        self,
        status: int,
        spotify_client: SpotifyClient,
        http: MagicMock,
        make_response: Callable[..., httpx.Response],
    ) -> None:
        http.post.return_value = make_response(status, json={"error": "invalid_client"})

        with pytest.raises(ProviderAuthenticationError) as exc_info:
            await spotify_client.search_by_name("Beach House")
        assert exc_info.value.http_status == status

    async def test_revoked_token_is_refreshed_once(
        self,
        spotify_client: SpotifyClient,
        http: MagicMock,
        make_response: Callable[..., httpx.Response],
    ) -> None:
        http.post.return_value = _token(make_response)
        http.request.side_effect = [
            make_response(401),
            make_response(json=ARTIST_PAYLOAD),
        ]

        artist = await spotify_client.get_by_id("56ZTgzPBDge0OvCGgMO3OY")

        assert artist is not None
        assert http.post.await_count == 2
        assert http.request.await_count == 2


class TestSpotifyRequests:
    async def test_unconfigured_returns_nothing(self, mocker: MagicMock) -> None:
        client = SpotifyClient(SpotifySettings())
        api = mocker.patch.object(client, "_api_request")

        assert await client.search_by_name("Beach House") == []
        assert await client.get_by_id("abc") is None
        assert await client.search_tracks("Myth", "Beach House") == []
        api.assert_not_called()

    async def test_get_by_id_parses_artist(
        self,
        spotify_client: SpotifyClient,
        mocker: MagicMock,
        make_response: Callable[..., httpx.Response],
    ) -> None:
        mocker.patch.object(
            spotify_client, "_api_request", return_value=make_response(json=ARTIST_PAYLOAD)
        )

        artist = await spotify_client.get_by_id("56ZTgzPBDge0OvCGgMO3OY")

        assert artist is not None
        assert artist.followers == 1_900_000
        assert artist.popularity == 68
        assert artist.genres == ("dream pop", "indie rock")
        assert artist.images[0].source == "spotify"
        assert artist.images[0].width == 640

    @pytest.mark.parametrize("status", [400, 404])
    async def test_unknown_artist_is_none(
        self,
        status: int,
        spotify_client: SpotifyClient,
        mocker: MagicMock,
        make_response: Callable[..., httpx.Response],
    ) -> None:
        mocker.patch.object(
            spotify_client, "_api_request", return_value=make_response(status)
        )
        assert await spotify_client.get_by_id("gone") is None

    async def test_search_tracks_uses_field_filters(
        self,
        spotify_client: SpotifyClient,
        mocker: MagicMock,
        make_response: Callable[..., httpx.Response],
    ) -> None:
        api = mocker.patch.object(
            spotify_client,
            "_api_request",
            return_value=make_response(
                json={
                    "tracks": {
                        "items": [
                            {
                                "id": "track-1",
                                "name": "Myth",
                                "artists": [{"name": "Beach House"}],
                                "duration_ms": 258_000,
                                "popularity": 61,
                                "album": {
                                    "name": "Bloom",
                                    "release_date": "2012-05-15",
                                    "images": [{"url": "https://i.scdn.co/image/bloom"}],
                                },
                            }
                        ]
                    }
                }
            ),
        )

        tracks = await spotify_client.search_tracks("Myth", "Beach House", limit=1)

        assert api.call_args.kwargs["params"]["q"] == "track:Myth artist:Beach House"
        assert api.call_args.kwargs["params"]["type"] == "track"
        assert tracks[0].album == "Bloom"
        assert tracks[0].release_date == date(2012, 5, 15)
        assert tracks[0].artist_names == ("Beach House",)
        assert tracks[0].album_images[0].url == "https://i.scdn.co/image/bloom"

    async def test_rate_limited_request_retries_after_429(
        self,
        spotify_client: SpotifyClient,
        http: MagicMock,
        mocker: MagicMock,
        make_response: Callable[..., httpx.Response],
    ) -> None:
        mocker.patch(
            "chartpulse.infrastructure.rate_limiter.asyncio.sleep", return_value=None
        )
        http.post.return_value = _token(make_response)
        http.request.side_effect = [
            make_response(429, headers={"Retry-After": "2"}),
            make_response(json={"artists": {"items": [ARTIST_PAYLOAD]}}),
        ]

        results = await spotify_client.search_by_name("Beach House")

        assert [a.name for a in results] == ["Beach House"]
        assert http.request.await_count == 2

    async def test_429_gives_up_after_max_retries(
        self,
        spotify_client: SpotifyClient,
        http: MagicMock,
        mocker: MagicMock,
        make_response: Callable[..., httpx.Response],
    ) -> None:
        mocker.patch(
            "chartpulse.infrastructure.rate_limiter.asyncio.sleep", return_value=None
        )
        http.post.return_value = _token(make_response)
        http.request.return_value = make_response(429)

        with pytest.raises(httpx.HTTPStatusError):
            await spotify_client._api_request("GET", "/search", max_retries=2)
        assert http.request.await_count == 3

    @pytest.mark.parametrize(("header", "expected"), [("1.5", 1.5), ("soon", None)])
    async def test_429_with_odd_retry_after_still_retries(
        self,
        spotify_client: SpotifyClient,
        http: MagicMock,
        mocker: MagicMock,
        make_response: Callable[..., httpx.Response],
        header: str,
        expected: float | None,
    ) -> None:
        backoff = mocker.patch.object(
            spotify_client._rate_limiter,
            "handle_rate_limit_response",
            AsyncMock(return_value=0.0),
        )
        http.post.return_value = _token(make_response)
        http.request.side_effect = [
            make_response(429, headers={"Retry-After": header}),
            make_response(json={"artists": {"items": [ARTIST_PAYLOAD]}}),
        ]

        results = await spotify_client.search_by_name("Beach House")

        assert [a.name for a in results] == ["Beach House"]
        backoff.assert_awaited_once_with(expected)
