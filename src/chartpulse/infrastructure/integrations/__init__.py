"""External provider integrations."""

from chartpulse.infrastructure.integrations.lastfm_client import LastfmClient
from chartpulse.infrastructure.integrations.listenbrainz_client import (
    ListenBrainzClient,
)
from chartpulse.infrastructure.integrations.musicbrainz_client import MusicBrainzClient
from chartpulse.infrastructure.integrations.spotify_client import SpotifyClient

__all__ = [
    "LastfmClient",
    "ListenBrainzClient",
    "MusicBrainzClient",
    "SpotifyClient",
]
