"""Domain value objects."""

from chartpulse.domain.value_objects.artist_matching import (
    MatchRule,
    any_name_matches,
    match_rule,
    names_match,
)
from chartpulse.domain.value_objects.image_ref import ImageRef
from chartpulse.domain.value_objects.providers import (
    LastfmArtist,
    LastfmTrack,
    ListenBrainzArtist,
    ListenBrainzStats,
    MusicBrainzArtist,
    SpotifyArtist,
    SpotifyTrack,
)

__all__ = [
    "ImageRef",
    "LastfmArtist",
    "LastfmTrack",
    "ListenBrainzArtist",
    "ListenBrainzStats",
    "MatchRule",
    "MusicBrainzArtist",
    "SpotifyArtist",
    "SpotifyTrack",
    "any_name_matches",
    "match_rule",
    "names_match",
]
