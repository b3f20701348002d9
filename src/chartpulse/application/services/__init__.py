"""Application services."""

from chartpulse.application.services.artist_aggregator import (
    ArtistAggregator,
    GenreImportResult,
)
from chartpulse.application.services.chart_scoring_service import (
    ArtistScores,
    ChartScoringService,
    ScoringWeights,
    TrackScores,
)
from chartpulse.application.services.identity_resolver import (
    BridgedIds,
    IdentityResolver,
)
from chartpulse.application.services.independent_artist_service import (
    IndependenceThresholds,
    IndependentArtistService,
    is_independent_artist,
)
from chartpulse.application.services.track_aggregator import TrackAggregator

__all__ = [
    "ArtistAggregator",
    "ArtistScores",
    "BridgedIds",
    "ChartScoringService",
    "GenreImportResult",
    "IdentityResolver",
    "IndependenceThresholds",
    "IndependentArtistService",
    "ScoringWeights",
    "TrackAggregator",
    "TrackScores",
    "is_independent_artist",
]
