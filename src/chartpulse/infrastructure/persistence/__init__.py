"""Persistence layer: engine, ORM models and repositories."""

from chartpulse.infrastructure.persistence.database import Database
from chartpulse.infrastructure.persistence.models import (
    Base,
    UnifiedArtistModel,
    UnifiedTrackModel,
)
from chartpulse.infrastructure.persistence.repositories import (
    UnifiedArtistRepository,
    UnifiedTrackRepository,
)

__all__ = [
    "Base",
    "Database",
    "UnifiedArtistModel",
    "UnifiedArtistRepository",
    "UnifiedTrackModel",
    "UnifiedTrackRepository",
]
