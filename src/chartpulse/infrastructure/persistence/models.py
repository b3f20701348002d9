"""SQLAlchemy ORM models for ChartPulse."""

import uuid
from datetime import date, datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy import JSON, Boolean, Float, ForeignKey, Index, Integer, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from chartpulse.domain.entities import utc_now


# Yo, Base is THE foundation of all ORM models! DeclarativeBase is SQLAlchemy 2.0 style.
# ALL models inherit from this - it owns the shared metadata registry that create_tables()
# and Alembic look at. Don't create a second Base.
class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# Listen up, UnifiedArtistModel is the row behind the canonical artist. Two ids on purpose:
# - row_id: integer surrogate, autoincrement, gives us a stable CREATION ORDER ("entity order")
#   that doesn't depend on clock resolution
# - id: the UUID string the rest of the system talks about
# Provider ids are plain indexed columns (not unique!) because name matching is fuzzy and two
# entities can briefly point at the same Spotify id until someone merges them by hand.
# Metric snapshots and score history are JSON blobs - they are always read and written whole.
class UnifiedArtistModel(Base):
    """SQLAlchemy model for UnifiedArtist."""

    __tablename__ = "unified_artists"

    row_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(
        String(36), nullable=False, unique=True, default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    musicbrainz_id: Mapped[str | None] = mapped_column(
        String(36), nullable=True, index=True
    )
    spotify_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    lastfm_url: Mapped[str | None] = mapped_column(String(512), nullable=True, index=True)
    listenbrainz_id: Mapped[str | None] = mapped_column(
        String(36), nullable=True, index=True
    )
    spotify_metrics: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    lastfm_metrics: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    listenbrainz_metrics: Mapped[dict[str, Any] | None] = mapped_column(
        JSON, nullable=True
    )
    composite_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    momentum_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    reach_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    last_score_update: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )
    is_independent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    score_history: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list
    )
    genres: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    images: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    country: Mapped[str | None] = mapped_column(String(8), nullable=True)
    artist_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    label: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    __table_args__ = (
        Index("ix_unified_artists_composite", "composite_score"),
        Index("ix_unified_artists_momentum", "momentum_score"),
        Index("ix_unified_artists_independent", "is_independent"),
    )


# Hey future me - artist_name is a COPY taken when the track is created. It's here so track
# search can hit one table; it is never re-synced from the artist row.
class UnifiedTrackModel(Base):
    """SQLAlchemy model for UnifiedTrack."""

    __tablename__ = "unified_tracks"

    row_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(
        String(36), nullable=False, unique=True, default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    artist_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("unified_artists.id"), nullable=False, index=True
    )
    artist_name: Mapped[str] = mapped_column(String(255), nullable=False)
    musicbrainz_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    spotify_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    lastfm_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    spotify_metrics: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    lastfm_metrics: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    composite_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    momentum_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    last_score_update: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )
    score_history: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list
    )
    album: Mapped[str | None] = mapped_column(String(255), nullable=True)
    release_date: Mapped[date | None] = mapped_column(sa.Date, nullable=True)
    genres: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    images: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    __table_args__ = (
        Index("ix_unified_tracks_composite", "composite_score"),
        Index("ix_unified_tracks_artist_composite", "artist_id", "composite_score"),
    )


# Case-insensitive name lookups (find-or-create) go through lower(name)
Index("ix_unified_artists_name_lower", func.lower(UnifiedArtistModel.name))
Index("ix_unified_tracks_name_lower", func.lower(UnifiedTrackModel.name))
