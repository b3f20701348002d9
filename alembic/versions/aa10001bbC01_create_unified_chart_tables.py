"""Create unified_artists and unified_tracks tables.

Revision ID: aa10001bbC01
Revises:
Create Date: 2026-10-19

Hey future me – this is the initial schema for the entity store!
Both tables use an integer row_id as primary key (creation order) plus a UUID "id"
that the rest of the code talks about. Per-provider metric snapshots, score history,
genres and images live in JSON columns because they are always read/written whole.

Provider ids (spotify_id, lastfm_url, listenbrainz_id) are indexed but NOT unique:
name matching is best effort, so two artists may briefly share a provider id.
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "aa10001bbC01"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create the unified artist/track tables."""
    op.create_table(
        "unified_artists",
        sa.Column("row_id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("id", sa.String(36), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("musicbrainz_id", sa.String(36), nullable=True),
        sa.Column("spotify_id", sa.String(64), nullable=True),
        sa.Column("lastfm_url", sa.String(512), nullable=True),
        sa.Column("listenbrainz_id", sa.String(36), nullable=True),
        # Latest snapshot per provider: {"followers": ..., "timestamp": "...", ...}
        sa.Column("spotify_metrics", sa.JSON, nullable=True),
        sa.Column("lastfm_metrics", sa.JSON, nullable=True),
        sa.Column("listenbrainz_metrics", sa.JSON, nullable=True),
        sa.Column("composite_score", sa.Float, nullable=False, server_default="0"),
        sa.Column("momentum_score", sa.Float, nullable=False, server_default="0"),
        sa.Column("reach_score", sa.Float, nullable=False, server_default="0"),
        sa.Column("last_score_update", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_independent", sa.Boolean, nullable=False, server_default="1"),
        # Rolling 30-day history, oldest first
        sa.Column("score_history", sa.JSON, nullable=False, server_default="[]"),
        sa.Column("genres", sa.JSON, nullable=False, server_default="[]"),
        sa.Column("images", sa.JSON, nullable=False, server_default="[]"),
        sa.Column("country", sa.String(8), nullable=True),
        sa.Column("artist_type", sa.String(50), nullable=True),
        sa.Column("label", sa.String(255), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "ix_unified_artists_musicbrainz_id", "unified_artists", ["musicbrainz_id"]
    )
    op.create_index("ix_unified_artists_spotify_id", "unified_artists", ["spotify_id"])
    op.create_index("ix_unified_artists_lastfm_url", "unified_artists", ["lastfm_url"])
    op.create_index(
        "ix_unified_artists_listenbrainz_id", "unified_artists", ["listenbrainz_id"]
    )
    op.create_index(
        "ix_unified_artists_name_lower",
        "unified_artists",
        [sa.text("lower(name)")],
    )
    op.create_index(
        "ix_unified_artists_composite", "unified_artists", ["composite_score"]
    )
    op.create_index("ix_unified_artists_momentum", "unified_artists", ["momentum_score"])
    op.create_index(
        "ix_unified_artists_independent", "unified_artists", ["is_independent"]
    )

    op.create_table(
        "unified_tracks",
        sa.Column("row_id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("id", sa.String(36), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column(
            "artist_id",
            sa.String(36),
            sa.ForeignKey("unified_artists.id"),
            nullable=False,
        ),
        # Copied from the artist at creation, never re-synced
        sa.Column("artist_name", sa.String(255), nullable=False),
        sa.Column("musicbrainz_id", sa.String(36), nullable=True),
        sa.Column("spotify_id", sa.String(64), nullable=True),
        sa.Column("lastfm_url", sa.String(512), nullable=True),
        sa.Column("spotify_metrics", sa.JSON, nullable=True),
        sa.Column("lastfm_metrics", sa.JSON, nullable=True),
        sa.Column("composite_score", sa.Float, nullable=False, server_default="0"),
        sa.Column("momentum_score", sa.Float, nullable=False, server_default="0"),
        sa.Column("last_score_update", sa.DateTime(timezone=True), nullable=True),
        sa.Column("score_history", sa.JSON, nullable=False, server_default="[]"),
        sa.Column("album", sa.String(255), nullable=True),
        sa.Column("release_date", sa.Date, nullable=True),
        sa.Column("genres", sa.JSON, nullable=False, server_default="[]"),
        sa.Column("images", sa.JSON, nullable=False, server_default="[]"),
        sa.Column("duration", sa.Integer, nullable=True),  # seconds
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_unified_tracks_artist_id", "unified_tracks", ["artist_id"])
    op.create_index("ix_unified_tracks_spotify_id", "unified_tracks", ["spotify_id"])
    op.create_index(
        "ix_unified_tracks_name_lower",
        "unified_tracks",
        [sa.text("lower(name)")],
    )
    op.create_index("ix_unified_tracks_composite", "unified_tracks", ["composite_score"])
    op.create_index(
        "ix_unified_tracks_artist_composite",
        "unified_tracks",
        ["artist_id", "composite_score"],
    )


def downgrade() -> None:
    """Drop the unified artist/track tables."""
    op.drop_index("ix_unified_tracks_artist_composite", table_name="unified_tracks")
    op.drop_index("ix_unified_tracks_composite", table_name="unified_tracks")
    op.drop_index("ix_unified_tracks_name_lower", table_name="unified_tracks")
    op.drop_index("ix_unified_tracks_spotify_id", table_name="unified_tracks")
    op.drop_index("ix_unified_tracks_artist_id", table_name="unified_tracks")
    op.drop_table("unified_tracks")

    op.drop_index("ix_unified_artists_independent", table_name="unified_artists")
    op.drop_index("ix_unified_artists_momentum", table_name="unified_artists")
    op.drop_index("ix_unified_artists_composite", table_name="unified_artists")
    op.drop_index("ix_unified_artists_name_lower", table_name="unified_artists")
    op.drop_index("ix_unified_artists_listenbrainz_id", table_name="unified_artists")
    op.drop_index("ix_unified_artists_lastfm_url", table_name="unified_artists")
    op.drop_index("ix_unified_artists_spotify_id", table_name="unified_artists")
    op.drop_index("ix_unified_artists_musicbrainz_id", table_name="unified_artists")
    op.drop_table("unified_artists")
