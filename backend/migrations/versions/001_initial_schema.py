"""Initial schema: users, artworks, behavior logs, analyses, preference profiles, precomputed recommendations.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # Users
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("display_name", sa.String(100), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default="client"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.text("true")),
        sa.Column("last_login_at", sa.DateTime(timezone=True)),
        *_timestamps(),
    )

    # Artworks
    op.create_table(
        "artworks",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("artist_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("category", sa.String(50)),
        sa.Column("style", postgresql.JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("tags", postgresql.JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("price_min", sa.Float),
        sa.Column("price_max", sa.Float),
        sa.Column("popularity_score", sa.Float, nullable=False, server_default=sa.text("0")),
        sa.Column("is_published", sa.Boolean, nullable=False, server_default=sa.text("true")),
        *_timestamps(),
    )
    op.create_index("idx_artworks_category", "artworks", ["category"])
    op.create_index("idx_artworks_artist", "artworks", ["artist_id"])

    # Behavior logs
    op.create_table(
        "user_behavior_logs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("artwork_id", sa.String(36), sa.ForeignKey("artworks.id", ondelete="CASCADE"), nullable=False),
        sa.Column("action", sa.String(20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("idx_behavior_user_created", "user_behavior_logs", ["user_id", "created_at"])
    op.create_index("idx_behavior_artwork", "user_behavior_logs", ["artwork_id"])

    # Artwork analyses
    op.create_table(
        "artwork_analyses",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "artwork_id", sa.String(36), sa.ForeignKey("artworks.id", ondelete="CASCADE"),
            unique=True, nullable=False,
        ),
        sa.Column("style_vector", postgresql.JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("category_scores", postgresql.JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("color_analysis", postgresql.JSONB),
        sa.Column("popularity_score", sa.Float, nullable=False, server_default=sa.text("0")),
        sa.Column("quality_score", sa.Float, nullable=False, server_default=sa.text("0.5")),
        sa.Column("content_hash", sa.String(64), nullable=False),
        sa.Column("last_analyzed", sa.DateTime(timezone=True)),
        *_timestamps(),
    )

    # Preference profiles
    op.create_table(
        "user_preference_profiles",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"),
            unique=True, nullable=False,
        ),
        sa.Column("preference_vector", postgresql.JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("preferred_styles", postgresql.JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("preferred_categories", postgresql.JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("profile_confidence", sa.Float, nullable=False, server_default=sa.text("0")),
        sa.Column("total_interactions", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("last_updated", sa.DateTime(timezone=True)),
        *_timestamps(),
    )

    # Precomputed recommendations
    op.create_table(
        "precomputed_recommendations",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("artwork_id", sa.String(36), sa.ForeignKey("artworks.id", ondelete="CASCADE"), nullable=False),
        sa.Column("score", sa.Float, nullable=False),
        sa.Column("algorithm", sa.String(50), nullable=False),
        sa.Column("computed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("valid_until", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("idx_precomputed_user_valid", "precomputed_recommendations", ["user_id", "valid_until"])
    op.create_index("idx_precomputed_valid_until", "precomputed_recommendations", ["valid_until"])


def downgrade() -> None:
    op.drop_table("precomputed_recommendations")
    op.drop_table("user_preference_profiles")
    op.drop_table("artwork_analyses")
    op.drop_table("user_behavior_logs")
    op.drop_table("artworks")
    op.drop_table("users")
