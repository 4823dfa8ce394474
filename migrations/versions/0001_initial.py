"""Initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONB = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), onupdate=sa.func.now()),
    ]


def upgrade() -> None:
    # Contents table
    op.create_table(
        "contents",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("theme", sa.String(255), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("audio_prompt", sa.Text(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    # Music generations table
    op.create_table(
        "music_generations",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("content_id", sa.UUID(), nullable=False),
        sa.Column("prompt", sa.Text(), nullable=False),
        sa.Column("generation_model", sa.String(50), nullable=False),
        sa.Column("status", sa.String(50), nullable=False, server_default="pending"),
        sa.Column("task_id", sa.String(255), nullable=True),
        sa.Column("request_params", JSONB, nullable=True),
        sa.Column("api_response", JSONB, nullable=True),
        sa.Column("metadata_", JSONB, nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["content_id"], ["contents.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_music_generations_content_id", "music_generations", ["content_id"])
    op.create_index("ix_music_generations_status", "music_generations", ["status"])
    op.create_index("ix_music_generations_task_id", "music_generations", ["task_id"])

    # Tracks table
    op.create_table(
        "tracks",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("content_id", sa.UUID(), nullable=False),
        sa.Column("music_generation_id", sa.UUID(), nullable=True),
        sa.Column("variant_index", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(50), nullable=False, server_default="pending"),
        sa.Column("duration_seconds", sa.Integer(), nullable=True),
        sa.Column("metadata_", JSONB, nullable=True),
        sa.Column("audio_file_path", sa.String(1024), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["content_id"], ["contents.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["music_generation_id"], ["music_generations.id"], ondelete="CASCADE"
        ),
        sa.UniqueConstraint(
            "music_generation_id", "variant_index", name="uq_tracks_generation_variant"
        ),
        sa.CheckConstraint("variant_index IN (0, 1)", name="ck_tracks_variant_index"),
    )
    op.create_index("ix_tracks_content_id", "tracks", ["content_id"])
    op.create_index("ix_tracks_music_generation_id", "tracks", ["music_generation_id"])
    op.create_index("ix_tracks_status", "tracks", ["status"])

    # Audios table
    op.create_table(
        "audios",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("content_id", sa.UUID(), nullable=False),
        sa.Column("status", sa.String(50), nullable=False, server_default="pending"),
        sa.Column("metadata_", JSONB, nullable=True),
        sa.Column("audio_file_path", sa.String(1024), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["content_id"], ["contents.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("content_id"),
    )
    op.create_index("ix_audios_status", "audios", ["status"])

    # Videos table
    op.create_table(
        "videos",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("content_id", sa.UUID(), nullable=False),
        sa.Column("status", sa.String(50), nullable=False, server_default="pending"),
        sa.Column("resolution", sa.String(20), nullable=True),
        sa.Column("file_size_bytes", sa.BigInteger(), nullable=True),
        sa.Column("duration_seconds", sa.Integer(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("video_file_path", sa.String(1024), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["content_id"], ["contents.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("content_id"),
    )
    op.create_index("ix_videos_status", "videos", ["status"])

    # Artworks table
    op.create_table(
        "artworks",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("content_id", sa.UUID(), nullable=False),
        sa.Column("image_file_path", sa.String(1024), nullable=True),
        sa.Column("width", sa.Integer(), nullable=True),
        sa.Column("height", sa.Integer(), nullable=True),
        sa.Column("derivatives", JSONB, nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["content_id"], ["contents.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("content_id"),
    )


def downgrade() -> None:
    op.drop_table("artworks")
    op.drop_index("ix_videos_status", table_name="videos")
    op.drop_table("videos")
    op.drop_index("ix_audios_status", table_name="audios")
    op.drop_table("audios")
    op.drop_index("ix_tracks_status", table_name="tracks")
    op.drop_index("ix_tracks_music_generation_id", table_name="tracks")
    op.drop_index("ix_tracks_content_id", table_name="tracks")
    op.drop_table("tracks")
    op.drop_index("ix_music_generations_task_id", table_name="music_generations")
    op.drop_index("ix_music_generations_status", table_name="music_generations")
    op.drop_index("ix_music_generations_content_id", table_name="music_generations")
    op.drop_table("music_generations")
    op.drop_table("contents")
