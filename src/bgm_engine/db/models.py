"""SQLAlchemy ORM models."""

from datetime import datetime
from typing import Any
from uuid import UUID as PyUUID
from uuid import uuid4

from sqlalchemy import (
    JSON,
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.mutable import MutableDict
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from bgm_engine.domain.enums import DerivativeVariant, GenerationStatus
from bgm_engine.domain.errors import InvalidStatusTransitionError

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = MutableDict.as_mutable(JSON().with_variant(JSONB(), "postgresql"))


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=func.now()
    )


class StatusMixin:
    """Forward-only lifecycle status column."""

    status: Mapped[str] = mapped_column(
        String(50),
        default=GenerationStatus.PENDING.value,
        server_default=GenerationStatus.PENDING.value,
        index=True,
    )

    @property
    def status_enum(self) -> GenerationStatus:
        return GenerationStatus(self.status or GenerationStatus.PENDING)

    @property
    def is_terminal(self) -> bool:
        return self.status_enum.is_terminal

    def transition_to(self, target: GenerationStatus) -> None:
        """Move to ``target``, rejecting backwards moves and exits from terminal states."""
        current = self.status_enum
        if current == target:
            return
        if not current.can_transition_to(target):
            raise InvalidStatusTransitionError(type(self).__name__, current, target)
        self.status = target.value

    def reset_for_retry(self) -> None:
        """Return a failed entity to pending so it can be run again."""
        if self.status_enum != GenerationStatus.FAILED:
            raise InvalidStatusTransitionError(
                type(self).__name__, self.status_enum, GenerationStatus.PENDING
            )
        self.status = GenerationStatus.PENDING.value


# =============================================================================
# Content
# =============================================================================


class ContentModel(TimestampMixin, Base):
    """A unit of work: one theme rendered into one long-form music video."""

    __tablename__ = "contents"

    id: Mapped[PyUUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    theme: Mapped[str] = mapped_column(String(255), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    audio_prompt: Mapped[str] = mapped_column(Text, nullable=False)

    # Relationships
    music_generations: Mapped[list["MusicGenerationModel"]] = relationship(
        "MusicGenerationModel", back_populates="content", cascade="all, delete-orphan"
    )
    tracks: Mapped[list["TrackModel"]] = relationship(
        "TrackModel", back_populates="content", cascade="all, delete-orphan"
    )
    audio: Mapped["AudioModel | None"] = relationship(
        "AudioModel", back_populates="content", uselist=False, cascade="all, delete-orphan"
    )
    video: Mapped["VideoModel | None"] = relationship(
        "VideoModel", back_populates="content", uselist=False, cascade="all, delete-orphan"
    )
    artwork: Mapped["ArtworkModel | None"] = relationship(
        "ArtworkModel", back_populates="content", uselist=False, cascade="all, delete-orphan"
    )

    @property
    def duration_seconds(self) -> int:
        return self.duration_minutes * 60


# =============================================================================
# Music generation
# =============================================================================


class MusicGenerationModel(StatusMixin, TimestampMixin, Base):
    """One request to the external music generation API (yields up to two variants)."""

    __tablename__ = "music_generations"

    id: Mapped[PyUUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    content_id: Mapped[PyUUID] = mapped_column(
        Uuid, ForeignKey("contents.id", ondelete="CASCADE"), index=True
    )
    prompt: Mapped[str] = mapped_column(Text, nullable=False)
    generation_model: Mapped[str] = mapped_column(String(50), nullable=False)
    task_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    request_params: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    api_response: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    # polling_attempts, status_history, error
    metadata_: Mapped[dict[str, Any] | None] = mapped_column("metadata_", JSONType, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    content: Mapped["ContentModel"] = relationship(
        "ContentModel", back_populates="music_generations"
    )
    tracks: Mapped[list["TrackModel"]] = relationship(
        "TrackModel",
        back_populates="music_generation",
        cascade="all, delete-orphan",
        order_by="TrackModel.variant_index",
    )


class TrackModel(StatusMixin, TimestampMixin, Base):
    """One generated audio variant."""

    __tablename__ = "tracks"
    __table_args__ = (
        UniqueConstraint(
            "music_generation_id", "variant_index", name="uq_tracks_generation_variant"
        ),
        CheckConstraint("variant_index IN (0, 1)", name="ck_tracks_variant_index"),
    )

    id: Mapped[PyUUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    content_id: Mapped[PyUUID] = mapped_column(
        Uuid, ForeignKey("contents.id", ondelete="CASCADE"), index=True
    )
    music_generation_id: Mapped[PyUUID | None] = mapped_column(
        Uuid, ForeignKey("music_generations.id", ondelete="CASCADE"), nullable=True, index=True
    )
    variant_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    duration_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    # music_title, music_tags, model_name, generated_prompt, audio_id, audio_url, task_id
    metadata_: Mapped[dict[str, Any] | None] = mapped_column("metadata_", JSONType, nullable=True)
    audio_file_path: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    # Relationships
    content: Mapped["ContentModel"] = relationship("ContentModel", back_populates="tracks")
    music_generation: Mapped["MusicGenerationModel | None"] = relationship(
        "MusicGenerationModel", back_populates="tracks"
    )


# =============================================================================
# Audio / Video / Artwork (one per content)
# =============================================================================


class AudioModel(StatusMixin, TimestampMixin, Base):
    """Concatenated long-form audio program for a content."""

    __tablename__ = "audios"

    id: Mapped[PyUUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    content_id: Mapped[PyUUID] = mapped_column(
        Uuid, ForeignKey("contents.id", ondelete="CASCADE"), unique=True
    )
    # duration, selected_track_ids, total_duration, tracks_used, target_duration, error
    metadata_: Mapped[dict[str, Any] | None] = mapped_column("metadata_", JSONType, nullable=True)
    audio_file_path: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    content: Mapped["ContentModel"] = relationship("ContentModel", back_populates="audio")

    @property
    def duration_seconds(self) -> int | None:
        return (self.metadata_ or {}).get("duration")


class VideoModel(StatusMixin, TimestampMixin, Base):
    """Final rendered video for a content."""

    __tablename__ = "videos"

    id: Mapped[PyUUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    content_id: Mapped[PyUUID] = mapped_column(
        Uuid, ForeignKey("contents.id", ondelete="CASCADE"), unique=True
    )
    resolution: Mapped[str | None] = mapped_column(String(20), nullable=True)
    file_size_bytes: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    duration_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    video_file_path: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    content: Mapped["ContentModel"] = relationship("ContentModel", back_populates="video")


class ArtworkModel(TimestampMixin, Base):
    """Still image used as the video background."""

    __tablename__ = "artworks"

    id: Mapped[PyUUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    content_id: Mapped[PyUUID] = mapped_column(
        Uuid, ForeignKey("contents.id", ondelete="CASCADE"), unique=True
    )
    image_file_path: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    width: Mapped[int | None] = mapped_column(Integer, nullable=True)
    height: Mapped[int | None] = mapped_column(Integer, nullable=True)
    # variant name -> stored path
    derivatives: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)

    content: Mapped["ContentModel"] = relationship("ContentModel", back_populates="artwork")

    THUMBNAIL_SOURCE_SIZE = (1920, 1080)

    def derivative_path(self, variant: str) -> str | None:
        return (self.derivatives or {}).get(variant)

    @property
    def has_image(self) -> bool:
        return bool(self.image_file_path)

    @property
    def youtube_thumbnail_eligible(self) -> bool:
        """Only full-HD artwork is turned into a YouTube thumbnail."""
        return self.has_image and (self.width, self.height) == self.THUMBNAIL_SOURCE_SIZE

    @property
    def has_youtube_thumbnail(self) -> bool:
        return bool(self.derivative_path(DerivativeVariant.YOUTUBE_THUMBNAIL))
