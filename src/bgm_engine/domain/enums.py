"""Domain enumerations."""

from enum import StrEnum


class GenerationStatus(StrEnum):
    """Lifecycle status shared by generation requests, tracks, audio and video.

    Transitions are forward-only: pending -> processing -> completed | failed.
    A pending entity may also fail directly (validation errors before work starts).
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (GenerationStatus.COMPLETED, GenerationStatus.FAILED)

    def can_transition_to(self, target: "GenerationStatus") -> bool:
        """Check whether moving from this status to ``target`` is allowed."""
        return target in _ALLOWED_TRANSITIONS[self]


_ALLOWED_TRANSITIONS: dict[GenerationStatus, frozenset[GenerationStatus]] = {
    GenerationStatus.PENDING: frozenset({GenerationStatus.PROCESSING, GenerationStatus.FAILED}),
    GenerationStatus.PROCESSING: frozenset({GenerationStatus.COMPLETED, GenerationStatus.FAILED}),
    GenerationStatus.COMPLETED: frozenset(),
    GenerationStatus.FAILED: frozenset(),
}


class TaskState(StrEnum):
    """Normalized state of an external generation task."""

    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    UNRECOGNIZED = "unrecognized"


class AssetKind(StrEnum):
    """Kinds of stored payloads (maps to storage subdirectories)."""

    TRACK = "track"
    AUDIO = "audio"
    VIDEO = "video"
    ARTWORK = "artwork"
    THUMBNAIL = "thumbnail"


class DerivativeVariant(StrEnum):
    """Named image derivatives produced from artwork."""

    YOUTUBE_THUMBNAIL = "youtube_thumbnail"
