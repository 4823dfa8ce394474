"""Base interface for music generation providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from bgm_engine.domain.enums import TaskState


RUNNING_STATUSES = frozenset(
    {"pending", "processing", "running", "in_progress", "text_success", "first_success"}
)
SUCCEEDED_STATUSES = frozenset({"completed", "success", "succeeded"})
FAILED_STATUSES = frozenset(
    {
        "failed",
        "error",
        "create_task_failed",
        "generate_audio_failed",
        "callback_exception",
        "sensitive_word_error",
    }
)


def classify_status(raw_status: str | None) -> TaskState:
    """Map a vendor status string onto TaskState (case-insensitive)."""
    status = (raw_status or "").strip().lower()
    if status in SUCCEEDED_STATUSES:
        return TaskState.SUCCEEDED
    if status in FAILED_STATUSES:
        return TaskState.FAILED
    if status in RUNNING_STATUSES:
        return TaskState.RUNNING
    return TaskState.UNRECOGNIZED


@dataclass
class MusicGenRequest:
    """Request for music generation."""

    prompt: str
    model: str
    instrumental: bool = True
    callback_url: str | None = None

    def to_params(self) -> dict[str, Any]:
        """Parameters as recorded on the generation request."""
        return {
            "prompt": self.prompt,
            "model": self.model,
            "instrumental": self.instrumental,
            "callback_url": self.callback_url,
        }


@dataclass
class MusicVariant:
    """One generated audio variant returned by a completed task."""

    audio_url: str
    title: str | None = None
    tags: str | None = None
    duration_seconds: float | None = None
    model_name: str | None = None
    prompt: str | None = None
    audio_id: str | None = None

    def to_metadata(self) -> dict[str, Any]:
        return {
            "audio_url": self.audio_url,
            "music_title": self.title,
            "music_tags": self.tags,
            "model_name": self.model_name,
            "generated_prompt": self.prompt,
            "audio_id": self.audio_id,
        }


@dataclass
class TaskStatus:
    """Status of an external generation task."""

    task_id: str
    raw_status: str
    state: TaskState
    variants: list[MusicVariant] = field(default_factory=list)
    error_message: str | None = None
    raw_response: dict[str, Any] | None = None

    @property
    def is_running(self) -> bool:
        return self.state in (TaskState.RUNNING, TaskState.UNRECOGNIZED)


class MusicGenProvider(ABC):
    """Abstract base class for music generation providers.

    Implementations:
    - KieProvider: Kie.ai (Suno-compatible) generation API
    - StubMusicGenProvider: Completes immediately with fake variants for local runs
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name identifier."""
        ...

    @abstractmethod
    def submit(self, request: MusicGenRequest) -> str:
        """Submit a generation task.

        Args:
            request: Prompt, model and generation options

        Returns:
            The external task id
        """
        ...

    @abstractmethod
    def get_status(self, task_id: str) -> TaskStatus:
        """Fetch the current status of a task.

        Args:
            task_id: The id returned from submit()

        Returns:
            TaskStatus with normalized state and, once succeeded, the variants
        """
        ...

    @abstractmethod
    def download_audio(self, url: str, destination: Path) -> Path:
        """Download a variant's audio payload to ``destination``."""
        ...

    def close(self) -> None:
        """Release any held connections."""
        return None

    def health_check(self) -> bool:
        return True
