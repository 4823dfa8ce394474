"""Music generation orchestration.

A generation request moves pending -> processing -> completed | failed.

``step`` advances a request by one state per invocation and hands control back
through a WaitStrategy between status checks. The Celery task passes a
yielding strategy that re-enqueues the job, so no worker is held while the
vendor is generating.

``run_blocking`` is the older path: it submits and then polls in-process with
exponential backoff. It is kept for manual runs and is deprecated.
"""

import tempfile
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from urllib.parse import urlparse
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from bgm_engine.adapters.music_gen.base import (
    MusicGenProvider,
    MusicGenRequest,
    MusicVariant,
    TaskStatus,
)
from bgm_engine.adapters.music_gen.errors import TaskFailedError, TaskTimeoutError
from bgm_engine.config import settings
from bgm_engine.db.models import MusicGenerationModel, TrackModel
from bgm_engine.domain.enums import AssetKind, GenerationStatus, TaskState
from bgm_engine.logging import get_logger
from bgm_engine.services.audio_analysis import AudioAnalysisService
from bgm_engine.services.polling import BlockingBackoffWait, TaskPoller, WaitStrategy
from bgm_engine.services.storage import StorageService

logger = get_logger(__name__)

SAMPLE_PROMPT = "Create a relaxing lo-fi hip-hop beat for studying"
MAX_VARIANTS = 2


class GenerationNotFoundError(LookupError):
    """The generation request no longer exists."""


@dataclass
class StepOutcome:
    """What one orchestration step did."""

    generation_id: UUID
    status: GenerationStatus
    action: str
    next_check_in: float | None = None
    track_ids: list[str] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "generation_id": str(self.generation_id),
            "status": self.status.value,
            "action": self.action,
            "next_check_in": self.next_check_in,
            "track_ids": self.track_ids,
            "error": self.error,
        }


def _now() -> str:
    return datetime.now(UTC).isoformat()


class MusicGenerationService:
    """Drives generation requests through the external API and materializes tracks."""

    def __init__(
        self,
        session: Session,
        provider: MusicGenProvider,
        storage: StorageService | None = None,
        analyzer: AudioAnalysisService | None = None,
        max_poll_attempts: int | None = None,
    ) -> None:
        self.session = session
        self.provider = provider
        self.storage = storage or StorageService()
        self.analyzer = analyzer or AudioAnalysisService()
        self.max_poll_attempts = (
            max_poll_attempts
            if max_poll_attempts is not None
            else settings.music_max_poll_attempts
        )

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    def step(self, generation_id: UUID, wait: WaitStrategy) -> StepOutcome:
        """Advance a generation request by one state.

        Terminal requests are left alone without touching the API, so duplicate
        or late deliveries of the job are harmless.
        """
        generation = self._load(generation_id)

        if generation.is_terminal:
            logger.info(
                "music_generation_already_terminal",
                generation_id=str(generation_id),
                status=generation.status,
            )
            return StepOutcome(generation.id, generation.status_enum, "skipped")

        if generation.status_enum == GenerationStatus.PENDING:
            self._start(generation)
            delay = wait.wait(1)
            return StepOutcome(generation.id, generation.status_enum, "submitted", delay)

        return self._poll(generation, wait)

    def run_blocking(self, generation_id: UUID, poller: TaskPoller | None = None) -> StepOutcome:
        """Submit (if needed) and wait for completion inside this call.

        Deprecated: holds the worker for the whole generation. Prefer ``step``.
        """
        logger.warning("music_generation_blocking_path_deprecated", generation_id=str(generation_id))

        generation = self._load(generation_id)
        if generation.is_terminal:
            return StepOutcome(generation.id, generation.status_enum, "skipped")

        if generation.status_enum == GenerationStatus.PENDING:
            self._start(generation)

        poller = poller or TaskPoller(
            self.provider,
            wait_strategy=BlockingBackoffWait(),
            max_attempts=settings.music_blocking_max_attempts,
        )

        try:
            status = poller.poll_until_terminal(generation.task_id or "")
        except TaskFailedError as e:
            self._fail(generation, e.reason or "Generation failed")
            return StepOutcome(generation.id, generation.status_enum, "failed", error=e.reason)
        except TaskTimeoutError as e:
            self._fail(generation, str(e))
            return StepOutcome(generation.id, generation.status_enum, "timed_out", error=str(e))

        return self._complete(generation, status)

    def mark_failed(self, generation_id: UUID, message: str) -> bool:
        """Record a failure from outside the state machine (exhausted retries, job errors).

        Returns False if the request was already terminal or no longer exists.
        """
        generation = self.session.get(MusicGenerationModel, generation_id)
        if generation is None or generation.is_terminal:
            return False
        self._fail(generation, message)
        return True

    # -------------------------------------------------------------------------
    # States
    # -------------------------------------------------------------------------

    def _start(self, generation: MusicGenerationModel) -> str:
        request = MusicGenRequest(
            prompt=generation.prompt or SAMPLE_PROMPT,
            model=generation.generation_model or settings.music_model,
            instrumental=True,
            callback_url=settings.music_callback_url,
        )

        task_id = self.provider.submit(request)

        metadata = self._metadata(generation)
        metadata["task_id"] = task_id
        metadata["polling_attempts"] = 0
        metadata["status_history"] = [
            *metadata.get("status_history", []),
            {"status": "pending_to_processing", "timestamp": _now(), "task_id": task_id},
        ]

        generation.task_id = task_id
        generation.request_params = request.to_params()
        generation.metadata_ = metadata
        generation.transition_to(GenerationStatus.PROCESSING)
        self.session.commit()

        logger.info(
            "music_generation_submitted",
            generation_id=str(generation.id),
            task_id=task_id,
            model=request.model,
            prompt=request.prompt[:100],
        )
        return task_id

    def _poll(self, generation: MusicGenerationModel, wait: WaitStrategy) -> StepOutcome:
        if not generation.task_id:
            self._fail(generation, "Generation is processing but has no external task id")
            return StepOutcome(generation.id, generation.status_enum, "failed")

        status = self.provider.get_status(generation.task_id)

        logger.info(
            "music_generation_status",
            generation_id=str(generation.id),
            task_id=generation.task_id,
            status=status.raw_status,
            state=status.state,
        )

        if status.state == TaskState.SUCCEEDED:
            return self._complete(generation, status)

        if status.state == TaskState.FAILED:
            error = status.error_message or "Unknown error"
            generation.api_response = status.raw_response
            self._fail(generation, error)
            return StepOutcome(generation.id, generation.status_enum, "failed", error=error)

        if status.state == TaskState.UNRECOGNIZED:
            logger.warning(
                "music_generation_unknown_status",
                generation_id=str(generation.id),
                status=status.raw_status,
                response=status.raw_response,
            )

        metadata = self._metadata(generation)
        attempts = int(metadata.get("polling_attempts", 0)) + 1
        metadata["polling_attempts"] = attempts

        if attempts >= self.max_poll_attempts:
            waited = attempts * wait.interval(attempts)
            message = f"Music generation timed out after {attempts} status checks (~{waited:.0f}s)"
            generation.metadata_ = metadata
            self._fail(generation, message)
            logger.error(
                "music_generation_timeout",
                generation_id=str(generation.id),
                attempts=attempts,
            )
            return StepOutcome(generation.id, generation.status_enum, "timed_out", error=message)

        generation.metadata_ = metadata
        self.session.commit()

        delay = wait.wait(attempts)
        return StepOutcome(generation.id, generation.status_enum, "polling", delay)

    def _complete(self, generation: MusicGenerationModel, status: TaskStatus) -> StepOutcome:
        variants = status.variants[:MAX_VARIANTS]
        generation.api_response = status.raw_response
        self.session.commit()

        if not variants:
            message = "No audio data in completed task response"
            self._fail(generation, message)
            return StepOutcome(generation.id, generation.status_enum, "failed", error=message)

        track_ids = [
            str(self._materialize_track(generation, index, variant).id)
            for index, variant in enumerate(variants)
        ]

        metadata = self._metadata(generation)
        metadata["status_history"] = [
            *metadata.get("status_history", []),
            {"status": "processing_to_completed", "timestamp": _now(), "track_count": len(track_ids)},
        ]
        generation.metadata_ = metadata
        generation.transition_to(GenerationStatus.COMPLETED)
        generation.completed_at = datetime.now(UTC)
        self.session.commit()

        logger.info(
            "music_generation_completed",
            generation_id=str(generation.id),
            track_count=len(track_ids),
        )
        return StepOutcome(
            generation.id, generation.status_enum, "completed", track_ids=track_ids
        )

    def _materialize_track(
        self,
        generation: MusicGenerationModel,
        variant_index: int,
        variant: MusicVariant,
    ) -> TrackModel:
        """Create (or resume) the track for one variant.

        Completed variants are returned untouched, so a retried completion step
        only redoes the variants that did not finish.
        """
        track = self.session.execute(
            select(TrackModel).where(
                TrackModel.music_generation_id == generation.id,
                TrackModel.variant_index == variant_index,
            )
        ).scalar_one_or_none()

        if track is not None and track.status_enum == GenerationStatus.COMPLETED:
            return track

        if track is None:
            track = TrackModel(
                content_id=generation.content_id,
                music_generation_id=generation.id,
                variant_index=variant_index,
                status=GenerationStatus.PENDING.value,
                metadata_={},
            )
            self.session.add(track)
        elif track.status_enum == GenerationStatus.FAILED:
            track.reset_for_retry()

        track.transition_to(GenerationStatus.PROCESSING)
        self.session.commit()

        try:
            with tempfile.TemporaryDirectory(prefix="bgm_track_") as tmp:
                suffix = Path(urlparse(variant.audio_url).path).suffix or ".mp3"
                downloaded = self.provider.download_audio(
                    variant.audio_url, Path(tmp) / f"track_{variant_index}{suffix}"
                )

                if variant.duration_seconds is not None:
                    duration = int(round(variant.duration_seconds))
                else:
                    duration = self.analyzer.analyze_duration(downloaded)

                stored = self.storage.store_file(downloaded, AssetKind.TRACK, track.id)

            metadata = {
                key: value for key, value in variant.to_metadata().items() if value
            }
            metadata["task_id"] = generation.task_id
            track.metadata_ = metadata
            track.duration_seconds = duration
            track.audio_file_path = str(stored.file_path)
            track.transition_to(GenerationStatus.COMPLETED)
            self.session.commit()
        except Exception as e:
            self.session.rollback()
            track.transition_to(GenerationStatus.FAILED)
            track.metadata_ = {**(track.metadata_ or {}), "error": str(e)}
            self.session.commit()
            logger.error(
                "music_track_failed",
                generation_id=str(generation.id),
                variant_index=variant_index,
                error=str(e),
            )
            raise

        logger.info(
            "music_track_created",
            generation_id=str(generation.id),
            track_id=str(track.id),
            variant_index=variant_index,
            duration=track.duration_seconds,
            title=variant.title,
        )
        return track

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _load(self, generation_id: UUID) -> MusicGenerationModel:
        generation = self.session.get(MusicGenerationModel, generation_id)
        if generation is None:
            raise GenerationNotFoundError(f"Music generation not found: {generation_id}")
        return generation

    @staticmethod
    def _metadata(generation: MusicGenerationModel) -> dict[str, Any]:
        return dict(generation.metadata_ or {})

    def _fail(self, generation: MusicGenerationModel, message: str) -> None:
        metadata = self._metadata(generation)
        metadata["error"] = message
        metadata["status_history"] = [
            *metadata.get("status_history", []),
            {
                "status": f"{generation.status}_to_failed",
                "timestamp": _now(),
                "error": message,
            },
        ]
        generation.metadata_ = metadata
        generation.transition_to(GenerationStatus.FAILED)
        self.session.commit()

        logger.error(
            "music_generation_failed",
            generation_id=str(generation.id),
            error=message,
        )
