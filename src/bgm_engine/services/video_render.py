"""Video stage: mux the completed audio program with the artwork image."""

import tempfile
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from bgm_engine.db.models import ContentModel, VideoModel
from bgm_engine.domain.enums import AssetKind, GenerationStatus
from bgm_engine.logging import get_logger
from bgm_engine.services.concurrency import RenderSlotLimiter, RenderSlotUnavailableError
from bgm_engine.services.storage import StorageService
from bgm_engine.services.video_generation import VideoGenerationError, VideoGenerationService

logger = get_logger(__name__)

AUDIO_NOT_READY = "Audio must be completed before generating video"
ARTWORK_MISSING = "Artwork must be set before generating video"


class VideoNotFoundError(LookupError):
    """The video record no longer exists."""


class VideoPrerequisiteError(Exception):
    """The content is not ready to be rendered."""


@dataclass
class VideoOutcome:
    video_id: UUID
    status: GenerationStatus
    action: str
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "video_id": str(self.video_id),
            "status": self.status.value,
            "action": self.action,
            "error": self.error,
        }


def check_prerequisites(content: ContentModel) -> None:
    """Raise VideoPrerequisiteError unless the audio is completed and artwork is present."""
    audio = content.audio
    if audio is None or audio.status_enum != GenerationStatus.COMPLETED or not audio.audio_file_path:
        raise VideoPrerequisiteError(AUDIO_NOT_READY)

    artwork = content.artwork
    if artwork is None or not artwork.has_image:
        raise VideoPrerequisiteError(ARTWORK_MISSING)


class VideoRenderService:
    """Renders one Video record under the cluster-wide render slot limit."""

    def __init__(
        self,
        session: Session,
        limiter: RenderSlotLimiter,
        generator: VideoGenerationService | None = None,
        storage: StorageService | None = None,
    ) -> None:
        self.session = session
        self.limiter = limiter
        self.generator = generator or VideoGenerationService()
        self.storage = storage or StorageService()

    def render(self, video_id: UUID) -> VideoOutcome:
        """Render the video, or report why it could not run yet.

        Returns an outcome with action ``deferred`` when no render slot was free;
        the video stays pending and the caller is expected to retry later.
        """
        video = self.session.get(VideoModel, video_id)
        if video is None:
            raise VideoNotFoundError(f"Video not found: {video_id}")

        if video.is_terminal:
            logger.info("video_render_already_terminal", video_id=str(video_id), status=video.status)
            return VideoOutcome(video.id, video.status_enum, "skipped")

        if video.status_enum == GenerationStatus.PROCESSING:
            logger.info("video_render_in_progress", video_id=str(video_id))
            return VideoOutcome(video.id, video.status_enum, "in_progress")

        try:
            check_prerequisites(video.content)
        except VideoPrerequisiteError as e:
            return self._fail(video, str(e))

        try:
            lock = self.limiter.acquire()
        except RenderSlotUnavailableError as e:
            logger.info("video_render_deferred", video_id=str(video_id), reason=str(e))
            return VideoOutcome(video.id, video.status_enum, "deferred", error=str(e))

        try:
            return self._render(video)
        finally:
            self.limiter.release(lock)

    def mark_failed(self, video_id: UUID, message: str) -> bool:
        video = self.session.get(VideoModel, video_id)
        if video is None or video.is_terminal:
            return False
        self._fail(video, message)
        return True

    def _render(self, video: VideoModel) -> VideoOutcome:
        audio = video.content.audio
        artwork = video.content.artwork

        video.transition_to(GenerationStatus.PROCESSING)
        video.started_at = datetime.now(UTC)
        self.session.commit()

        logger.info("video_render_started", video_id=str(video.id), content_id=str(video.content_id))

        try:
            with tempfile.TemporaryDirectory(prefix="bgm_video_") as tmp:
                workdir = Path(tmp)
                audio_path = self.storage.fetch_to(
                    audio.audio_file_path,
                    workdir / f"audio{Path(audio.audio_file_path).suffix or '.mp3'}",
                )
                image_path = self.storage.fetch_to(
                    artwork.image_file_path,
                    workdir / f"artwork{Path(artwork.image_file_path).suffix or '.jpg'}",
                )

                output = self.generator.generate(
                    image_path, audio_path, workdir / f"video_{video.id}.mp4"
                )
                file_size = output.stat().st_size
                stored = self.storage.store_file(output, AssetKind.VIDEO, video.id, move=True)
        except VideoGenerationError as e:
            if e.stderr:
                logger.error("video_render_ffmpeg_stderr", video_id=str(video.id), stderr=e.stderr[-2000:])
            return self._fail(video, f"Video generation failed: {e}")
        except FileNotFoundError as e:
            return self._fail(video, f"Video generation failed: {e}")

        video.video_file_path = str(stored.file_path)
        video.file_size_bytes = file_size
        video.resolution = self.generator.profile.resolution
        if audio.duration_seconds is not None:
            video.duration_seconds = int(audio.duration_seconds)
        video.transition_to(GenerationStatus.COMPLETED)
        video.completed_at = datetime.now(UTC)
        self.session.commit()

        logger.info(
            "video_render_completed",
            video_id=str(video.id),
            file_size=file_size,
            duration=video.duration_seconds,
        )
        return VideoOutcome(video.id, video.status_enum, "completed")

    def _fail(self, video: VideoModel, message: str) -> VideoOutcome:
        video.error_message = message
        video.transition_to(GenerationStatus.FAILED)
        self.session.commit()
        logger.error("video_render_failed", video_id=str(video.id), error=message)
        return VideoOutcome(video.id, video.status_enum, "failed", error=message)
