"""Creating pipeline work for a content and handing it to the job queue."""

import math
from collections.abc import Callable
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from bgm_engine.config import settings
from bgm_engine.db.models import AudioModel, ContentModel, MusicGenerationModel, VideoModel
from bgm_engine.domain.enums import GenerationStatus
from bgm_engine.logging import get_logger
from bgm_engine.services.video_render import check_prerequisites

logger = get_logger(__name__)

Enqueue = Callable[[str], Any]


def _enqueue_music(generation_id: str) -> Any:
    from bgm_engine.jobs.music_pipeline import generate_music_task

    return generate_music_task.delay(generation_id)


def _enqueue_audio(audio_id: str) -> Any:
    from bgm_engine.jobs.audio_pipeline import compose_audio_task

    return compose_audio_task.delay(audio_id)


def _enqueue_video(video_id: str) -> Any:
    from bgm_engine.jobs.video_pipeline import render_video_task

    return render_video_task.delay(video_id)


class MusicGenerationQueueingService:
    """Work out how many generation requests a content needs and queue them."""

    def __init__(self, session: Session, content: ContentModel, enqueue: Enqueue | None = None) -> None:
        self.session = session
        self.content = content
        self.enqueue = enqueue or _enqueue_music

    @staticmethod
    def calculate_generation_count(duration_seconds: int) -> int:
        """Requests needed to cover ``duration_seconds`` (each yields ~2 x 240s)."""
        per_generation = settings.average_track_duration_seconds * settings.tracks_per_generation
        return math.ceil(duration_seconds / per_generation)

    @property
    def required_count(self) -> int:
        return self.calculate_generation_count(self.content.duration_seconds)

    @property
    def existing_count(self) -> int:
        """Requests that are done or still able to finish; failed ones don't count."""
        return self.session.execute(
            select(func.count())
            .select_from(MusicGenerationModel)
            .where(
                MusicGenerationModel.content_id == self.content.id,
                MusicGenerationModel.status != GenerationStatus.FAILED.value,
            )
        ).scalar_one()

    def queue_music_generations(self) -> list[MusicGenerationModel]:
        missing = self.required_count - self.existing_count
        if missing <= 0:
            logger.info(
                "music_generation_queue_satisfied",
                content_id=str(self.content.id),
                required=self.required_count,
            )
            return []
        return [self._create_generation() for _ in range(missing)]

    def queue_single_generation(self) -> MusicGenerationModel:
        return self._create_generation()

    def queue_bulk_generation(self, count: int = 5) -> list[MusicGenerationModel]:
        return [self._create_generation() for _ in range(count)]

    def _create_generation(self) -> MusicGenerationModel:
        generation = MusicGenerationModel(
            content_id=self.content.id,
            prompt=self.content.audio_prompt,
            generation_model=settings.music_model,
            status=GenerationStatus.PENDING.value,
            metadata_={},
        )
        self.session.add(generation)
        self.session.commit()

        self.enqueue(str(generation.id))
        logger.info(
            "music_generation_queued",
            content_id=str(self.content.id),
            generation_id=str(generation.id),
        )
        return generation


def request_audio(session: Session, content: ContentModel, enqueue: Enqueue | None = None) -> AudioModel:
    """Create (or re-arm a failed) Audio for the content and queue the audio stage."""
    audio = content.audio
    if audio is None:
        audio = AudioModel(content_id=content.id, status=GenerationStatus.PENDING.value, metadata_={})
        session.add(audio)
        content.audio = audio
    elif audio.status_enum == GenerationStatus.FAILED:
        audio.reset_for_retry()
        audio.metadata_ = {}
    elif audio.status_enum != GenerationStatus.PENDING:
        logger.info("audio_request_ignored", content_id=str(content.id), status=audio.status)
        return audio

    session.commit()
    (enqueue or _enqueue_audio)(str(audio.id))
    logger.info("audio_queued", content_id=str(content.id), audio_id=str(audio.id))
    return audio


def request_video(session: Session, content: ContentModel, enqueue: Enqueue | None = None) -> VideoModel:
    """Create (or re-arm a failed) Video for the content and queue the render.

    Raises:
        VideoPrerequisiteError: Audio isn't completed or artwork is missing
    """
    check_prerequisites(content)

    video = content.video
    if video is None:
        video = VideoModel(content_id=content.id, status=GenerationStatus.PENDING.value)
        session.add(video)
        content.video = video
    elif video.status_enum == GenerationStatus.FAILED:
        video.reset_for_retry()
        video.error_message = None
    elif video.status_enum != GenerationStatus.PENDING:
        logger.info("video_request_ignored", content_id=str(content.id), status=video.status)
        return video

    session.commit()
    (enqueue or _enqueue_video)(str(video.id))
    logger.info("video_queued", content_id=str(content.id), video_id=str(video.id))
    return video
