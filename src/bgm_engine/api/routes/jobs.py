"""Job management endpoints.

Each pipeline stage is triggered per content; the stages themselves run in
Celery workers and report progress through the records' status fields.
"""

from typing import Any
from uuid import UUID

from celery.result import AsyncResult
from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from bgm_engine.api.deps import ContentDep, SessionDep
from bgm_engine.db.models import ArtworkModel
from bgm_engine.jobs.derivative_pipeline import process_artwork_task
from bgm_engine.logging import get_logger
from bgm_engine.services.queueing import (
    MusicGenerationQueueingService,
    request_audio,
    request_video,
)
from bgm_engine.services.video_render import VideoPrerequisiteError
from bgm_engine.worker import celery_app

router = APIRouter(prefix="/jobs", tags=["Jobs"])
logger = get_logger(__name__)


class JobResponse(BaseModel):
    """Response when a Celery job is enqueued directly."""

    task_id: str
    status: str
    message: str


class QueuedRecordsResponse(BaseModel):
    """Response when pipeline records are created and their jobs enqueued."""

    content_id: str
    record_ids: list[str]
    status: str
    message: str


class JobStatusResponse(BaseModel):
    """Response with job status details."""

    task_id: str
    status: str
    result: dict[str, Any] | None = None
    error: str | None = None


class QueueMusicRequest(BaseModel):
    """Request to queue music generation for a content."""

    mode: str = Field(default="auto", pattern="^(auto|single|bulk)$")
    count: int = Field(default=5, ge=1, le=50, description="Number of requests in bulk mode")


@router.post(
    "/contents/{content_id}/music",
    response_model=QueuedRecordsResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Queue music generation",
    description=(
        "auto creates as many generation requests as the content's duration needs, "
        "single and bulk create a fixed number regardless of what already exists."
    ),
)
def trigger_music_generation(
    content: ContentDep,
    session: SessionDep,
    request: QueueMusicRequest | None = None,
) -> QueuedRecordsResponse:
    """Queue music generation requests for a content."""
    request = request or QueueMusicRequest()
    logger.info("music_generation_triggered", content_id=str(content.id), mode=request.mode)

    service = MusicGenerationQueueingService(session, content)
    if request.mode == "single":
        generations = [service.queue_single_generation()]
    elif request.mode == "bulk":
        generations = service.queue_bulk_generation(request.count)
    else:
        generations = service.queue_music_generations()

    return QueuedRecordsResponse(
        content_id=str(content.id),
        record_ids=[str(g.id) for g in generations],
        status="queued" if generations else "satisfied",
        message=f"{len(generations)} music generation(s) enqueued",
    )


@router.post(
    "/contents/{content_id}/audio",
    response_model=QueuedRecordsResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Compose audio",
    description="Enqueue track selection and concatenation for a content.",
)
def trigger_audio_composition(content: ContentDep, session: SessionDep) -> QueuedRecordsResponse:
    """Queue the audio stage for a content."""
    logger.info("audio_composition_triggered", content_id=str(content.id))

    audio = request_audio(session, content)

    return QueuedRecordsResponse(
        content_id=str(content.id),
        record_ids=[str(audio.id)],
        status=audio.status,
        message="Audio composition enqueued" if audio.status == "pending" else "Audio already in progress or done",
    )


@router.post(
    "/contents/{content_id}/video",
    response_model=QueuedRecordsResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Render video",
    description="Enqueue the video render for a content with completed audio and artwork.",
)
def trigger_video_render(content: ContentDep, session: SessionDep) -> QueuedRecordsResponse:
    """Queue the video render for a content."""
    logger.info("video_render_triggered", content_id=str(content.id))

    try:
        video = request_video(session, content)
    except VideoPrerequisiteError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e

    return QueuedRecordsResponse(
        content_id=str(content.id),
        record_ids=[str(video.id)],
        status=video.status,
        message="Video render enqueued" if video.status == "pending" else "Video already in progress or done",
    )


@router.post(
    "/artworks/{artwork_id}/thumbnail",
    response_model=JobResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Generate thumbnail",
    description="Enqueue YouTube thumbnail generation for an artwork.",
)
def trigger_thumbnail(artwork_id: UUID, session: SessionDep) -> JobResponse:
    """Queue thumbnail generation for an artwork."""
    if session.get(ArtworkModel, artwork_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Artwork not found: {artwork_id}",
        )

    logger.info("thumbnail_triggered", artwork_id=str(artwork_id))
    task = process_artwork_task.delay(str(artwork_id))

    return JobResponse(
        task_id=task.id,
        status="queued",
        message="Thumbnail generation job enqueued successfully",
    )


@router.get(
    "/{task_id}",
    response_model=JobStatusResponse,
    summary="Get job status",
    description="Get the status of a Celery job by task ID.",
)
async def get_job_status(task_id: str) -> JobStatusResponse:
    """Get the status of a job."""
    result = AsyncResult(task_id, app=celery_app)

    response = JobStatusResponse(
        task_id=task_id,
        status=result.state,
    )

    if result.ready():
        if result.successful():
            value = result.result
            response.result = value if isinstance(value, dict) else {"value": value}
        else:
            response.error = str(result.result)

    return response
