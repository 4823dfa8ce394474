"""Video render Celery task.

Renders run under a cluster-wide slot limit held in Redis. When no slot frees
up within the wait budget the video stays pending and the task re-enqueues
itself after ``video_render_retry_countdown`` seconds.
"""

from typing import Any
from uuid import UUID

from bgm_engine.config import settings
from bgm_engine.db.session import get_session_context
from bgm_engine.logging import bind_job_context, get_logger
from bgm_engine.services.concurrency import RenderSlotLimiter
from bgm_engine.services.video_render import VideoNotFoundError, VideoRenderService
from bgm_engine.worker import celery_app

logger = get_logger(__name__)


def get_render_slot_limiter() -> RenderSlotLimiter:
    """Get a render slot limiter on the shared Redis instance."""
    return RenderSlotLimiter.from_settings()


@celery_app.task(
    bind=True,
    name="video.render_video",
    max_retries=0,
    time_limit=settings.ffmpeg_timeout + 300,
    soft_time_limit=settings.ffmpeg_timeout + 240,
)
def render_video_task(self: Any, video_id: str) -> dict[str, Any]:
    """Render one Video record.

    Args:
        video_id: UUID of the video record

    Returns:
        Dict with the resulting status and action
    """
    bind_job_context(task_id=self.request.id, video_id=video_id)
    logger.info("render_video_started")
    video_uuid = UUID(video_id)
    limiter = get_render_slot_limiter()

    try:
        with get_session_context() as session:
            outcome = VideoRenderService(session, limiter).render(video_uuid)
    except VideoNotFoundError:
        logger.warning("render_video_discarded", reason="video not found")
        return {"success": False, "video_id": video_id, "error": "Video not found"}
    except Exception as e:
        logger.exception("render_video_error", error=str(e))
        with get_session_context() as session:
            VideoRenderService(session, limiter).mark_failed(video_uuid, f"Job error: {e}")
        return {"success": False, "video_id": video_id, "error": str(e)}
    finally:
        limiter.close()

    if outcome.action == "deferred":
        countdown = settings.video_render_retry_countdown
        render_video_task.apply_async(args=[video_id], countdown=countdown)
        logger.info("render_video_requeued", countdown=countdown)
        return {"success": True, **outcome.to_dict()}

    logger.info("render_video_done", action=outcome.action, status=outcome.status)
    return {"success": outcome.error is None, **outcome.to_dict()}
