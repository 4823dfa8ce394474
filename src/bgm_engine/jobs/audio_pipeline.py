"""Audio composition Celery task.

Selects a subset of the content's completed tracks, concatenates them into a
single program and records the result on the Audio record. Composition
failures are recorded on the record itself, so the task is never retried.
"""

from typing import Any
from uuid import UUID

from bgm_engine.db.session import get_session_context
from bgm_engine.logging import bind_job_context, get_logger
from bgm_engine.services.audio_generation import AudioGenerationService, AudioNotFoundError
from bgm_engine.worker import celery_app

logger = get_logger(__name__)


@celery_app.task(bind=True, name="audio.compose_audio", max_retries=0)
def compose_audio_task(self: Any, audio_id: str) -> dict[str, Any]:
    """Compose and concatenate the audio program for one Audio record.

    Args:
        audio_id: UUID of the audio record

    Returns:
        Dict with the resulting status and action
    """
    bind_job_context(task_id=self.request.id, audio_id=audio_id)
    logger.info("compose_audio_started")
    audio_uuid = UUID(audio_id)

    try:
        with get_session_context() as session:
            outcome = AudioGenerationService(session).generate(audio_uuid)
    except AudioNotFoundError:
        logger.warning("compose_audio_discarded", reason="audio not found")
        return {"success": False, "audio_id": audio_id, "error": "Audio not found"}
    except Exception as e:
        logger.exception("compose_audio_error", error=str(e))
        with get_session_context() as session:
            AudioGenerationService(session).mark_failed(audio_uuid, f"Job error: {e}")
        return {"success": False, "audio_id": audio_id, "error": str(e)}

    logger.info("compose_audio_done", action=outcome.action, status=outcome.status)
    return {"success": outcome.error is None, **outcome.to_dict()}
