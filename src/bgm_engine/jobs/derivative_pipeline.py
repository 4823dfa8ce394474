"""Artwork derivative Celery task (YouTube thumbnail)."""

from typing import Any
from uuid import UUID

from bgm_engine.adapters.thumbnail.base import ThumbnailGenerationError
from bgm_engine.db.session import get_session_context
from bgm_engine.logging import bind_job_context, get_logger
from bgm_engine.services.derivatives import DerivativeService
from bgm_engine.worker import celery_app

logger = get_logger(__name__)

# Total attempts (first run included)
THUMBNAIL_ERROR_ATTEMPTS = 2
DEFAULT_ATTEMPTS = 3
RETRY_DELAY = 30


def retry_attempts_for(exc: Exception) -> int:
    return THUMBNAIL_ERROR_ATTEMPTS if isinstance(exc, ThumbnailGenerationError) else DEFAULT_ATTEMPTS


@celery_app.task(
    bind=True,
    name="derivatives.process_artwork",
    max_retries=DEFAULT_ATTEMPTS - 1,
)
def process_artwork_task(self: Any, artwork_id: str) -> dict[str, Any]:
    """Generate image derivatives for an artwork.

    Args:
        artwork_id: UUID of the artwork

    Returns:
        Dict with the action taken (generated, skipped, ineligible, discarded)
    """
    bind_job_context(task_id=self.request.id, artwork_id=artwork_id)
    logger.info("process_artwork_started", retries=self.request.retries)

    try:
        with get_session_context() as session:
            return DerivativeService(session).process(UUID(artwork_id))
    except Exception as e:
        attempts = retry_attempts_for(e)
        logger.warning(
            "process_artwork_error",
            error=str(e),
            error_type=type(e).__name__,
            retry=self.request.retries + 1,
            attempts=attempts,
        )
        # retry() re-raises ``e`` once max_retries is exceeded
        raise self.retry(exc=e, countdown=RETRY_DELAY * (self.request.retries + 1), max_retries=attempts - 1)
