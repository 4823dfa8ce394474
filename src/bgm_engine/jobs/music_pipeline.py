"""Music generation Celery tasks.

- generate_music: advances a generation request one state per invocation and
  re-enqueues itself with a countdown between status checks
- generate_music_blocking: deprecated; submits and polls in-process with backoff

Transport and vendor errors (ApiError family) are retried by Celery with
exponential backoff. Once the retry budget is spent the request is marked
failed. A missing API key is raised as-is and never retried; the request stays
pending so it can be re-run once configured.
"""

from typing import Any
from uuid import UUID

from bgm_engine.adapters.music_gen.base import MusicGenProvider
from bgm_engine.adapters.music_gen.errors import ApiError, ConfigurationError, RateLimitError
from bgm_engine.adapters.music_gen.kie import KieProvider
from bgm_engine.adapters.music_gen.stub import StubMusicGenProvider
from bgm_engine.config import settings
from bgm_engine.db.session import get_session_context
from bgm_engine.logging import bind_job_context, get_logger
from bgm_engine.services.music_generation import GenerationNotFoundError, MusicGenerationService
from bgm_engine.services.polling import YieldingFixedIntervalWait
from bgm_engine.worker import celery_app

logger = get_logger(__name__)

# Total attempts (first run included) per error class
RATE_LIMIT_ATTEMPTS = 5
API_ERROR_ATTEMPTS = 3
RETRY_BASE_DELAY = 30
RETRY_MAX_DELAY = 600


def get_music_gen_provider() -> MusicGenProvider:
    """Get the configured music generation provider."""
    provider = getattr(settings, "music_gen_provider", "kie").lower()

    if provider == "stub":
        return StubMusicGenProvider()
    else:
        return KieProvider()


def retry_attempts_for(exc: ApiError) -> int:
    return RATE_LIMIT_ATTEMPTS if isinstance(exc, RateLimitError) else API_ERROR_ATTEMPTS


def retry_countdown(retries: int) -> int:
    return min(RETRY_BASE_DELAY * (2**retries), RETRY_MAX_DELAY)


def _mark_failed(generation_id: UUID, provider: MusicGenProvider, message: str) -> None:
    with get_session_context() as session:
        MusicGenerationService(session, provider).mark_failed(generation_id, message)


def _run(task: Any, generation_id: str, blocking: bool) -> dict[str, Any]:
    generation_uuid = UUID(generation_id)
    provider = get_music_gen_provider()

    def reschedule(countdown: float) -> None:
        generate_music_task.apply_async(args=[generation_id], countdown=countdown)

    try:
        with get_session_context() as session:
            service = MusicGenerationService(session, provider)
            if blocking:
                outcome = service.run_blocking(generation_uuid)
            else:
                outcome = service.step(generation_uuid, YieldingFixedIntervalWait(reschedule))

    except ConfigurationError as e:
        logger.error("generate_music_not_configured", error=str(e))
        raise

    except GenerationNotFoundError:
        logger.warning("generate_music_discarded", reason="generation not found")
        return {"success": False, "generation_id": generation_id, "error": "Generation not found"}

    except ApiError as e:
        attempts = retry_attempts_for(e)
        if task.request.retries + 1 < attempts:
            countdown = retry_countdown(task.request.retries)
            logger.warning(
                "generate_music_retrying",
                error=str(e),
                error_type=type(e).__name__,
                retry=task.request.retries + 1,
                countdown=countdown,
            )
            raise task.retry(exc=e, countdown=countdown, max_retries=attempts - 1)

        logger.error("generate_music_retries_exhausted", error=str(e), attempts=attempts)
        _mark_failed(generation_uuid, provider, f"Job error: {e}")
        return {"success": False, "generation_id": generation_id, "error": str(e)}

    except Exception as e:
        logger.exception("generate_music_error", error=str(e))
        _mark_failed(generation_uuid, provider, f"Job error: {e}")
        return {"success": False, "generation_id": generation_id, "error": str(e)}

    finally:
        provider.close()

    logger.info("generate_music_step_done", action=outcome.action, status=outcome.status)
    return {"success": outcome.error is None, **outcome.to_dict()}


@celery_app.task(
    bind=True,
    name="music.generate_music",
    max_retries=RATE_LIMIT_ATTEMPTS - 1,
)
def generate_music_task(self: Any, generation_id: str) -> dict[str, Any]:
    """Advance one music generation request.

    Args:
        generation_id: UUID of the music generation request

    Returns:
        Dict describing the action taken and the resulting status
    """
    bind_job_context(task_id=self.request.id, generation_id=generation_id)
    logger.info("generate_music_started", retries=self.request.retries)
    return _run(self, generation_id, blocking=False)


@celery_app.task(
    bind=True,
    name="music.generate_music_blocking",
    max_retries=RATE_LIMIT_ATTEMPTS - 1,
    time_limit=settings.music_poller_max_wait_seconds + 300,
    soft_time_limit=settings.music_poller_max_wait_seconds + 240,
)
def generate_music_blocking_task(self: Any, generation_id: str) -> dict[str, Any]:
    """Deprecated: submit and poll in one invocation (holds the worker for minutes)."""
    bind_job_context(task_id=self.request.id, generation_id=generation_id)
    logger.info("generate_music_blocking_started", retries=self.request.retries)
    return _run(self, generation_id, blocking=True)
