"""Celery worker configuration."""

from celery import Celery

from bgm_engine.config import settings
from bgm_engine.logging import setup_logging

# Setup logging before anything else
setup_logging()

# Create Celery app
celery_app = Celery(
    "bgm_engine",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

# Celery configuration
celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    # Task execution
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=600,  # 10 minutes max (render and blocking tasks override)
    task_soft_time_limit=540,
    # Worker settings
    worker_prefetch_multiplier=1,
    worker_concurrency=4,
    # Result backend
    result_expires=86400,  # 24 hours
    # Task routing
    task_routes={
        "music.generate_music": {"queue": "default"},
        "music.generate_music_blocking": {"queue": "default"},
        "audio.compose_audio": {"queue": "default"},
        "derivatives.process_artwork": {"queue": "low"},
        # Long ffmpeg renders get their own queue so they never starve polling jobs
        "video.render_video": {"queue": "render"},
    },
)

# Auto-discover tasks
celery_app.autodiscover_tasks(["bgm_engine.jobs"])
