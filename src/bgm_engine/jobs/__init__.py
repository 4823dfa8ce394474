"""Celery job definitions."""

from bgm_engine.jobs.audio_pipeline import compose_audio_task
from bgm_engine.jobs.derivative_pipeline import process_artwork_task
from bgm_engine.jobs.music_pipeline import generate_music_blocking_task, generate_music_task
from bgm_engine.jobs.video_pipeline import render_video_task

__all__ = [
    # Music
    "generate_music_task",
    "generate_music_blocking_task",
    # Audio
    "compose_audio_task",
    # Video
    "render_video_task",
    # Derivatives
    "process_artwork_task",
]
