"""Database layer."""

from bgm_engine.db.models import (
    ArtworkModel,
    AudioModel,
    Base,
    ContentModel,
    MusicGenerationModel,
    TrackModel,
    VideoModel,
)
from bgm_engine.db.session import get_session, get_session_context, init_db

__all__ = [
    "Base",
    "get_session",
    "get_session_context",
    "init_db",
    # Models
    "ArtworkModel",
    "AudioModel",
    "ContentModel",
    "MusicGenerationModel",
    "TrackModel",
    "VideoModel",
]
