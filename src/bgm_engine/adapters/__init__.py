"""Adapters for external services."""

from bgm_engine.adapters.music_gen.base import MusicGenProvider
from bgm_engine.adapters.thumbnail.base import ThumbnailGenerator

__all__ = [
    "MusicGenProvider",
    "ThumbnailGenerator",
]
