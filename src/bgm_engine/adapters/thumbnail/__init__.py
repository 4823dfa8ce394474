"""Thumbnail generation adapters."""

from bgm_engine.adapters.thumbnail.base import (
    ThumbnailGenerationError,
    ThumbnailGenerator,
    ThumbnailResult,
)
from bgm_engine.adapters.thumbnail.pillow import PillowThumbnailGenerator

__all__ = [
    "PillowThumbnailGenerator",
    "ThumbnailGenerationError",
    "ThumbnailGenerator",
    "ThumbnailResult",
]
