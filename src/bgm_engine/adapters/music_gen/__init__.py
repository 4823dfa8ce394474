"""Music generation providers."""

from bgm_engine.adapters.music_gen.base import (
    MusicGenProvider,
    MusicGenRequest,
    MusicVariant,
    TaskStatus,
    classify_status,
)
from bgm_engine.adapters.music_gen.kie import KieProvider
from bgm_engine.adapters.music_gen.stub import StubMusicGenProvider

__all__ = [
    "KieProvider",
    "MusicGenProvider",
    "MusicGenRequest",
    "MusicVariant",
    "StubMusicGenProvider",
    "TaskStatus",
    "classify_status",
]
