"""Application services."""

from bgm_engine.services.audio_analysis import AudioAnalysisService
from bgm_engine.services.audio_composition import (
    AudioCompositionService,
    CompositionResult,
    InsufficientTracksError,
    select_tracks,
)
from bgm_engine.services.audio_concatenation import AudioConcatenationService
from bgm_engine.services.audio_generation import AudioGenerationService
from bgm_engine.services.concurrency import RenderSlotLimiter
from bgm_engine.services.derivatives import DerivativeService
from bgm_engine.services.music_generation import MusicGenerationService
from bgm_engine.services.polling import TaskPoller
from bgm_engine.services.queueing import MusicGenerationQueueingService
from bgm_engine.services.storage import StorageService, StoredAsset
from bgm_engine.services.video_generation import VideoGenerationService
from bgm_engine.services.video_render import VideoRenderService

__all__ = [
    "AudioAnalysisService",
    "AudioCompositionService",
    "AudioConcatenationService",
    "AudioGenerationService",
    "CompositionResult",
    "DerivativeService",
    "InsufficientTracksError",
    "MusicGenerationQueueingService",
    "MusicGenerationService",
    "RenderSlotLimiter",
    "StorageService",
    "StoredAsset",
    "TaskPoller",
    "VideoGenerationService",
    "VideoRenderService",
    "select_tracks",
]
