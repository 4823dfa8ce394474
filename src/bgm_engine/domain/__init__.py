"""Domain types."""

from bgm_engine.domain.enums import AssetKind, DerivativeVariant, GenerationStatus, TaskState
from bgm_engine.domain.errors import InvalidStatusTransitionError

__all__ = [
    "AssetKind",
    "DerivativeVariant",
    "GenerationStatus",
    "InvalidStatusTransitionError",
    "TaskState",
]
