"""Selecting tracks whose combined duration fits a target window."""

import random
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from bgm_engine.config import settings
from bgm_engine.db.models import ContentModel, TrackModel
from bgm_engine.domain.enums import GenerationStatus
from bgm_engine.logging import get_logger

logger = get_logger(__name__)


class InsufficientTracksError(Exception):
    """Not enough track duration is available to reach the target."""

    def __init__(self, message: str, available: int = 0, required: int = 0) -> None:
        super().__init__(message)
        self.available = available
        self.required = required


class HasDuration(Protocol):
    duration_seconds: int | None


TrackT = TypeVar("TrackT", bound=HasDuration)


@dataclass
class CompositionResult:
    """Ordered selection of tracks and its totals."""

    selected_tracks: list = field(default_factory=list)
    total_duration: int = 0
    target_duration: int = 0
    available_count: int = 0

    @property
    def tracks_used(self) -> int:
        return len(self.selected_tracks)

    def to_metadata(self) -> dict:
        """Summary recorded on the audio program (track objects replaced by ids)."""
        return {
            "selected_track_ids": [str(track.id) for track in self.selected_tracks],
            "total_duration": self.total_duration,
            "tracks_used": self.tracks_used,
            "target_duration": self.target_duration,
        }


def select_tracks(
    pool: Sequence[TrackT],
    target_seconds: int,
    tolerance_seconds: int,
    rng: random.Random | None = None,
) -> CompositionResult:
    """Pick tracks in random order until their total lands in the target window.

    The window is ``[target_seconds, target_seconds + tolerance_seconds]``. Tracks
    are accumulated greedily after a shuffle; the selection stops as soon as the
    total reaches the window. If the last addition overshoots the upper bound and
    more than one track is held, that track is dropped before stopping, so the
    result may then fall short of the target. A single track longer than the whole
    window is kept on its own.

    Raises:
        InsufficientTracksError: The pool is empty, its total is below the target,
            or it ran out before the target was reached
    """
    if not pool:
        raise InsufficientTracksError(
            "No completed tracks available", available=0, required=target_seconds
        )

    total_available = sum(track.duration_seconds or 0 for track in pool)
    if total_available < target_seconds:
        raise InsufficientTracksError(
            f"Insufficient total track duration: {total_available}s available, "
            f"{target_seconds}s needed",
            available=total_available,
            required=target_seconds,
        )

    upper_bound = target_seconds + tolerance_seconds
    candidates = list(pool)
    (rng or random).shuffle(candidates)

    selected: list[TrackT] = []
    total = 0
    reached = False
    for track in candidates:
        selected.append(track)
        total += track.duration_seconds or 0

        if total < target_seconds:
            continue

        reached = True
        if total > upper_bound and len(selected) > 1:
            dropped = selected.pop()
            total -= dropped.duration_seconds or 0
        break

    if not reached:
        raise InsufficientTracksError(
            f"Insufficient track duration after selection: {total}s selected, "
            f"{target_seconds}s needed",
            available=total,
            required=target_seconds,
        )

    return CompositionResult(
        selected_tracks=selected,
        total_duration=total,
        target_duration=target_seconds,
        available_count=len(candidates),
    )


class AudioCompositionService:
    """Builds a composition from a content's completed tracks."""

    def __init__(
        self,
        session: Session,
        tolerance_seconds: int | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.session = session
        self.tolerance_seconds = (
            tolerance_seconds
            if tolerance_seconds is not None
            else settings.track_composition_tolerance_seconds
        )
        self.rng = rng

    def available_tracks(self, content_id: UUID) -> list[TrackModel]:
        """Completed tracks with a known duration; the rest can't be budgeted."""
        return list(
            self.session.execute(
                select(TrackModel)
                .where(
                    TrackModel.content_id == content_id,
                    TrackModel.status == GenerationStatus.COMPLETED.value,
                    TrackModel.duration_seconds.is_not(None),
                )
                .order_by(TrackModel.created_at)
            )
            .scalars()
            .all()
        )

    def select_for(self, content: ContentModel) -> CompositionResult:
        pool = self.available_tracks(content.id)
        result = select_tracks(
            pool,
            target_seconds=content.duration_seconds,
            tolerance_seconds=self.tolerance_seconds,
            rng=self.rng,
        )

        logger.info(
            "audio_composition_selected",
            content_id=str(content.id),
            tracks_used=result.tracks_used,
            total_duration=result.total_duration,
            target_duration=result.target_duration,
            available=result.available_count,
        )
        return result
