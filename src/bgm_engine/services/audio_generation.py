"""Audio stage: pick tracks for a content and concatenate them into one program."""

import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from bgm_engine.db.models import AudioModel, TrackModel
from bgm_engine.domain.enums import AssetKind, GenerationStatus
from bgm_engine.logging import get_logger
from bgm_engine.services.audio_analysis import AudioAnalysisService
from bgm_engine.services.audio_composition import (
    AudioCompositionService,
    CompositionResult,
    InsufficientTracksError,
)
from bgm_engine.services.audio_concatenation import (
    AudioConcatenationService,
    ConcatenationError,
)
from bgm_engine.services.storage import StorageService

logger = get_logger(__name__)


class AudioNotFoundError(LookupError):
    """The audio record no longer exists."""


@dataclass
class AudioOutcome:
    audio_id: UUID
    status: GenerationStatus
    action: str
    duration: int | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "audio_id": str(self.audio_id),
            "status": self.status.value,
            "action": self.action,
            "duration": self.duration,
            "error": self.error,
        }


class AudioGenerationService:
    """Runs composition and concatenation for one Audio record."""

    def __init__(
        self,
        session: Session,
        composer: AudioCompositionService | None = None,
        concatenator: AudioConcatenationService | None = None,
        analyzer: AudioAnalysisService | None = None,
        storage: StorageService | None = None,
    ) -> None:
        self.session = session
        self.composer = composer or AudioCompositionService(session)
        self.concatenator = concatenator or AudioConcatenationService()
        self.analyzer = analyzer or AudioAnalysisService()
        self.storage = storage or StorageService()

    def generate(self, audio_id: UUID) -> AudioOutcome:
        audio = self.session.get(AudioModel, audio_id)
        if audio is None:
            raise AudioNotFoundError(f"Audio not found: {audio_id}")

        if audio.is_terminal:
            logger.info("audio_generation_already_terminal", audio_id=str(audio_id), status=audio.status)
            return AudioOutcome(audio.id, audio.status_enum, "skipped")

        if audio.status_enum == GenerationStatus.PROCESSING:
            # Concatenation runs inside a single invocation; a second delivery
            # while the first is still working has nothing to do.
            logger.info("audio_generation_in_progress", audio_id=str(audio_id))
            return AudioOutcome(audio.id, audio.status_enum, "in_progress")

        logger.info("audio_generation_started", audio_id=str(audio_id))

        try:
            composition = self.composer.select_for(audio.content)
        except InsufficientTracksError as e:
            return self._fail(audio, f"Track selection failed: {e}")

        audio.metadata_ = {**(audio.metadata_ or {}), **composition.to_metadata()}
        audio.transition_to(GenerationStatus.PROCESSING)
        self.session.commit()

        try:
            stored_path, duration = self._concatenate(audio, composition)
        except (ConcatenationError, FileNotFoundError) as e:
            return self._fail(audio, f"Audio concatenation failed: {e}")

        audio.audio_file_path = stored_path
        audio.metadata_ = {**(audio.metadata_ or {}), "duration": duration}
        audio.transition_to(GenerationStatus.COMPLETED)
        self.session.commit()

        logger.info(
            "audio_generation_completed",
            audio_id=str(audio_id),
            duration=duration,
            tracks_used=composition.tracks_used,
        )
        return AudioOutcome(audio.id, audio.status_enum, "completed", duration=duration)

    def mark_failed(self, audio_id: UUID, message: str) -> bool:
        audio = self.session.get(AudioModel, audio_id)
        if audio is None or audio.is_terminal:
            return False
        self._fail(audio, message)
        return True

    def _concatenate(self, audio: AudioModel, composition: CompositionResult) -> tuple[str, int]:
        tracks: list[TrackModel] = composition.selected_tracks

        with tempfile.TemporaryDirectory(prefix="bgm_audio_") as tmp:
            workdir = Path(tmp)
            inputs = []
            for position, track in enumerate(tracks):
                if not track.audio_file_path:
                    raise FileNotFoundError(f"Track {track.id} has no stored audio")
                suffix = Path(track.audio_file_path).suffix or ".mp3"
                inputs.append(
                    self.storage.fetch_to(
                        track.audio_file_path, workdir / f"{position:03d}_{track.id}{suffix}"
                    )
                )

            output_suffix = inputs[0].suffix if inputs else ".mp3"
            output = self.concatenator.concatenate(inputs, workdir / f"audio_{audio.id}{output_suffix}")

            duration = self.analyzer.analyze_duration(output)
            if duration is None:
                # Stream copy keeps lengths intact, so the selected total is a safe fallback
                duration = composition.total_duration
                logger.warning(
                    "audio_duration_fallback", audio_id=str(audio.id), duration=duration
                )

            stored = self.storage.store_file(output, AssetKind.AUDIO, audio.id, move=True)

        return str(stored.file_path), duration

    def _fail(self, audio: AudioModel, message: str) -> AudioOutcome:
        audio.metadata_ = {**(audio.metadata_ or {}), "error": message}
        audio.transition_to(GenerationStatus.FAILED)
        self.session.commit()
        logger.error("audio_generation_failed", audio_id=str(audio.id), error=message)
        return AudioOutcome(audio.id, audio.status_enum, "failed", error=message)
