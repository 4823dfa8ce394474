"""Stub music generation provider for local runs and testing."""

from pathlib import Path
from uuid import uuid4

from bgm_engine.adapters.music_gen.base import (
    MusicGenProvider,
    MusicGenRequest,
    MusicVariant,
    TaskStatus,
)
from bgm_engine.domain.enums import TaskState
from bgm_engine.logging import get_logger

logger = get_logger(__name__)


class StubMusicGenProvider(MusicGenProvider):
    """Stub provider whose tasks complete on the first status check with two variants."""

    def __init__(self, variant_durations: tuple[float, ...] = (180.0, 200.0)) -> None:
        self.variant_durations = variant_durations
        self._prompts: dict[str, str] = {}

    @property
    def name(self) -> str:
        return "stub"

    def submit(self, request: MusicGenRequest) -> str:
        task_id = f"stub-{uuid4().hex[:12]}"
        self._prompts[task_id] = request.prompt
        logger.info("stub_music_generation_submitted", task_id=task_id, prompt=request.prompt[:100])
        return task_id

    def get_status(self, task_id: str) -> TaskStatus:
        prompt = self._prompts.get(task_id, "")
        variants = [
            MusicVariant(
                audio_url=f"stub://{task_id}/{index}.mp3",
                title=f"Stub Track {index + 1}",
                tags="lofi, stub",
                duration_seconds=duration,
                model_name="stub",
                prompt=prompt,
                audio_id=f"{task_id}-{index}",
            )
            for index, duration in enumerate(self.variant_durations)
        ]
        return TaskStatus(
            task_id=task_id,
            raw_status="SUCCESS",
            state=TaskState.SUCCEEDED,
            variants=variants,
            raw_response={"taskId": task_id, "status": "SUCCESS"},
        )

    def download_audio(self, url: str, destination: Path) -> Path:
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(b"STUB_AUDIO_DATA_" + url.encode()[:100])
        return destination
