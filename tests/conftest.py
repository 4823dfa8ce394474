"""Pytest configuration and fixtures."""

import os
import tempfile
from collections.abc import Callable, Generator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

# Set test environment before importing app modules
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REDIS_URL"] = "redis://localhost:6379/1"
os.environ["CELERY_BROKER_URL"] = "redis://localhost:6379/1"
os.environ["CELERY_RESULT_BACKEND"] = "redis://localhost:6379/1"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["STORAGE_PATH"] = tempfile.mkdtemp(prefix="bgm_test_storage_")
os.environ["MUSIC_GEN_PROVIDER"] = "stub"
os.environ["KIE_API_KEY"] = ""

from bgm_engine.adapters.music_gen.base import (  # noqa: E402
    MusicGenProvider,
    MusicGenRequest,
    MusicVariant,
    TaskStatus,
)
from bgm_engine.domain.enums import TaskState  # noqa: E402


@pytest.fixture(scope="session")
def test_client() -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI app."""
    from bgm_engine.main import app

    with TestClient(app) as client:
        yield client


@pytest.fixture
def db_session():
    """Session on the in-memory SQLite database with every table created."""
    from bgm_engine.db.models import Base
    from bgm_engine.db.session import SessionLocal, engine

    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_context(db_session) -> Callable[[], Any]:
    """Stand-in for ``get_session_context`` that hands jobs the test session."""

    @contextmanager
    def _context():
        try:
            yield db_session
            db_session.commit()
        except Exception:
            db_session.rollback()
            raise

    return _context


@pytest.fixture
def storage(tmp_path):
    """Storage service rooted in the test's temporary directory."""
    from bgm_engine.services.storage import StorageService

    return StorageService(base_path=tmp_path / "storage")


@pytest.fixture
def make_content(db_session):
    """Factory for persisted contents."""
    from bgm_engine.db.models import ContentModel

    def _make(
        duration_minutes: int = 60,
        theme: str = "Rainy night study session",
        audio_prompt: str = "Mellow lo-fi beat with soft rain and vinyl crackle",
    ):
        content = ContentModel(
            theme=theme,
            duration_minutes=duration_minutes,
            audio_prompt=audio_prompt,
        )
        db_session.add(content)
        db_session.commit()
        return content

    return _make


@pytest.fixture
def make_track(db_session, tmp_path):
    """Factory for tracks; completed tracks get a small audio file on disk."""
    from bgm_engine.db.models import TrackModel

    def _make(content, duration_seconds: int | None = 180, status: str = "completed"):
        track = TrackModel(
            content_id=content.id,
            variant_index=0,
            status=status,
            duration_seconds=duration_seconds,
            metadata_={},
        )
        db_session.add(track)
        db_session.flush()

        if status == "completed":
            audio_dir = tmp_path / "track_files"
            audio_dir.mkdir(exist_ok=True)
            path = audio_dir / f"{track.id}.mp3"
            path.write_bytes(b"ID3" + bytes(64))
            track.audio_file_path = str(path)

        db_session.commit()
        return track

    return _make


@pytest.fixture
def artwork_image(tmp_path) -> Callable[..., Path]:
    """Factory writing a solid-color image of the given size."""
    from PIL import Image

    def _make(size: tuple[int, int] = (1920, 1080), name: str = "artwork.png") -> Path:
        path = tmp_path / name
        Image.new("RGB", size, color=(40, 60, 90)).save(path)
        return path

    return _make


class ScriptedMusicGenProvider(MusicGenProvider):
    """Provider that replays a fixed sequence of task statuses."""

    def __init__(
        self,
        script: list[str] | None = None,
        durations: tuple[float | None, ...] = (120.0, 125.0),
        error_message: str | None = None,
        failing_downloads: set[int] | None = None,
    ) -> None:
        self.script = list(script or ["SUCCESS"])
        self.durations = durations
        self.error_message = error_message
        self.failing_downloads = failing_downloads or set()
        self.submitted: list[MusicGenRequest] = []
        self.status_calls = 0
        self.downloads: list[str] = []

    @property
    def name(self) -> str:
        return "scripted"

    def submit(self, request: MusicGenRequest) -> str:
        self.submitted.append(request)
        return "task-123"

    def get_status(self, task_id: str) -> TaskStatus:
        from bgm_engine.adapters.music_gen.base import classify_status

        index = min(self.status_calls, len(self.script) - 1)
        self.status_calls += 1
        raw = self.script[index]
        state = classify_status(raw)

        variants = []
        if state == TaskState.SUCCEEDED:
            variants = [
                MusicVariant(
                    audio_url=f"https://cdn.example.com/{task_id}/{i}.mp3",
                    title=f"Variant {i + 1}",
                    tags="lofi, chill",
                    duration_seconds=duration,
                    model_name="chirp-v4",
                    prompt="generated prompt",
                    audio_id=f"audio-{i}",
                )
                for i, duration in enumerate(self.durations)
            ]

        return TaskStatus(
            task_id=task_id,
            raw_status=raw,
            state=state,
            variants=variants,
            error_message=self.error_message if state == TaskState.FAILED else None,
            raw_response={"taskId": task_id, "status": raw},
        )

    def download_audio(self, url: str, destination: Path) -> Path:
        from bgm_engine.adapters.music_gen.errors import NetworkError

        index = int(Path(url).stem)
        if index in self.failing_downloads:
            raise NetworkError(f"Failed to download audio: HTTP 503 ({url})", status_code=503)

        self.downloads.append(url)
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(b"ID3" + url.encode())
        return destination


@pytest.fixture
def scripted_provider() -> Callable[..., ScriptedMusicGenProvider]:
    """Factory for scripted generation providers."""
    return ScriptedMusicGenProvider
