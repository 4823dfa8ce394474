"""Tests for health endpoints."""

from unittest.mock import patch

from fastapi.testclient import TestClient

from bgm_engine.config import settings


def test_health_endpoint(test_client: TestClient) -> None:
    """Test the basic health endpoint."""
    response = test_client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "version" in data
    assert set(data["components"]) == {"music_gen", "ffmpeg", "ffprobe"}
    # Tests run with the stub provider
    assert data["components"]["music_gen"] is False


def test_liveness_endpoint(test_client: TestClient) -> None:
    """Test the liveness probe endpoint."""
    response = test_client.get("/health/live")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "alive"


def test_root_endpoint(test_client: TestClient) -> None:
    """Test the root endpoint."""
    response = test_client.get("/")

    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "BGM Engine"
    assert "version" in data
    assert "docs" in data


def test_health_with_unset_tool_paths(test_client: TestClient) -> None:
    """Test unset ffmpeg/ffprobe paths fall back to looking up the binaries on PATH."""
    with (
        patch.object(settings, "ffmpeg_path", None),
        patch.object(settings, "ffprobe_path", None),
        patch("bgm_engine.api.routes.health.shutil.which", return_value="/usr/bin/tool") as which,
    ):
        response = test_client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["components"]["ffmpeg"] is True
    assert data["components"]["ffprobe"] is True
    which.assert_any_call("ffmpeg")
    which.assert_any_call("ffprobe")
