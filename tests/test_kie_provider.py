"""Tests for the Kie.ai music generation provider."""

import json

import httpx
import pytest

from bgm_engine.adapters.music_gen.base import MusicGenRequest
from bgm_engine.adapters.music_gen.errors import (
    ApiError,
    AuthenticationError,
    ConfigurationError,
    InsufficientCreditsError,
    NetworkError,
    RateLimitError,
)
from bgm_engine.adapters.music_gen.kie import KieProvider
from bgm_engine.domain.enums import TaskState


def make_provider(handler, **kwargs) -> KieProvider:
    """Provider wired to an in-process transport; retries never sleep."""
    return KieProvider(
        api_key="test-key",
        base_url="https://api.kie.test",
        transport=httpx.MockTransport(handler),
        sleep=lambda _: None,
        **kwargs,
    )


def request() -> MusicGenRequest:
    return MusicGenRequest(prompt="Calm piano lo-fi", model="V4_5PLUS")


class TestKieSubmit:
    """Tests for task submission."""

    def test_submit_returns_task_id(self):
        """Test the request body and auth header sent to the API."""
        seen = {}

        def handler(req: httpx.Request) -> httpx.Response:
            seen["path"] = req.url.path
            seen["auth"] = req.headers["Authorization"]
            seen["body"] = json.loads(req.content)
            return httpx.Response(200, json={"code": 200, "msg": "success", "data": {"taskId": "abc123"}})

        provider = make_provider(handler)

        assert provider.submit(request()) == "abc123"
        assert seen["path"] == "/api/v1/generate"
        assert seen["auth"] == "Bearer test-key"
        assert seen["body"]["instrumental"] is True
        assert seen["body"]["customMode"] is False
        assert seen["body"]["model"] == "V4_5PLUS"

    def test_missing_api_key(self):
        """Test a missing key is a configuration error, not an API error."""
        provider = KieProvider(api_key="", transport=httpx.MockTransport(lambda r: httpx.Response(200)))

        with pytest.raises(ConfigurationError):
            provider.submit(request())

    @pytest.mark.parametrize("prompt", ["", "   ", "x" * 3001])
    def test_invalid_prompt(self, prompt):
        provider = make_provider(lambda r: httpx.Response(200))

        with pytest.raises(ValueError):
            provider.submit(MusicGenRequest(prompt=prompt, model="V4_5PLUS"))

    def test_missing_task_id(self):
        provider = make_provider(lambda r: httpx.Response(200, json={"code": 200, "data": {}}))

        with pytest.raises(ApiError, match="No task id"):
            provider.submit(request())


class TestKieErrors:
    """Tests for HTTP and in-band error mapping."""

    @pytest.mark.parametrize(
        "status_code,error_type,message",
        [
            (401, AuthenticationError, "Authentication failed. Check your API key"),
            (402, InsufficientCreditsError, "Insufficient credits"),
            (404, ApiError, "Not found"),
            (400, ApiError, "Client error"),
            (502, ApiError, "Server error"),
        ],
    )
    def test_http_status_mapping(self, status_code, error_type, message):
        provider = make_provider(
            lambda r: httpx.Response(status_code, json={"msg": "nope"}), max_attempts=1
        )

        with pytest.raises(error_type, match=message) as exc_info:
            provider.submit(request())

        assert exc_info.value.status_code == status_code

    @pytest.mark.parametrize(
        "code,error_type",
        [(401, AuthenticationError), (402, InsufficientCreditsError), (429, RateLimitError), (500, ApiError)],
    )
    def test_in_band_code_mapping(self, code, error_type):
        """Test errors reported as a code field on an HTTP 200 response."""
        provider = make_provider(
            lambda r: httpx.Response(200, json={"code": code, "msg": "problem"}), max_attempts=1
        )

        with pytest.raises(error_type, match="API error: problem"):
            provider.submit(request())

    def test_rate_limit_retried_then_succeeds(self):
        """Test rate limits are retried inline before surfacing."""
        calls = []

        def handler(req: httpx.Request) -> httpx.Response:
            calls.append(req)
            if len(calls) < 3:
                return httpx.Response(429)
            return httpx.Response(200, json={"code": 200, "data": {"taskId": "late"}})

        provider = make_provider(handler, max_attempts=3)

        assert provider.submit(request()) == "late"
        assert len(calls) == 3

    def test_network_error_exhausts_retries(self):
        calls = []

        def handler(req: httpx.Request) -> httpx.Response:
            calls.append(req)
            raise httpx.ConnectError("connection refused", request=req)

        provider = make_provider(handler, max_attempts=2)

        with pytest.raises(NetworkError):
            provider.submit(request())
        assert len(calls) == 2

    def test_authentication_error_not_retried(self):
        calls = []

        def handler(req: httpx.Request) -> httpx.Response:
            calls.append(req)
            return httpx.Response(401)

        provider = make_provider(handler, max_attempts=3)

        with pytest.raises(AuthenticationError):
            provider.submit(request())
        assert len(calls) == 1


class TestKieStatus:
    """Tests for status parsing."""

    def test_success_with_variants(self):
        """Test completed tasks expose their variants; entries without audio are dropped."""

        def handler(req: httpx.Request) -> httpx.Response:
            assert req.url.path == "/api/v1/generate/record-info"
            assert req.url.params["taskId"] == "abc123"
            return httpx.Response(
                200,
                json={
                    "code": 200,
                    "data": {
                        "taskId": "abc123",
                        "status": "SUCCESS",
                        "response": {
                            "sunoData": [
                                {
                                    "audioUrl": "https://cdn.kie.test/a.mp3",
                                    "title": "Night Drive",
                                    "tags": "lofi",
                                    "duration": 182.4,
                                    "modelName": "chirp-v4",
                                    "id": "a1",
                                },
                                {"audioUrl": "", "title": "broken"},
                            ]
                        },
                    },
                },
            )

        status = make_provider(handler).get_status("abc123")

        assert status.state == TaskState.SUCCEEDED
        assert len(status.variants) == 1
        variant = status.variants[0]
        assert variant.title == "Night Drive"
        assert variant.duration_seconds == 182.4
        assert variant.audio_id == "a1"

    def test_failed_status_message(self):
        provider = make_provider(
            lambda r: httpx.Response(
                200,
                json={"code": 200, "data": {"status": "CREATE_TASK_FAILED", "errorMessage": "Prompt rejected"}},
            )
        )

        status = provider.get_status("abc123")

        assert status.state == TaskState.FAILED
        assert status.error_message == "Prompt rejected"
        assert status.variants == []

    def test_running_and_unrecognized(self):
        statuses = iter(["TEXT_SUCCESS", "WARMING_UP"])
        provider = make_provider(
            lambda r: httpx.Response(200, json={"code": 200, "data": {"status": next(statuses)}})
        )

        assert provider.get_status("abc").state == TaskState.RUNNING
        unknown = provider.get_status("abc")
        assert unknown.state == TaskState.UNRECOGNIZED
        assert unknown.is_running

    def test_blank_task_id(self):
        with pytest.raises(ValueError):
            make_provider(lambda r: httpx.Response(200)).get_status("  ")


class TestKieDownload:
    """Tests for variant audio downloads."""

    def test_download_writes_file(self, tmp_path):
        provider = make_provider(lambda r: httpx.Response(200, content=b"ID3audio-bytes"))

        path = provider.download_audio("https://cdn.kie.test/a.mp3", tmp_path / "out" / "a.mp3")

        assert path.read_bytes() == b"ID3audio-bytes"

    def test_download_http_error(self, tmp_path):
        provider = make_provider(lambda r: httpx.Response(403), max_attempts=1)

        with pytest.raises(NetworkError, match="HTTP 403"):
            provider.download_audio("https://cdn.kie.test/a.mp3", tmp_path / "a.mp3")
