"""Kie.ai music generation provider.

Kie.ai exposes a Suno-compatible asynchronous API:

- ``POST /api/v1/generate`` submits a task and returns ``data.taskId``
- ``GET /api/v1/generate/record-info?taskId=...`` returns the task status and,
  once finished, ``data.response.sunoData`` with one entry per variant

Errors come back either as HTTP status codes or in-band as a non-200 ``code``
field on an HTTP 200 response; both are mapped onto the same exceptions.
"""

import time
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

import httpx

from bgm_engine.adapters.music_gen.base import (
    MusicGenProvider,
    MusicGenRequest,
    MusicVariant,
    TaskStatus,
    classify_status,
)
from bgm_engine.adapters.music_gen.errors import (
    ApiError,
    AuthenticationError,
    ConfigurationError,
    InsufficientCreditsError,
    NetworkError,
    RateLimitError,
)
from bgm_engine.config import settings
from bgm_engine.domain.enums import TaskState
from bgm_engine.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class KieProvider(MusicGenProvider):
    """Music generation via the Kie.ai API."""

    GENERATE_PATH = "/api/v1/generate"
    STATUS_PATH = "/api/v1/generate/record-info"
    MAX_PROMPT_LENGTH = 3000
    DOWNLOAD_TIMEOUT = 300.0

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        max_attempts: int | None = None,
        retry_delay: float = 1.0,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.kie_api_key
        self.base_url = (base_url or settings.kie_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.kie_timeout
        self.max_attempts = max_attempts or settings.kie_request_attempts
        self.retry_delay = retry_delay
        self._transport = transport
        self._sleep = sleep
        self._client: httpx.Client | None = None

    @property
    def name(self) -> str:
        return "kie"

    @property
    def client(self) -> httpx.Client:
        if not self.api_key:
            raise ConfigurationError("KIE_API_KEY is not set")
        if self._client is None:
            self._client = httpx.Client(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                },
            )
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def submit(self, request: MusicGenRequest) -> str:
        self._validate_prompt(request.prompt)

        body: dict[str, Any] = {
            "prompt": request.prompt,
            "model": request.model,
            "instrumental": request.instrumental,
            "customMode": False,
            "wait_audio": False,
            "callBackUrl": request.callback_url or settings.music_callback_url,
        }

        logger.info("kie_generate_started", model=request.model, prompt=request.prompt[:100])

        payload = self._with_retry(lambda: self._request("POST", self.GENERATE_PATH, json=body))
        data = payload.get("data") or {}
        task_id = data.get("taskId") or data.get("task_id")
        if not task_id:
            raise ApiError("No task id returned from generation API", response_body=payload)

        logger.info("kie_generate_submitted", task_id=task_id)
        return str(task_id)

    def get_status(self, task_id: str) -> TaskStatus:
        if not task_id or not task_id.strip():
            raise ValueError("Task ID cannot be blank")

        payload = self._with_retry(
            lambda: self._request("GET", self.STATUS_PATH, params={"taskId": task_id})
        )
        return self._parse_status(task_id, payload)

    def download_audio(self, url: str, destination: Path) -> Path:
        if not url or not url.strip():
            raise ValueError("Audio URL cannot be blank")

        destination.parent.mkdir(parents=True, exist_ok=True)

        def _download() -> Path:
            try:
                with httpx.Client(
                    timeout=self.DOWNLOAD_TIMEOUT,
                    follow_redirects=True,
                    transport=self._transport,
                ) as client:
                    with client.stream("GET", url) as response:
                        if response.status_code != 200:
                            raise NetworkError(
                                f"Failed to download audio: HTTP {response.status_code}",
                                status_code=response.status_code,
                            )
                        with destination.open("wb") as fh:
                            for chunk in response.iter_bytes():
                                fh.write(chunk)
            except httpx.HTTPError as e:
                raise NetworkError(f"Download failed: {e}") from e
            return destination

        path = self._with_retry(_download)
        logger.info("kie_audio_downloaded", url=url[:100], size=path.stat().st_size)
        return path

    def health_check(self) -> bool:
        return bool(self.api_key)

    # -------------------------------------------------------------------------
    # Response handling
    # -------------------------------------------------------------------------

    def _parse_status(self, task_id: str, payload: dict[str, Any]) -> TaskStatus:
        data = payload.get("data")
        if not isinstance(data, dict):
            logger.warning("kie_unexpected_status_payload", task_id=task_id, payload_type=type(data).__name__)
            data = {}

        raw_status = str(data.get("status") or "")
        state = classify_status(raw_status)
        if state == TaskState.UNRECOGNIZED:
            logger.warning("kie_unrecognized_status", task_id=task_id, status=raw_status)

        variants: list[MusicVariant] = []
        if state == TaskState.SUCCEEDED:
            variants = self._extract_variants(data)

        error_message = None
        if state == TaskState.FAILED:
            error_message = (
                data.get("errorMessage")
                or data.get("error")
                or payload.get("msg")
                or "Generation failed"
            )

        return TaskStatus(
            task_id=str(data.get("taskId") or task_id),
            raw_status=raw_status,
            state=state,
            variants=variants,
            error_message=error_message,
            raw_response=data,
        )

    @staticmethod
    def _extract_variants(data: dict[str, Any]) -> list[MusicVariant]:
        response = data.get("response") or {}
        entries = response.get("sunoData") or response.get("variants") or []
        if not isinstance(entries, list):
            return []

        variants = []
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            audio_url = entry.get("audioUrl") or entry.get("audio_url")
            # Variants without an audio URL are unusable
            if not audio_url or not str(audio_url).strip():
                continue
            duration = entry.get("duration")
            variants.append(
                MusicVariant(
                    audio_url=str(audio_url),
                    title=entry.get("title"),
                    tags=entry.get("tags"),
                    duration_seconds=float(duration) if duration is not None else None,
                    model_name=entry.get("modelName"),
                    prompt=entry.get("prompt"),
                    audio_id=entry.get("audioId") or entry.get("id"),
                )
            )
        return variants

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = self.client.request(method, path, **kwargs)
        except httpx.RequestError as e:
            raise NetworkError(f"Network error: {e}") from e
        return self._handle_response(response)

    def _handle_response(self, response: httpx.Response) -> dict[str, Any]:
        code = response.status_code

        if 200 <= code < 300:
            parsed = self._parse_json(response)
            in_band = parsed.get("code")
            if in_band is not None and in_band not in (0, 200):
                message = parsed.get("msg") or parsed.get("message") or "unknown error"
                raise self._error_for_code(in_band, f"API error: {message}", parsed)
            return parsed

        body = self._parse_json(response, strict=False)
        message = body.get("msg") or body.get("message") or body.get("error") or "Unknown error"
        if code == 401:
            raise AuthenticationError("Authentication failed. Check your API key", code, body)
        if code == 402:
            raise InsufficientCreditsError(f"Insufficient credits: {message}", code, body)
        if code == 404:
            raise ApiError(f"Not found: {message}", code, body)
        if code == 429:
            raise RateLimitError(
                "Rate limit exceeded. Please wait before making more requests", code, body
            )
        if 400 <= code < 500:
            raise ApiError(f"Client error: {message}", code, body)
        if 500 <= code < 600:
            raise ApiError(f"Server error: {message}", code, body)
        raise ApiError(f"Unexpected response code: {code}", code, body)

    @staticmethod
    def _error_for_code(code: Any, message: str, body: dict[str, Any]) -> ApiError:
        if code == 401:
            return AuthenticationError(message, code, body)
        if code == 402:
            return InsufficientCreditsError(message, code, body)
        if code == 429:
            return RateLimitError(message, code, body)
        return ApiError(message, code, body)

    @staticmethod
    def _parse_json(response: httpx.Response, strict: bool = True) -> dict[str, Any]:
        if not response.content:
            return {}
        try:
            parsed = response.json()
        except ValueError as e:
            if strict:
                raise ApiError(
                    f"Invalid JSON response: {e}", response.status_code, response.text
                ) from e
            return {}
        return parsed if isinstance(parsed, dict) else {"data": parsed}

    def _validate_prompt(self, prompt: str) -> None:
        if not prompt or not prompt.strip():
            raise ValueError("Prompt cannot be blank")
        if len(prompt) > self.MAX_PROMPT_LENGTH:
            raise ValueError(
                f"Prompt is too long (maximum {self.MAX_PROMPT_LENGTH} characters)"
            )

    def _with_retry(self, operation: Callable[[], T]) -> T:
        """Run ``operation``, retrying network and rate-limit errors with a linear delay."""
        attempt = 1
        while True:
            try:
                return operation()
            except (NetworkError, RateLimitError) as e:
                if attempt >= self.max_attempts:
                    raise
                logger.info(
                    "kie_request_retry",
                    error=str(e),
                    attempt=attempt + 1,
                    max_attempts=self.max_attempts,
                )
                self._sleep(self.retry_delay * attempt)
                attempt += 1
