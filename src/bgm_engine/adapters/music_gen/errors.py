"""Error taxonomy for the music generation API client.

    MusicGenError
    ├── ConfigurationError        missing key/settings; never retried
    ├── ApiError                  vendor or transport failure; retried by jobs
    │   ├── NetworkError
    │   ├── RateLimitError
    │   ├── AuthenticationError
    │   └── InsufficientCreditsError
    ├── TaskFailedError           vendor reported the task failed
    └── TaskTimeoutError          task did not finish within the polling budget
"""

from typing import Any


class MusicGenError(Exception):
    """Base class for music generation errors."""


class ConfigurationError(MusicGenError):
    """Client is not configured (e.g. missing API key)."""


class ApiError(MusicGenError):
    """The generation API returned an error or could not be reached."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class NetworkError(ApiError):
    """Connection, DNS or timeout failure talking to the API."""


class RateLimitError(ApiError):
    """The API rejected the request with a rate limit."""


class AuthenticationError(ApiError):
    """The API rejected the credentials."""


class InsufficientCreditsError(ApiError):
    """The account has no credits left for generation."""


class TaskFailedError(MusicGenError):
    """The vendor reported that the generation task failed."""

    def __init__(self, task_id: str, reason: str | None = None) -> None:
        self.task_id = task_id
        self.reason = reason
        super().__init__(f"Task {task_id} failed: {reason or 'unknown error'}")


class TaskTimeoutError(MusicGenError):
    """The generation task did not reach a terminal state in time."""

    def __init__(self, task_id: str, waited_seconds: float, attempts: int) -> None:
        self.task_id = task_id
        self.waited_seconds = waited_seconds
        self.attempts = attempts
        super().__init__(
            f"Task {task_id} did not finish after {attempts} status checks "
            f"({waited_seconds:.0f}s)"
        )
