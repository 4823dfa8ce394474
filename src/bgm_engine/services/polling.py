"""Polling an external generation task until it reaches a terminal state.

Two ways to wait between status checks are supported:

- Blocking: the worker sleeps in-process (``FixedIntervalWait``, ``BlockingBackoffWait``).
  Used by ``TaskPoller``.
- Yielding: the job is re-enqueued with a countdown and the worker is released
  (``YieldingFixedIntervalWait``). Used by the self-rescheduling music job.
"""

import random
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass

from bgm_engine.adapters.music_gen.base import MusicGenProvider, TaskStatus, classify_status
from bgm_engine.adapters.music_gen.errors import TaskFailedError, TaskTimeoutError
from bgm_engine.config import settings
from bgm_engine.domain.enums import TaskState
from bgm_engine.logging import get_logger

logger = get_logger(__name__)

__all__ = [
    "BackoffPolicy",
    "BlockingBackoffWait",
    "FixedIntervalWait",
    "TaskPoller",
    "WaitStrategy",
    "YieldingFixedIntervalWait",
    "classify_status",
]


@dataclass(frozen=True)
class BackoffPolicy:
    """Exponential backoff with a cap and multiplicative jitter.

    interval(attempt) = min(initial * 2^(attempt-1), cap) * (1 + U[0, jitter))
    """

    initial: float = 5.0
    cap: float = 30.0
    jitter: float = 0.3

    def base_interval(self, attempt: int) -> float:
        attempt = max(attempt, 1)
        return min(self.initial * (2 ** (attempt - 1)), self.cap)

    def interval(self, attempt: int, rng: random.Random | None = None) -> float:
        base = self.base_interval(attempt)
        fraction = (rng or random).random() * self.jitter
        return base * (1 + fraction)

    @classmethod
    def from_settings(cls) -> "BackoffPolicy":
        return cls(
            initial=settings.music_backoff_initial_seconds,
            cap=settings.music_backoff_max_seconds,
            jitter=settings.music_backoff_jitter,
        )


class WaitStrategy(ABC):
    """How a poller waits between status checks."""

    blocking: bool = True

    @abstractmethod
    def interval(self, attempt: int) -> float:
        """Seconds to wait after the given (1-based) attempt."""
        ...

    @abstractmethod
    def wait(self, attempt: int) -> float:
        """Wait (or schedule the next check) after ``attempt``; returns the interval used."""
        ...


class FixedIntervalWait(WaitStrategy):
    """Sleep a constant interval between checks."""

    def __init__(
        self,
        interval: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._interval = float(
            interval if interval is not None else settings.music_poll_interval_seconds
        )
        self._sleep = sleep

    def interval(self, attempt: int) -> float:
        return self._interval

    def wait(self, attempt: int) -> float:
        self._sleep(self._interval)
        return self._interval


class BlockingBackoffWait(WaitStrategy):
    """Sleep with exponential backoff and jitter between checks."""

    def __init__(
        self,
        policy: BackoffPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self.policy = policy or BackoffPolicy.from_settings()
        self._sleep = sleep
        self._rng = rng

    def interval(self, attempt: int) -> float:
        return self.policy.interval(attempt, self._rng)

    def wait(self, attempt: int) -> float:
        delay = self.interval(attempt)
        self._sleep(delay)
        return delay


class YieldingFixedIntervalWait(WaitStrategy):
    """Release the worker and re-enqueue the job after a fixed countdown."""

    blocking = False

    def __init__(
        self,
        reschedule: Callable[[float], None],
        interval: float | None = None,
    ) -> None:
        self._reschedule = reschedule
        self._interval = float(
            interval if interval is not None else settings.music_poll_interval_seconds
        )

    def interval(self, attempt: int) -> float:
        return self._interval

    def wait(self, attempt: int) -> float:
        self._reschedule(self._interval)
        return self._interval


class TaskPoller:
    """Blocking poll loop for an external generation task."""

    def __init__(
        self,
        provider: MusicGenProvider,
        wait_strategy: WaitStrategy | None = None,
        max_wait_time: float | None = None,
        max_attempts: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        wait_strategy = wait_strategy or FixedIntervalWait(interval=10)
        if not wait_strategy.blocking:
            raise ValueError("TaskPoller requires a blocking wait strategy")

        self.provider = provider
        self.wait_strategy = wait_strategy
        self.max_wait_time = (
            max_wait_time if max_wait_time is not None else settings.music_poller_max_wait_seconds
        )
        self.max_attempts = max_attempts
        self._clock = clock

    def poll_until_terminal(self, task_id: str) -> TaskStatus:
        """Poll ``task_id`` until it succeeds.

        Raises:
            TaskFailedError: The vendor reported failure
            TaskTimeoutError: The wall-clock budget or attempt cap was exhausted
        """
        started = self._clock()
        attempt = 0

        while True:
            attempt += 1
            status = self.provider.get_status(task_id)

            logger.debug(
                "task_poll_status",
                task_id=task_id,
                attempt=attempt,
                status=status.raw_status,
                state=status.state,
            )

            if status.state == TaskState.SUCCEEDED:
                logger.info("task_poll_succeeded", task_id=task_id, attempts=attempt)
                return status

            if status.state == TaskState.FAILED:
                logger.warning(
                    "task_poll_failed", task_id=task_id, error=status.error_message
                )
                raise TaskFailedError(task_id, status.error_message)

            if status.state == TaskState.UNRECOGNIZED:
                logger.warning(
                    "task_poll_unrecognized_status", task_id=task_id, status=status.raw_status
                )

            elapsed = self._clock() - started
            if elapsed > self.max_wait_time or (
                self.max_attempts is not None and attempt >= self.max_attempts
            ):
                logger.warning(
                    "task_poll_timeout", task_id=task_id, attempts=attempt, elapsed=elapsed
                )
                raise TaskTimeoutError(task_id, elapsed, attempt)

            self.wait_strategy.wait(attempt)
