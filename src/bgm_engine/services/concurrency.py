"""Cluster-wide limit on concurrent video renders.

A counting semaphore built from N Redis locks (``<name>:slot:0`` .. ``<name>:slot:N-1``).
Each lock carries a lease so a slot held by a crashed worker frees itself.
"""

import time
from collections.abc import Callable, Generator
from contextlib import contextmanager
from typing import Any

import redis
from redis.exceptions import LockError

from bgm_engine.config import settings
from bgm_engine.logging import get_logger

logger = get_logger(__name__)


class RenderSlotUnavailableError(Exception):
    """No render slot became free within the wait budget."""


class RenderSlotLimiter:
    """Hand out at most ``limit`` concurrent slots across all workers."""

    def __init__(
        self,
        client: Any,
        name: str = "video_render",
        limit: int | None = None,
        lease_seconds: float | None = None,
        wait_timeout: float | None = None,
        poll_interval: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.client = client
        self.name = name
        self.limit = limit if limit is not None else settings.video_render_concurrency
        if self.limit < 1:
            raise ValueError("Render concurrency limit must be at least 1")
        self.lease_seconds = (
            lease_seconds if lease_seconds is not None else settings.video_render_slot_lease_seconds
        )
        self.wait_timeout = (
            wait_timeout if wait_timeout is not None else settings.video_render_slot_wait_seconds
        )
        self.poll_interval = poll_interval
        self._sleep = sleep
        self._clock = clock

    @classmethod
    def from_settings(cls) -> "RenderSlotLimiter":
        return cls(redis.Redis.from_url(settings.redis_url))

    def close(self) -> None:
        """Close the underlying Redis connection pool."""
        self.client.close()

    def slot_key(self, index: int) -> str:
        return f"{self.name}:slot:{index}"

    def try_acquire(self) -> Any | None:
        """Grab any free slot without waiting. Returns the held lock or None."""
        for index in range(self.limit):
            lock = self.client.lock(self.slot_key(index), timeout=self.lease_seconds)
            if lock.acquire(blocking=False):
                logger.debug("render_slot_acquired", slot=self.slot_key(index))
                return lock
        return None

    def acquire(self) -> Any:
        """Wait up to ``wait_timeout`` seconds for a free slot.

        Raises:
            RenderSlotUnavailableError: Every slot stayed busy
        """
        deadline = self._clock() + self.wait_timeout
        while True:
            lock = self.try_acquire()
            if lock is not None:
                return lock
            if self._clock() >= deadline:
                logger.info("render_slot_unavailable", name=self.name, limit=self.limit)
                raise RenderSlotUnavailableError(
                    f"All {self.limit} render slot(s) busy for {self.wait_timeout:.0f}s"
                )
            self._sleep(self.poll_interval)

    def release(self, lock: Any) -> None:
        try:
            lock.release()
        except LockError as e:
            # Lease expired and the slot may already belong to another render
            logger.warning("render_slot_release_failed", name=self.name, error=str(e))

    @contextmanager
    def slot(self) -> Generator[Any, None, None]:
        """Hold a render slot for the duration of the block."""
        lock = self.acquire()
        try:
            yield lock
        finally:
            self.release(lock)
