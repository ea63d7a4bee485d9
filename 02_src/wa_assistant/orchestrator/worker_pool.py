"""Bounded, user-sharded background worker pool."""

import asyncio
import zlib
from typing import Any, Awaitable, Callable, Generic, TypeVar

from ..logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

WorkHandler = Callable[[T], Awaitable[None]]


class WorkerPool(Generic[T]):
    """Hands work off the request path to a fixed set of workers.

    Each worker drains its own bounded queue. Items are routed by a stable
    hash of their key, so all items sharing a key (one user) are handled in
    submission order by the same worker.
    """

    def __init__(self, handler: WorkHandler, workers: int = 4, queue_size: int = 100):
        if workers < 1:
            raise ValueError("workers must be at least 1")
        if queue_size < 1:
            raise ValueError("queue_size must be at least 1")

        self._handler = handler
        self._worker_count = workers
        self._queue_size = queue_size
        self._queues: list[asyncio.Queue] = []
        self._tasks: list[asyncio.Task] = []
        self._running = False
        self._processed = 0
        self._failed = 0
        self._dropped = 0

    @property
    def running(self) -> bool:
        return self._running

    def shard_for(self, key: str) -> int:
        """Worker index for a key."""
        return zlib.crc32(key.encode("utf-8")) % self._worker_count

    async def start(self) -> None:
        """Spawn the worker tasks."""
        if self._running:
            return
        self._queues = [asyncio.Queue(maxsize=self._queue_size) for _ in range(self._worker_count)]
        self._tasks = [
            asyncio.create_task(self._worker(i, queue), name=f"wa-worker-{i}")
            for i, queue in enumerate(self._queues)
        ]
        self._running = True
        logger.info(
            "Worker pool started",
            extra={"context": {"workers": self._worker_count, "queue_size": self._queue_size}},
        )

    def submit(self, key: str, item: T) -> bool:
        """Enqueue without waiting. False when not running or the shard is full."""
        if not self._running:
            logger.warning("Worker pool not running, item dropped", extra={"context": {"key": key}})
            self._dropped += 1
            return False

        shard = self.shard_for(key)
        try:
            self._queues[shard].put_nowait(item)
        except asyncio.QueueFull:
            self._dropped += 1
            logger.error(
                "Worker queue full, item dropped",
                extra={"context": {"key": key, "shard": shard, "queue_size": self._queue_size}},
            )
            return False
        return True

    async def stop(self, drain: bool = True, timeout: float | None = 10.0) -> None:
        """Stop workers, optionally letting queued items finish first."""
        if not self._running:
            return
        self._running = False

        if drain:
            try:
                await asyncio.wait_for(
                    asyncio.gather(*(q.join() for q in self._queues)), timeout=timeout
                )
            except asyncio.TimeoutError:
                logger.warning("Worker pool drain timed out, cancelling remaining items")

        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("Worker pool stopped", extra={"context": self.stats()})

    def stats(self) -> dict[str, Any]:
        return {
            "running": self._running,
            "workers": self._worker_count,
            "queue_size": self._queue_size,
            "pending": sum(q.qsize() for q in self._queues),
            "processed": self._processed,
            "failed": self._failed,
            "dropped": self._dropped,
        }

    async def _worker(self, index: int, queue: asyncio.Queue) -> None:
        while True:
            item = await queue.get()
            try:
                await self._handler(item)
                self._processed += 1
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._failed += 1
                logger.error(
                    "Work item failed",
                    exc_info=True,
                    extra={"context": {"worker": index, "error": str(e)}},
                )
            finally:
                queue.task_done()
