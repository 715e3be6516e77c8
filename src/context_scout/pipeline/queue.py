"""Bounded in-process event queue with a fixed worker pool.

The webhook handler acknowledges Slack immediately and submits the event here;
N workers drain the queue. A full queue rejects new events instead of growing
without bound. Handler errors are logged and counted, never fatal to a worker.
"""

import asyncio
from typing import Any, Awaitable, Callable, List, Optional

from ..log import get_logger

logger = get_logger("worker")

Handler = Callable[[Any], Awaitable[Any]]


class EventQueue:
    def __init__(self, handler: Handler, workers: int = 2, maxsize: int = 100):
        if workers < 1:
            raise ValueError("workers must be at least 1")
        self.handler = handler
        self.workers = workers
        self.maxsize = maxsize
        self._queue: Optional[asyncio.Queue] = None
        self._tasks: List[asyncio.Task] = []
        self.processed = 0
        self.failed = 0
        self.dropped = 0

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    def start(self):
        if self.running:
            return
        # Created here so the queue binds to the running loop
        self._queue = asyncio.Queue(maxsize=self.maxsize)
        self._tasks = [
            asyncio.create_task(self._worker(i), name=f"event-worker-{i}")
            for i in range(self.workers)
        ]
        logger.info(f"Event queue started with {self.workers} workers")

    def submit(self, event: Any) -> bool:
        """Enqueue an event. Returns False when the queue is full or not started."""
        if self._queue is None:
            logger.error("Event queue is not running, dropping event")
            self.dropped += 1
            return False
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(f"Event queue full ({self.maxsize}), dropping event")
            self.dropped += 1
            return False
        return True

    async def join(self):
        """Wait until every submitted event has been handled."""
        if self._queue is not None:
            await self._queue.join()

    async def stop(self, drain: bool = True):
        if not self.running:
            return
        if drain:
            await self.join()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info(f"Event queue stopped (processed={self.processed}, failed={self.failed}, dropped={self.dropped})")

    async def _worker(self, index: int):
        assert self._queue is not None
        while True:
            event = await self._queue.get()
            try:
                await self.handler(event)
                self.processed += 1
                logger.info(f"Event processed successfully by worker {index}")
            except Exception:
                self.failed += 1
                logger.exception("Background event processing failed")
            finally:
                self._queue.task_done()
