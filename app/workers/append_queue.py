from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from app.core.logger import get_logger

log = get_logger(__name__)


AppendCallable = Callable[[str], Awaitable[Any]]


@dataclass
class AppendItem:
    seq: int
    text: str


class AppendQueue:
    """Per-session FIFO of transcript appends.

    - submit(text) enqueues text and returns immediately.
    - A single worker awaits each append before taking the next one, so two
      finals arriving back to back can never target the same block.
    """

    def __init__(self, append: AppendCallable, name: str = "append-queue") -> None:
        self._append = append
        self._name = name
        self._queue: asyncio.Queue[AppendItem] = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None
        self._running = False
        self._seq = 0

    async def start(self) -> None:
        if self._running:
            return
        self._running = True

        async def _worker() -> None:
            log.debug("%s started", self._name)
            while self._running:
                item = await self._queue.get()
                try:
                    await self._append(item.text)
                except Exception:
                    log.exception("%s: append #%d failed", self._name, item.seq)
                finally:
                    self._queue.task_done()

        self._task = asyncio.create_task(_worker(), name=self._name)

    async def stop(self) -> None:
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        dropped = self._queue.qsize()
        if dropped:
            log.warning("%s stopped with %d unwritten transcripts", self._name, dropped)

    async def submit(self, text: str) -> None:
        self._seq += 1
        await self._queue.put(AppendItem(seq=self._seq, text=text))

    async def join(self) -> None:
        """Wait until every submitted append has been attempted."""
        await self._queue.join()
