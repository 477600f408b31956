"""Repeating timer abstraction used by the scheduler."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Protocol

logger = logging.getLogger(__name__)

TickCallback = Callable[[], Awaitable[Any]]


class RepeatingTimer(Protocol):
    def schedule_repeating(self, interval: float, callback: TickCallback) -> Any:
        """Fire callback every interval seconds; return a handle for cancel()."""

    def cancel(self, handle: Any) -> None:
        """Stop future ticks. Callbacks already running are left alone."""


class AsyncioTimer:
    """Timer backed by a looping task on the running event loop.

    Each tick runs the callback as its own task, so a slow callback never
    delays the next tick; overlap is the callback's concern.
    """

    def __init__(self):
        self._inflight: set[asyncio.Task[Any]] = set()

    def schedule_repeating(self, interval: float, callback: TickCallback) -> asyncio.Task[None]:
        async def _loop() -> None:
            while True:
                await asyncio.sleep(interval)
                task = asyncio.ensure_future(callback())
                self._inflight.add(task)
                task.add_done_callback(self._tick_done)

        return asyncio.get_running_loop().create_task(_loop())

    def _tick_done(self, task: asyncio.Task[Any]) -> None:
        self._inflight.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Timer callback raised: %s", task.exception())

    def cancel(self, handle: asyncio.Task[None]) -> None:
        handle.cancel()
