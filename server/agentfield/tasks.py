from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from typing import Awaitable, Callable


LOGGER = logging.getLogger("agentfield.tasks")


class PeriodicTask:
    """Runs ``callback`` every ``interval_sec`` on the running event loop.

    Due times advance on a fixed grid so a slow callback does not push
    later runs back. When a run overshoots a whole interval the missed
    slots are dropped and the grid restarts from now. Exceptions raised
    by the callback are logged and the cadence continues.
    """

    def __init__(self, name: str, interval_sec: float, callback: Callable[[], Awaitable[None] | None]):
        if interval_sec <= 0:
            raise ValueError("interval_sec must be positive")
        self.name = name
        self.interval_sec = interval_sec
        self._callback = callback
        self._task: asyncio.Task | None = None
        self.runs = 0
        self.failures = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name=self.name)

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _loop(self) -> None:
        next_due = time.monotonic() + self.interval_sec
        while True:
            await asyncio.sleep(max(0.0, next_due - time.monotonic()))
            try:
                result = self._callback()
                if asyncio.iscoroutine(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception:
                self.failures += 1
                LOGGER.exception("periodic task %s failed", self.name)
            self.runs += 1

            next_due += self.interval_sec
            now = time.monotonic()
            if next_due < now:
                next_due = now + self.interval_sec
