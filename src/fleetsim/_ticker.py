"""Fixed-interval async ticker."""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable

_logger = logging.getLogger(__name__)


class Ticker:
    """Calls an async callback every *interval* seconds until stopped.

    Ticks are scheduled on a fixed grid starting one interval after
    :meth:`start`. The callback runs inline, so a slow callback never
    overlaps the next one; grid points that pass while it runs are counted
    in :attr:`missed` and dropped.
    """

    def __init__(
        self,
        interval: float,
        callback: Callable[[], Awaitable[None]],
        *,
        name: str = "fleetsim-ticker",
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._interval = interval
        self._callback = callback
        self._name = name
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self.ticks = 0
        self.missed = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self._name)

    async def stop(self) -> None:
        """Signal the loop to exit and wait for the in-flight callback to finish."""
        task = self._task
        if task is None:
            return
        self._stop_event.set()
        try:
            await task
        finally:
            self._task = None

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_at = loop.time() + self._interval
        while not self._stop_event.is_set():
            delay = max(0.0, next_at - loop.time())
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
                break
            except TimeoutError:
                pass

            self.ticks += 1
            try:
                await self._callback()
            except Exception:
                _logger.exception("%s callback failed", self._name)

            next_at += self._interval
            behind = loop.time() - next_at
            if behind > 0:
                missed = math.floor(behind / self._interval) + 1
                self.missed += missed
                next_at += missed * self._interval
                _logger.warning("%s fell behind, dropped %d tick(s)", self._name, missed)
