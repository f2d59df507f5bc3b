"""TickLoop — drives the controller on a fixed period.

Runs on one asyncio task so ticks are serialised with HTTP handlers and
push callbacks on the same event loop.  A failing tick is logged and the
loop keeps going; the next tick recomputes everything from the clock.
"""

from __future__ import annotations

import asyncio
import logging

from holdover.core.controller import HoldoverController

logger = logging.getLogger(__name__)


class TickLoop:
    """Periodic tick driver.

    Args:
        controller: The controller to tick.
        period_seconds: Delay between ticks.
    """

    def __init__(self, controller: HoldoverController, period_seconds: float = 1.0) -> None:
        if period_seconds <= 0:
            raise ValueError("period_seconds must be positive")
        self._controller = controller
        self._period = period_seconds
        self._task: asyncio.Task | None = None
        self.ticks: int = 0
        self.failures: int = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="holdover-tick-loop")
        logger.info("Tick loop started (period %.2fs)", self._period)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Tick loop stopped after %d ticks", self.ticks)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._period)
            self.tick_once()

    def tick_once(self) -> None:
        try:
            self._controller.tick()
            self.ticks += 1
        except Exception:
            self.failures += 1
            logger.exception("Tick failed; continuing")
