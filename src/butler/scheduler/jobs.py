"""Scheduler for periodic module cycles using pure asyncio.

Every tick (one minute by default) each module's cycle runs in
registration order. Modules decide for themselves whether the current
time is one they care about.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from butler.config import ButlerConfig
    from butler.core import Butler

logger = logging.getLogger(__name__)


class Scheduler:
    """Fixed-interval loop that drives Butler.run_cycles()."""

    def __init__(self, butler: Butler, config: ButlerConfig) -> None:
        self._butler = butler
        self._interval = config.scheduler.tick_interval
        self.ticks = 0

    async def start(self, shutdown_event: asyncio.Event) -> None:
        """Run cycles until shutdown_event is set."""
        logger.info("Scheduler started (tick=%ds)", self._interval)

        while not shutdown_event.is_set():
            try:
                await asyncio.wait_for(shutdown_event.wait(), timeout=self._interval)
                break  # shutdown requested
            except asyncio.TimeoutError:
                pass  # interval elapsed, run cycles

            await self.tick(datetime.now())

        logger.info("Scheduler stopped.")

    async def tick(self, now: datetime) -> None:
        self.ticks += 1
        logger.debug("Tick %d at %s", self.ticks, now.strftime("%H:%M"))
        await self._butler.run_cycles(now)
