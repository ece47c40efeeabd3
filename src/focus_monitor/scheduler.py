"""Periodic scheduler driving monitoring ticks."""

import asyncio
import logging
from typing import Optional

from focus_monitor.core.errors import StoreUnavailableError
from focus_monitor.use_cases import MonitoringService, TickReport

logger = logging.getLogger(__name__)


class MonitoringScheduler:
    """Run a monitoring tick every ``tick_interval`` seconds until stopped.

    Usage:
        scheduler = MonitoringScheduler(service, tick_interval=300)
        await scheduler.run_forever()  # Runs until stop()
    """

    def __init__(
        self,
        service: MonitoringService,
        tick_interval: float = 300.0,
        tick_timeout: Optional[float] = 600.0,
    ) -> None:
        self.service = service
        self.tick_interval = tick_interval
        self.tick_timeout = tick_timeout
        self._stop_event = asyncio.Event()
        self.last_report: Optional[TickReport] = None

    async def run_once(self) -> Optional[TickReport]:
        """Run one tick. Returns None when the store was unreachable."""
        try:
            report = await self.service.run_tick(timeout=self.tick_timeout)
        except StoreUnavailableError as e:
            logger.error("Store unavailable, tick aborted: %s", e)
            return None
        self.last_report = report
        return report

    async def run_forever(self) -> None:
        """Tick repeatedly, sleeping ``tick_interval`` between the end of one tick and the next."""
        self._stop_event.clear()
        logger.info("Scheduler started (interval=%.0fs)", self.tick_interval)
        try:
            while not self._stop_event.is_set():
                await self.run_once()
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self.tick_interval)
                except asyncio.TimeoutError:
                    pass
        except asyncio.CancelledError:
            logger.info("Scheduler cancelled")
            raise
        finally:
            logger.info("Scheduler stopped")

    def stop(self) -> None:
        """Ask the loop to exit after the current tick."""
        self._stop_event.set()
