"""Heartbeat scheduler — periodic background re-probe of all services."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from aries.registry.service import ServiceRegistry

logger = logging.getLogger(__name__)

DEFAULT_HEARTBEAT_INTERVAL = 60.0


class HeartbeatScheduler:
    """Runs :meth:`ServiceRegistry.heartbeat_sweep` every *interval* seconds."""

    def __init__(
        self,
        registry: ServiceRegistry,
        interval: float = DEFAULT_HEARTBEAT_INTERVAL,
    ) -> None:
        self.registry = registry
        self.interval = interval
        self._running = False
        self._task: asyncio.Task | None = None
        self._last_sweep: str | None = None

    async def start(self) -> None:
        """Start the background sweep loop."""
        if self._running:
            logger.warning("Heartbeat scheduler is already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info("Heartbeat scheduler started (interval=%ss)", self.interval)

    async def stop(self) -> None:
        """Stop the background sweep loop."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Heartbeat scheduler stopped")

    async def run_sweep(self) -> dict[str, bool]:
        """Run a single sweep cycle and record when it finished."""
        outcome = await self.registry.heartbeat_sweep()
        self._last_sweep = datetime.now(timezone.utc).isoformat()
        return outcome

    @property
    def running(self) -> bool:
        """Whether the sweep loop is currently active."""
        return self._running

    @property
    def last_sweep(self) -> str | None:
        """ISO timestamp of the last completed sweep, or None."""
        return self._last_sweep

    async def _loop(self) -> None:
        """Sleep first; ``ServiceRegistry.load`` already probed everything."""
        while self._running:
            await asyncio.sleep(self.interval)
            if not self._running:
                return
            logger.info("Service check heartbeat")
            try:
                outcome = await self.run_sweep()
                down = sorted(name for name, alive in outcome.items() if not alive)
                if down:
                    logger.info("Heartbeat: %d service(s) down: %s", len(down), ", ".join(down))
            except Exception as exc:
                logger.error("Heartbeat sweep failed: %s", exc)
