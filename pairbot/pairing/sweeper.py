"""
Periodic cleanup of the pairing registry.

Per-record timers normally remove expired codes; the sweep is the safety
net that also enforces the registry size cap.
"""
from __future__ import annotations

import asyncio
import logging

from .registry import PairingRegistry

logger = logging.getLogger(__name__)


class RegistrySweeper:
    """
    Run ``PairingRegistry.sweep_expired`` every ``interval_seconds``.

    Usage:
        sweeper = RegistrySweeper(registry, interval_seconds=60)
        await sweeper.start()

        # Later...
        await sweeper.stop()
    """

    def __init__(self, registry: PairingRegistry, interval_seconds: float = 60.0):
        self._registry = registry
        self._interval = interval_seconds
        self._task: asyncio.Task | None = None
        self._running = False
        self.runs = 0

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start sweep loop"""
        if self._running:
            logger.warning("Registry sweeper already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._sweep_loop())
        logger.info(f"Registry sweeper started: interval={self._interval}s")

    async def stop(self) -> None:
        """Stop sweep loop"""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info("Registry sweeper stopped")

    def sweep_once(self) -> int:
        removed = self._registry.sweep_expired()
        self.runs += 1
        return removed

    async def _sweep_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self._interval)
            try:
                self.sweep_once()
            except Exception as e:
                logger.error(f"Registry sweep failed: {e}", exc_info=True)
