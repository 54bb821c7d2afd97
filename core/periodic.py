"""
Periodic background task on the running asyncio loop.

Owns a single asyncio.Task that sleeps for `interval` seconds and then
invokes a callback, until stopped. Callback errors are logged and the
loop keeps ticking; cancellation is logged and re-raised.

Usage:
    from core.periodic import PeriodicTask

    ticker = PeriodicTask("session-countdown", manager.tick, interval=1.0)
    ticker.start()
    ...
    await ticker.aclose()
"""

import asyncio
import inspect
import logging
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Repeatedly run a callback every `interval` seconds."""

    def __init__(self, name: str, callback: Callable[[], Any], interval: float = 1.0):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.name = name
        self.interval = interval
        self._callback = callback
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> bool:
        """Schedule the loop on the running event loop.

        Returns:
            False if already running, True otherwise.

        Raises:
            RuntimeError: no event loop is running.
        """
        if self.running:
            return False
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(), name=self.name)
        logger.debug(f"Periodic task {self.name} started ({self.interval}s)")
        return True

    def stop(self) -> None:
        """Cancel the loop. No further callback runs after this returns."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

    async def aclose(self) -> None:
        """Cancel the loop and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        if not task.done():
            task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        try:
            while True:
                await asyncio.sleep(self.interval)
                try:
                    result = self._callback()
                    if inspect.isawaitable(result):
                        await result
                except asyncio.CancelledError:
                    raise
                except Exception:
                    logger.exception(f"Periodic task {self.name} callback failed")
        except asyncio.CancelledError:
            logger.debug(f"Periodic task {self.name} stopped")
            raise
