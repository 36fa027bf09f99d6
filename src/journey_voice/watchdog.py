"""Background supervision that keeps the microphone armed."""

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class ListeningWatchdog:
    """Restarts listening when the microphone drops outside of a turn.

    The watchdog polls ``should_restart``. When it reports true, the watchdog
    waits ``settle_delay`` and checks again before restarting, so a session
    that is merely between turns, or an engine erroring repeatedly, does not
    cause a burst of restarts. Only one restart attempt runs at a time.
    """

    def __init__(
        self,
        should_restart: Callable[[], bool],
        restart: Callable[[], Awaitable[None]],
        interval: float = 0.25,
        settle_delay: float = 0.5
    ):
        """Initialize the watchdog.

        Args:
            should_restart: True when listening should be on but is not
            restart: Coroutine function that re-arms listening
            interval: Polling interval in seconds
            settle_delay: Wait before confirming a drop, in seconds
        """
        self.should_restart = should_restart
        self.restart = restart
        self.interval = interval
        self.settle_delay = settle_delay
        self.restart_count = 0
        self._running = False
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the monitoring loop (no-op if already running)."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._monitor_loop())

    async def stop(self) -> None:
        """Stop the monitoring loop."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _monitor_loop(self) -> None:
        """Main monitoring loop."""
        while self._running:
            try:
                await self.check_once()
            except Exception:
                logger.exception("Watchdog restart failed")
            await asyncio.sleep(self.interval)

    async def check_once(self) -> bool:
        """Run one supervision pass.

        Returns:
            True if listening was restarted
        """
        if not self.should_restart():
            return False

        await asyncio.sleep(self.settle_delay)
        if not self._running or not self.should_restart():
            return False

        self.restart_count += 1
        logger.info(f"Microphone stopped unexpectedly, restarting (#{self.restart_count})")
        await self.restart()
        return True
