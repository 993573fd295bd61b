"""
Periodic drain of the event queue on a background thread.
"""

import threading
from collections.abc import Callable
from typing import Optional

import structlog

logger = structlog.get_logger(__name__)


class DrainScheduler:
    """Calls a drain function every `interval_seconds` on a daemon thread

    The drain function is expected to guard itself against overlapping
    drains; a tick that finds a drain in flight is simply skipped there.
    """

    def __init__(
        self,
        drain_fn: Callable[[], int],
        interval_seconds: float,
        name: str = "behavioral-drain",
    ):
        self.drain_fn = drain_fn
        self.interval_seconds = interval_seconds
        self.name = name
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        logger.info("Drain scheduler started", interval_seconds=self.interval_seconds)

    def stop(self, timeout: Optional[float] = None) -> None:
        """Signal the thread and wait for an in-flight tick to finish"""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
            logger.info("Drain scheduler stopped", ticks=self.ticks)

    def tick(self) -> int:
        """Run one drain; errors are logged so the loop keeps going"""
        self.ticks += 1
        try:
            return self.drain_fn()
        except Exception as e:
            logger.error("Scheduled drain failed", error=str(e), exc_info=True)
            return 0

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval_seconds):
            self.tick()
