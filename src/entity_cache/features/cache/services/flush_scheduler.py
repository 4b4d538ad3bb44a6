"""Background flush timer for an entity cache.

Runs a callback on a single daemon thread at a fixed delay. A cycle always
finishes before the next wait starts, so cycles never overlap.
"""

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class FlushScheduler:
    """Fixed-delay timer driving one cache's flush cycle."""

    def __init__(self, name: str, interval_seconds: float, callback: Callable[[], object]):
        self.name = name
        self.interval_seconds = interval_seconds
        self._callback = callback
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop_event.is_set()

    def start(self) -> None:
        """Start the timer thread if it is not already running."""
        if self.is_running:
            return

        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._run,
            args=(self._stop_event,),
            name=f"entity-cache-flush-{self.name}",
            daemon=True,
        )
        self._thread.start()
        logger.debug(f"Flush scheduler started for {self.name} every {self.interval_seconds}s")

    def stop(self, timeout: Optional[float] = None) -> bool:
        """Request a cooperative stop and wait up to ``timeout`` seconds.

        Returns:
            True if the thread stopped within the grace period. Otherwise the
            daemon thread is abandoned and False is returned.
        """
        self._stop_event.set()
        thread = self._thread
        if thread is None:
            return True

        if thread is not threading.current_thread():
            thread.join(timeout)

        if thread.is_alive():
            logger.warning(
                f"Flush scheduler for {self.name} did not stop within {timeout}s; abandoning in-flight cycle"
            )
            return False

        self._thread = None
        logger.debug(f"Flush scheduler stopped for {self.name}")
        return True

    def _run(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.interval_seconds):
            try:
                self._callback()
            except Exception as e:
                logger.exception(f"Scheduled flush failed for {self.name}: {e}")
