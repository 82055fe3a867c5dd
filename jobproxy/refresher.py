"""Periodic background refresh of the job cache."""

import threading
from datetime import timedelta
from typing import Callable, Optional

from .errors import JobProxyError
from .logger import get_logger
from .retry import retry_after_reauth

logger = get_logger()


class BackgroundRefresher:
    """
    Rebuilds the cache every ``interval`` on a daemon thread.

    Failures never clear the published snapshot. They are logged, kept in
    ``last_error`` and passed to ``on_error`` if given. Tests drive
    run_once() directly instead of waiting on the timer.
    """

    def __init__(
        self,
        cache,
        credentials,
        interval: timedelta = timedelta(minutes=25),
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        self.cache = cache
        self.credentials = credentials
        self.interval = interval
        self.on_error = on_error
        self.last_error: Optional[Exception] = None
        self.runs = 0
        self.failures = 0
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @retry_after_reauth()
    def _refresh(self):
        return self.cache.refresh()

    def run_once(self) -> bool:
        """Refresh the cache once. Returns True on success."""
        self.runs += 1
        try:
            snapshot = self._refresh()
        except JobProxyError as e:
            self.failures += 1
            self.last_error = e
            logger.error(
                "Background refresh failed, keeping previous snapshot",
                error=str(e),
                error_type=type(e).__name__,
                has_snapshot=self.cache.snapshot is not None,
            )
            if self.on_error is not None:
                self.on_error(e)
            return False
        self.last_error = None
        logger.info("Background refresh complete", records=len(snapshot))
        return True

    def _loop(self):
        while not self._stop.wait(self.interval.total_seconds()):
            self.run_once()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="cache-refresher", daemon=True)
        self._thread.start()
        logger.info("Background refresher started", interval_seconds=self.interval.total_seconds())

    def stop(self, timeout: Optional[float] = None):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Background refresher stopped")
