"""
Background timer that re-runs the treasury refresh every interval.
"""
from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class SnapshotRefresher:
    """
    Daemon thread: refresh immediately on start, then every interval_s until stop().
    A failed refresh is logged; the loop keeps going and readers keep the last
    published snapshot.
    """

    def __init__(
        self,
        refresh: Callable[[], object],
        interval_s: float,
        *,
        name: str = "treasury-refresh",
    ) -> None:
        if interval_s <= 0:
            raise ValueError(f"interval_s must be > 0, got {interval_s}")
        self._refresh = refresh
        self._interval_s = float(interval_s)
        self._name = name
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self.runs = 0
        self.failures = 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self) -> bool:
        self.runs += 1
        try:
            self._refresh()
            return True
        except Exception:
            self.failures += 1
            logger.exception("%s: refresh failed; keeping previous snapshot", self._name)
            return False

    def _run(self) -> None:
        logger.info("%s: started, interval %.0fs", self._name, self._interval_s)
        while not self._stop_event.is_set():
            self.run_once()
            self._stop_event.wait(self._interval_s)
        logger.info("%s: stopped", self._name)

    def start(self) -> None:
        with self._lock:
            if self.is_running:
                return
            self._stop_event.clear()
            self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
            self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        with self._lock:
            self._stop_event.set()
            thread, self._thread = self._thread, None
        if thread is not None:
            thread.join(timeout)
