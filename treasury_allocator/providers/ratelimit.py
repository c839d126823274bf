"""
Minimum-spacing gate for upstream price APIs.

Each source owns one gate. Callers reserve the next free slot under a lock and
sleep outside it, so concurrent callers queue up one interval apart instead of
firing together. Requests are delayed, never dropped.
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass
class RateGate:
    """
    Earliest-next-call gate.

    acquire() returns once it is this caller's turn; the next caller's turn is
    min_interval_s after that. clock and sleep are injectable for tests.
    """
    name: str
    min_interval_s: float
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)
    _next_at: float = field(default=float("-inf"), init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.min_interval_s < 0:
            raise ValueError(f"min_interval_s must be >= 0, got {self.min_interval_s}")

    def acquire(self) -> float:
        """Block until the reserved slot; return the seconds waited."""
        with self._lock:
            now = self.clock()
            slot = max(now, self._next_at)
            self._next_at = slot + self.min_interval_s
        delay = slot - now
        if delay > 0:
            logger.debug("%s: rate gate waiting %.3fs", self.name, delay)
            self.sleep(delay)
        return max(delay, 0.0)

    @property
    def next_call_at(self) -> float:
        with self._lock:
            return self._next_at

    def reset(self) -> None:
        with self._lock:
            self._next_at = float("-inf")
