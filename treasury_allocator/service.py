"""
AllocationService: wires snapshot, sponsors, and engine behind one allocate() call.

allocate() reads only published state (Holdings, SponsorSet) and never touches
the network; refresh() is the only path that reads chain or price sources.
"""
from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from .allocation import AllocationEngine
from .core.errors import SnapshotUnavailableError
from .refresher import SnapshotRefresher
from .sponsors import SponsorBook
from .tokens import AllocationRequest, AllocationResult
from .treasury import DEFAULT_REFRESH_INTERVAL_S, Holdings, TreasurySnapshot

logger = logging.getLogger(__name__)


class AllocationService:
    def __init__(
        self,
        snapshot: TreasurySnapshot,
        sponsors: SponsorBook,
        engine: Optional[AllocationEngine] = None,
        *,
        refresh_interval_s: float = DEFAULT_REFRESH_INTERVAL_S,
        max_snapshot_age_s: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.snapshot = snapshot
        self.sponsors = sponsors
        self.engine = engine or AllocationEngine()
        self._max_age_s = max_snapshot_age_s
        self._clock = clock
        self._refresher = SnapshotRefresher(self.refresh, refresh_interval_s)

    def refresh(self) -> Holdings:
        """Refresh sponsors then treasury; sponsor failure never blocks the snapshot."""
        self.sponsors.refresh()
        return self.snapshot.refresh()

    def allocate(self, request: AllocationRequest) -> AllocationResult:
        holdings = self.snapshot.current
        if holdings is None:
            raise SnapshotUnavailableError("Treasury snapshot not loaded yet; call refresh() first")
        if self._max_age_s is not None:
            age = holdings.age(self._clock())
            if age > self._max_age_s:
                logger.warning(
                    "Treasury snapshot #%d is %.0fs old (max %.0fs); prices may be stale",
                    holdings.cycle, age, self._max_age_s,
                )
        return self.engine.select_tokens(request, holdings, self.sponsors.current)

    @property
    def is_running(self) -> bool:
        return self._refresher.is_running

    def start(self) -> None:
        self._refresher.start()

    def stop(self) -> None:
        self._refresher.stop()

    def __enter__(self) -> AllocationService:
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.stop()
