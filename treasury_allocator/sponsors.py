"""
Sponsor tokens: which treasury tokens get the preferential half of each allocation.

The registry is an external collaborator. A failed fetch is never fatal: the book
publishes an empty SponsorSet and allocation proceeds as if nobody sponsored.
"""
from __future__ import annotations

import logging
import threading
from typing import Iterable, List, Optional, Protocol

from .tokens import SponsorSet

logger = logging.getLogger(__name__)


class SponsorRegistry(Protocol):
    def active_sponsors(self) -> List[str]: ...


class StaticSponsorRegistry:
    """Fixed sponsor list (from config or tests)."""

    def __init__(self, identifiers: Iterable[str] = ()) -> None:
        self._identifiers = list(identifiers)

    def active_sponsors(self) -> List[str]:
        return list(self._identifiers)


class SponsorBook:
    """Holds the latest SponsorSet; refreshed independently of allocation requests."""

    def __init__(self, registry: Optional[SponsorRegistry] = None) -> None:
        self._registry = registry
        self._current = SponsorSet.empty()
        self._lock = threading.Lock()

    @property
    def current(self) -> SponsorSet:
        with self._lock:
            return self._current

    def refresh(self) -> SponsorSet:
        if self._registry is None:
            sponsors = SponsorSet.empty()
        else:
            try:
                sponsors = SponsorSet.of(self._registry.active_sponsors() or [])
            except Exception as exc:
                logger.warning("Could not fetch sponsors, treating as none: %s", exc)
                sponsors = SponsorSet.empty()
        with self._lock:
            self._current = sponsors
        logger.info("Active sponsors: %d", len(sponsors))
        return sponsors
