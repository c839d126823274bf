"""
Price source interface and health bookkeeping.

A price source turns token addresses into USD prices. The primary source is called
with a batch; the fallback is called with one address at a time. Sources raise
PriceSourceError / PriceTransportError on failure and report a missing or
non-positive price as 0.0 (or by omitting the address).
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional, Protocol, Sequence, runtime_checkable


class ProviderStatus(enum.Enum):
    """Health status of a price source."""

    OK = "OK"
    DEGRADED = "DEGRADED"
    DOWN = "DOWN"


@dataclass
class ProviderHealth:
    """Mutable health state for a single price source."""

    provider_name: str
    status: ProviderStatus = ProviderStatus.OK
    last_ok_at: Optional[str] = None
    fail_count: int = 0
    last_error: Optional[str] = None

    def record_success(self) -> None:
        self.status = ProviderStatus.OK
        self.fail_count = 0
        self.last_ok_at = datetime.now(timezone.utc).isoformat(timespec="seconds")
        self.last_error = None

    def record_failure(self, error: str) -> None:
        self.fail_count += 1
        self.last_error = error[:500]
        if self.fail_count >= 5:
            self.status = ProviderStatus.DOWN
        elif self.fail_count >= 2:
            self.status = ProviderStatus.DEGRADED


@runtime_checkable
class PriceSource(Protocol):
    """Protocol for USD price sources keyed by token address."""

    @property
    def provider_name(self) -> str: ...

    def fetch_prices(self, identifiers: Sequence[str]) -> Dict[str, float]:
        """Return {lowercase address: USD price} for the addresses the source could price."""
        ...
