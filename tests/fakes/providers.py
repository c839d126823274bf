"""
Fake price sources, treasury reader, sponsor registry and clock for tests.

No live network or chain; used by the cache, snapshot, service and allocation tests.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Sequence

from treasury_allocator.core.errors import PriceSourceError, PriceTransportError
from treasury_allocator.tokens import TokenMetadata

# Deterministic wall clock start for reproducible tests.
FAKE_NOW = 1_700_000_000.0

# Base token addresses, lowercase.
USDC = "0x833589fcd6edb6e08f4c7c32d4f71b54bda02913"
DEGEN = "0x4ed4e862860bed51a9570b96d89af5e1b0efefed"
WETH = "0x4200000000000000000000000000000000000006"
DAI = "0x50c5725949a6f0c72e6c4a641f24049a917db0cb"
AERO = "0x940181a94a35a4569e4529a3cdfb74e38fd98631"

FAKE_METADATA: Dict[str, TokenMetadata] = {
    USDC: TokenMetadata("USDC", 6),
    DEGEN: TokenMetadata("DEGEN", 18),
    WETH: TokenMetadata("WETH", 18),
    DAI: TokenMetadata("DAI", 18),
    AERO: TokenMetadata("AERO", 18),
}


class FakeClock:
    """Manually advanced clock; call it like time.time."""

    def __init__(self, start: float = FAKE_NOW):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Price sources
# ---------------------------------------------------------------------------


class FakePriceSource:
    """Price source that answers from a dict and records every call. No network."""

    def __init__(self, name: str, prices: Dict[str, float] | None = None):
        self._name = name
        self.prices = dict(prices or {})
        self.calls: List[List[str]] = []

    @property
    def provider_name(self) -> str:
        return self._name

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def fetch_prices(self, identifiers: Sequence[str]) -> Dict[str, float]:
        self.calls.append(list(identifiers))
        return {i: self.prices[i] for i in identifiers if i in self.prices}


class FakePriceSourceAlwaysFail:
    """Price source that always raises; transport=True simulates an unreachable host."""

    def __init__(self, name: str = "fake_fail", *, transport: bool = True):
        self._name = name
        self._transport = transport
        self.call_count = 0

    @property
    def provider_name(self) -> str:
        return self._name

    def fetch_prices(self, identifiers: Sequence[str]) -> Dict[str, float]:
        self.call_count += 1
        if self._transport:
            raise PriceTransportError(f"{self._name}: ConnectionError: simulated outage")
        raise PriceSourceError(f"{self._name} API error: HTTP 500")


class FakePriceSourceFailNThenSucceed:
    """Fails the first N calls (unreachable), then answers from prices."""

    def __init__(self, name: str, fail_times: int, prices: Dict[str, float] | None = None):
        self._inner = FakePriceSource(name, prices)
        self._fail_times = fail_times
        self.call_count = 0

    @property
    def provider_name(self) -> str:
        return self._inner.provider_name

    def fetch_prices(self, identifiers: Sequence[str]) -> Dict[str, float]:
        self.call_count += 1
        if self.call_count <= self._fail_times:
            raise PriceTransportError(f"{self.provider_name} simulated failure #{self.call_count}")
        return self._inner.fetch_prices(identifiers)


# ---------------------------------------------------------------------------
# Treasury and sponsors
# ---------------------------------------------------------------------------


class FakeTreasuryReader:
    """In-memory treasury. Set balances/native between refreshes to simulate a new block."""

    def __init__(
        self,
        balances: Dict[str, int] | None = None,
        *,
        native: int = 0,
        metadata: Dict[str, TokenMetadata] | None = None,
        failing_balances: Iterable[str] = (),
        failing_metadata: Iterable[str] = (),
    ):
        self.balances = dict(balances or {})
        self.native = native
        self.metadata = dict(FAKE_METADATA if metadata is None else metadata)
        self.failing_balances = set(failing_balances)
        self.failing_metadata = set(failing_metadata)
        self.metadata_calls: List[str] = []

    def token_balance(self, identifier: str) -> int:
        if identifier in self.failing_balances:
            raise RuntimeError(f"execution reverted: {identifier}")
        return self.balances.get(identifier, 0)

    def token_metadata(self, identifier: str) -> TokenMetadata:
        self.metadata_calls.append(identifier)
        if identifier in self.failing_metadata or identifier not in self.metadata:
            raise RuntimeError(f"no metadata for {identifier}")
        return self.metadata[identifier]

    def native_balance(self) -> int:
        return self.native


class FakeSponsorRegistry:
    def __init__(self, sponsors: Iterable[str] = (), *, fail: bool = False):
        self.sponsors = list(sponsors)
        self.fail = fail
        self.call_count = 0

    def active_sponsors(self) -> List[str]:
        self.call_count += 1
        if self.fail:
            raise RuntimeError("eth_call failed: simulated RPC outage")
        return list(self.sponsors)
