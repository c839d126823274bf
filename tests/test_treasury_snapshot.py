"""
TreasurySnapshot: holdings are read, priced, and published atomically.
"""
from __future__ import annotations

import threading

import pytest

from tests.fakes import (
    DAI,
    DEGEN,
    USDC,
    FakeClock,
    FakePriceSource,
    FakePriceSourceAlwaysFail,
    FakeTreasuryReader,
)
from treasury_allocator.cache import PriceCache
from treasury_allocator.core.errors import PriceSourcesUnavailableError
from treasury_allocator.core.units import NATIVE_TOKEN
from treasury_allocator.tokens import PriceSourceKind, TokenRecord
from treasury_allocator.treasury import Holdings, NativeCurrency, TreasurySnapshot

PRICES = {USDC: 1.0, DEGEN: 0.001, DAI: 1.0, NATIVE_TOKEN: 3000.0}


class _Switchable(FakePriceSource):
    def __init__(self, prices):
        super().__init__("coingecko", prices)
        self.down = False

    def fetch_prices(self, identifiers):
        if self.down:
            return FakePriceSourceAlwaysFail("coingecko").fetch_prices(identifiers)
        return super().fetch_prices(identifiers)


def _snapshot(reader, prices=None, *, native=None, primary=None, clock=None):
    clock = clock or FakeClock()
    cache = PriceCache(primary or FakePriceSource("coingecko", PRICES if prices is None else prices), clock=clock)
    return TreasurySnapshot(reader, cache, [USDC, DEGEN, DAI], native=native, clock=clock)


def test_no_snapshot_before_first_refresh():
    snap = _snapshot(FakeTreasuryReader())
    assert snap.current is None
    assert snap.get_price(USDC) is None


def test_refresh_builds_priced_records_in_watch_list_order():
    reader = FakeTreasuryReader({USDC: 10_000 * 10**6, DEGEN: 10**9 * 10**18})
    snap = _snapshot(reader)
    holdings = snap.refresh()

    assert [r.symbol for r in holdings] == ["USDC", "DEGEN"]
    usdc = holdings.get(USDC)
    assert usdc.treasury_balance == 10_000 * 10**6
    assert usdc.decimals == 6
    assert usdc.price_usd == 1.0
    assert usdc.price_source is PriceSourceKind.PRIMARY
    assert holdings.cycle == 1
    assert snap.get_balance(DEGEN) == 10**27
    assert holdings.total_value_usd == pytest.approx(10_000 + 1_000_000)


def test_zero_balance_tokens_are_excluded():
    reader = FakeTreasuryReader({USDC: 5_000000, DAI: 0})
    holdings = _snapshot(reader).refresh()
    assert holdings.get(DAI) is None
    assert len(holdings) == 1
    assert DAI not in reader.metadata_calls


def test_unpriced_token_is_kept_with_zero_price(caplog):
    reader = FakeTreasuryReader({USDC: 5_000000, DEGEN: 10**18})
    with caplog.at_level("WARNING"):
        holdings = _snapshot(reader, {USDC: 1.0}).refresh()
    degen = holdings.get(DEGEN)
    assert degen.price_usd == 0.0
    assert not degen.is_priced
    assert "Unpriced treasury tokens this cycle: DEGEN" in caplog.text


def test_metadata_is_read_once_per_token():
    reader = FakeTreasuryReader({USDC: 5_000000})
    snap = _snapshot(reader)
    snap.refresh()
    snap.refresh()
    assert reader.metadata_calls == [USDC]


def test_failing_balance_or_metadata_skips_token():
    reader = FakeTreasuryReader(
        {USDC: 5_000000, DEGEN: 10**18, DAI: 10**18},
        failing_balances=[DEGEN],
        failing_metadata=[DAI],
    )
    holdings = _snapshot(reader).refresh()
    assert [r.identifier for r in holdings] == [USDC]


def test_native_balance_priced_separately():
    reader = FakeTreasuryReader({USDC: 5_000000}, native=10**18)
    holdings = _snapshot(reader, native=NativeCurrency()).refresh()
    assert holdings.native is not None
    assert holdings.native.symbol == "ETH"
    assert holdings.native.price_usd == 3000.0
    assert holdings.get(NATIVE_TOKEN) is holdings.native
    assert [r.identifier for r in holdings] == [USDC]
    assert holdings.native_per_wallet == 70_000_000_000_000


def test_native_ignored_without_native_currency():
    reader = FakeTreasuryReader({USDC: 5_000000}, native=10**18)
    holdings = _snapshot(reader).refresh()
    assert holdings.native is None
    assert holdings.native_per_wallet == 0


def test_refresh_picks_up_balance_changes():
    reader = FakeTreasuryReader({USDC: 5_000000})
    snap = _snapshot(reader)
    first = snap.refresh()
    reader.balances[USDC] = 1_000000
    second = snap.refresh()
    assert first.get(USDC).treasury_balance == 5_000000
    assert second.get(USDC).treasury_balance == 1_000000
    assert second.cycle == 2
    assert snap.current is second


def test_previous_snapshot_kept_when_prices_unreachable():
    clock = FakeClock()
    reader = FakeTreasuryReader({USDC: 5_000000})
    primary = _Switchable({USDC: 1.0})
    snap = _snapshot(reader, primary=primary, clock=clock)
    first = snap.refresh()

    primary.down = True
    clock.advance(600)
    with pytest.raises(PriceSourcesUnavailableError):
        snap.refresh()
    assert snap.current is first


def test_readers_never_see_partial_state():
    """Published Holdings are immutable: a reader's view is one whole cycle."""
    reader = FakeTreasuryReader({USDC: 7, DEGEN: 7})
    snap = _snapshot(reader)
    snap.refresh()
    seen = []
    stop = threading.Event()

    def read():
        while not stop.is_set():
            h = snap.current
            seen.append({r.identifier: r.treasury_balance for r in h})

    t = threading.Thread(target=read)
    t.start()
    for i in range(1, 20):
        reader.balances[USDC] = i
        reader.balances[DEGEN] = i
        snap.refresh()
    stop.set()
    t.join()
    for view in seen:
        assert len(set(view.values())) == 1


def test_holdings_are_read_only():
    holdings = Holdings.build([TokenRecord(USDC, "USDC", 6, 1)])
    with pytest.raises(TypeError):
        holdings.records[DAI] = TokenRecord(DAI, "DAI", 18, 1)


def test_holdings_age():
    holdings = Holdings.build([], taken_at=100.0)
    assert holdings.age(160.0) == 60.0
    assert holdings.is_empty
