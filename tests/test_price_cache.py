"""
PriceCache: TTL hits and misses, primary -> fallback failover, unpriced handling.

Verifies that:
- A price fetched at T is served from cache for the whole of [T, T+TTL)
- Exactly one new fetch happens at or after T+TTL
- The fallback is tried per address only for what the primary could not price
- Unpriced results are 0.0 and never cached
- PriceSourcesUnavailableError only when every source was unreachable
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
    FakePriceSourceFailNThenSucceed,
)
from treasury_allocator.cache import PriceCache
from treasury_allocator.core.errors import InvalidTokenIdentifierError, PriceSourcesUnavailableError
from treasury_allocator.providers.base import ProviderStatus
from treasury_allocator.tokens import PriceSourceKind

TTL = 300.0


def _cache(primary, fallback=None, clock=None):
    return PriceCache(primary, fallback, ttl_s=TTL, clock=clock or FakeClock())


class TestTtl:
    def test_served_from_cache_within_ttl(self):
        clock = FakeClock()
        primary = FakePriceSource("coingecko", {USDC: 1.0})
        cache = _cache(primary, clock=clock)

        first = cache.price(USDC)
        assert first.price_usd == 1.0
        assert not first.from_cache
        assert first.source is PriceSourceKind.PRIMARY

        for dt in (1.0, 150.0, 148.999):
            clock.advance(dt)
            hit = cache.price(USDC)
            assert hit.from_cache
            assert hit.price_usd == 1.0
        assert primary.call_count == 1

    def test_exactly_one_refetch_at_ttl(self):
        clock = FakeClock()
        primary = FakePriceSource("coingecko", {USDC: 1.0})
        cache = _cache(primary, clock=clock)
        cache.price(USDC)

        clock.advance(TTL)
        primary.prices[USDC] = 0.999
        refreshed = cache.price(USDC)
        assert not refreshed.from_cache
        assert refreshed.price_usd == 0.999
        assert primary.call_count == 2

        again = cache.price(USDC)
        assert again.from_cache
        assert primary.call_count == 2

    def test_batch_only_fetches_misses(self):
        clock = FakeClock()
        primary = FakePriceSource("coingecko", {USDC: 1.0, DEGEN: 0.001})
        cache = _cache(primary, clock=clock)
        cache.price(USDC)
        out = cache.prices([USDC, DEGEN])
        assert list(out) == [USDC, DEGEN]
        assert out[USDC].from_cache
        assert not out[DEGEN].from_cache
        assert primary.calls[-1] == [DEGEN]

    def test_keys_are_normalized(self):
        cache = _cache(FakePriceSource("coingecko", {USDC: 1.0}))
        out = cache.prices([USDC.upper().replace("0X", "0x")])
        assert list(out) == [USDC]

    def test_invalid_identifier_rejected(self):
        cache = _cache(FakePriceSource("coingecko"))
        with pytest.raises(InvalidTokenIdentifierError):
            cache.price("USDC")


class TestFailover:
    def test_fallback_only_for_unpriced(self):
        primary = FakePriceSource("coingecko", {USDC: 1.0})
        fallback = FakePriceSource("moralis", {DEGEN: 0.0012})
        cache = _cache(primary, fallback)

        out = cache.prices([USDC, DEGEN])
        assert out[USDC].source is PriceSourceKind.PRIMARY
        assert out[DEGEN].source is PriceSourceKind.FALLBACK
        assert out[DEGEN].price_usd == 0.0012
        assert fallback.calls == [[DEGEN]]

    def test_fallback_called_one_address_at_a_time(self):
        primary = FakePriceSourceAlwaysFail("coingecko", transport=False)
        fallback = FakePriceSource("moralis", {USDC: 1.0, DEGEN: 0.001})
        cache = _cache(primary, fallback)
        cache.prices([USDC, DEGEN])
        assert fallback.calls == [[USDC], [DEGEN]]

    def test_primary_unreachable_fallback_prices(self):
        primary = FakePriceSourceAlwaysFail("coingecko")
        fallback = FakePriceSource("moralis", {USDC: 1.0})
        cache = _cache(primary, fallback)
        lookup = cache.price(USDC)
        assert lookup.price_usd == 1.0
        assert lookup.source is PriceSourceKind.FALLBACK

    def test_fallback_price_is_cached(self):
        primary = FakePriceSource("coingecko", {})
        fallback = FakePriceSource("moralis", {DAI: 1.0})
        cache = _cache(primary, fallback)
        cache.price(DAI)
        assert cache.price(DAI).from_cache
        assert fallback.call_count == 1

    def test_warns_when_falling_back(self, caplog):
        cache = _cache(FakePriceSource("coingecko"), FakePriceSource("moralis", {DAI: 1.0}))
        with caplog.at_level("WARNING"):
            cache.price(DAI)
        assert "trying moralis" in caplog.text


class TestUnpriced:
    def test_unpriced_is_zero_and_not_cached(self):
        primary = FakePriceSource("coingecko")
        fallback = FakePriceSource("moralis")
        cache = _cache(primary, fallback)

        lookup = cache.price(DEGEN)
        assert lookup.price_usd == 0.0
        assert not lookup.is_priced
        assert lookup.source is PriceSourceKind.NONE
        assert cache.stats().total == 0

        cache.price(DEGEN)
        assert primary.call_count == 2

    def test_zero_price_from_source_is_not_cached(self):
        primary = FakePriceSource("coingecko", {USDC: 0.0})
        cache = _cache(primary)
        assert cache.price(USDC).price_usd == 0.0
        assert cache.stats().total == 0

    def test_api_errors_degrade_to_unpriced(self):
        primary = FakePriceSourceAlwaysFail("coingecko", transport=False)
        fallback = FakePriceSourceAlwaysFail("moralis", transport=False)
        cache = _cache(primary, fallback)
        assert cache.price(USDC).price_usd == 0.0

    def test_both_unreachable_raises(self):
        cache = _cache(FakePriceSourceAlwaysFail("coingecko"), FakePriceSourceAlwaysFail("moralis"))
        with pytest.raises(PriceSourcesUnavailableError):
            cache.prices([USDC, DEGEN])

    def test_primary_unreachable_without_fallback_raises(self):
        cache = _cache(FakePriceSourceAlwaysFail("coingecko"))
        with pytest.raises(PriceSourcesUnavailableError):
            cache.price(USDC)

    def test_cache_hits_survive_outage(self):
        clock = FakeClock()
        primary = FakePriceSourceFailNThenSucceed("coingecko", fail_times=0, prices={USDC: 1.0})
        cache = _cache(primary, FakePriceSourceAlwaysFail("moralis"), clock=clock)
        cache.price(USDC)
        primary._fail_times = 10
        clock.advance(10)
        assert cache.price(USDC).price_usd == 1.0


class TestHousekeeping:
    def test_stats_and_clear(self):
        clock = FakeClock()
        cache = _cache(FakePriceSource("coingecko", {USDC: 1.0, DEGEN: 0.001}), clock=clock)
        cache.price(USDC)
        clock.advance(200)
        cache.price(DEGEN)
        clock.advance(150)

        stats = cache.stats()
        assert stats.total == 2
        assert stats.live == 1
        assert stats.expired == 1
        assert stats.ttl_s == TTL

        cache.clear()
        assert cache.stats().total == 0

    def test_health_tracks_failures(self):
        primary = FakePriceSourceAlwaysFail("coingecko", transport=False)
        fallback = FakePriceSource("moralis", {USDC: 1.0})
        cache = _cache(primary, fallback)
        cache.price(USDC)
        cache.clear()
        cache.price(USDC)
        health = cache.health()
        assert health["coingecko"].status is ProviderStatus.DEGRADED
        assert health["coingecko"].fail_count == 2
        assert health["moralis"].status is ProviderStatus.OK

    def test_health_is_a_snapshot(self):
        cache = _cache(FakePriceSourceAlwaysFail("coingecko", transport=False), FakePriceSource("moralis", {USDC: 1.0}))
        cache.price(USDC)
        before = cache.health()
        cache.clear()
        cache.price(USDC)
        assert before["coingecko"].fail_count == 1
        assert cache.health()["coingecko"].fail_count == 2

    def test_concurrent_failures_are_all_counted(self):
        cache = _cache(FakePriceSourceAlwaysFail("coingecko", transport=False), FakePriceSource("moralis"))
        n_threads, per_thread = 8, 25

        def worker():
            for _ in range(per_thread):
                cache.price(USDC)

        threads = [threading.Thread(target=worker) for _ in range(n_threads)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        health = cache.health()
        assert health["coingecko"].fail_count == n_threads * per_thread
        assert health["coingecko"].status is ProviderStatus.DOWN

    def test_ttl_must_be_positive(self):
        with pytest.raises(ValueError):
            PriceCache(FakePriceSource("coingecko"), ttl_s=0)
