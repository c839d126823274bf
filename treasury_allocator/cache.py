"""
Time-boxed USD price cache with primary -> fallback failover.

Live entries (age < ttl) are served without touching the network. Missing or
expired addresses go to the primary source in one batch; whatever the primary
does not price is retried on the fallback one address at a time. Addresses no
source can price come back as 0.0 with source NONE and are not cached, so the
next lookup tries again.
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, replace
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .core.errors import PriceSourceError, PriceSourcesUnavailableError, PriceTransportError
from .core.units import normalize_address
from .providers.base import PriceSource, ProviderHealth
from .tokens import PriceSourceKind

logger = logging.getLogger(__name__)

DEFAULT_TTL_S = 300.0


@dataclass(frozen=True)
class CacheEntry:
    price_usd: float
    source: PriceSourceKind
    fetched_at: float


@dataclass(frozen=True)
class PriceLookup:
    """Result of one lookup. price_usd == 0.0 means no source could price the token."""

    price_usd: float
    from_cache: bool
    source: PriceSourceKind
    fetched_at: float

    @property
    def is_priced(self) -> bool:
        return self.price_usd > 0


@dataclass(frozen=True)
class CacheStats:
    total: int
    live: int
    expired: int
    ttl_s: float


class PriceCache:
    """
    Owns CacheEntry values keyed by lowercase address.

    Raises PriceSourcesUnavailableError only when the primary was unreachable and
    every fallback call in the same lookup was unreachable too. Any other failure
    degrades to an unpriced result.
    """

    def __init__(
        self,
        primary: PriceSource,
        fallback: Optional[PriceSource] = None,
        *,
        ttl_s: float = DEFAULT_TTL_S,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if ttl_s <= 0:
            raise ValueError(f"ttl_s must be > 0, got {ttl_s}")
        self._primary = primary
        self._fallback = fallback
        self._ttl_s = float(ttl_s)
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._health: Dict[str, ProviderHealth] = {
            primary.provider_name: ProviderHealth(provider_name=primary.provider_name)
        }
        if fallback is not None:
            self._health[fallback.provider_name] = ProviderHealth(provider_name=fallback.provider_name)

    @property
    def ttl_s(self) -> float:
        return self._ttl_s

    def price(self, identifier: str) -> PriceLookup:
        ident = normalize_address(identifier)
        return self.prices([ident])[ident]

    def prices(self, identifiers: Iterable[str]) -> Dict[str, PriceLookup]:
        """Look up many addresses; keys are normalized and returned in request order."""
        ids = list(dict.fromkeys(normalize_address(i) for i in identifiers))
        results: Dict[str, PriceLookup] = {}
        missing: List[str] = []

        now = self._clock()
        with self._lock:
            for ident in ids:
                entry = self._entries.get(ident)
                if entry is not None and now - entry.fetched_at < self._ttl_s:
                    results[ident] = PriceLookup(entry.price_usd, True, entry.source, entry.fetched_at)
                else:
                    missing.append(ident)

        if missing:
            logger.debug("price cache: %d hit(s), %d miss(es)", len(results), len(missing))
            results.update(self._fetch(missing))
        return {ident: results[ident] for ident in ids}

    def _fetch(self, missing: List[str]) -> Dict[str, PriceLookup]:
        out: Dict[str, PriceLookup] = {}
        primary_prices, primary_unreachable = self._call(self._primary, missing)
        for ident in missing:
            price = primary_prices.get(ident, 0.0)
            if price > 0:
                out[ident] = self._store(ident, price, PriceSourceKind.PRIMARY)

        unpriced = [ident for ident in missing if ident not in out]
        fallback_unreachable = 0
        for ident in unpriced:
            if self._fallback is not None:
                logger.warning(
                    "%s could not price %s, trying %s",
                    self._primary.provider_name, ident, self._fallback.provider_name,
                )
                prices, unreachable = self._call(self._fallback, [ident])
                if unreachable:
                    fallback_unreachable += 1
                price = prices.get(ident, 0.0)
                if price > 0:
                    out[ident] = self._store(ident, price, PriceSourceKind.FALLBACK)
                    continue
            else:
                fallback_unreachable += 1
            logger.warning("All price sources failed for %s", ident)
            out[ident] = PriceLookup(0.0, False, PriceSourceKind.NONE, self._clock())

        if primary_unreachable and unpriced and fallback_unreachable == len(unpriced):
            reasons = "; ".join(h.last_error or h.provider_name for h in self.health().values())
            raise PriceSourcesUnavailableError(
                f"No price source reachable for {len(unpriced)} token(s): {reasons}"
            )
        return out

    def _call(self, source: PriceSource, identifiers: List[str]) -> Tuple[Dict[str, float], bool]:
        """Call one source; returns (normalized prices, unreachable)."""
        try:
            raw = source.fetch_prices(identifiers)
        except PriceTransportError as exc:
            logger.warning("%s unreachable: %s", source.provider_name, exc)
            self._record(source.provider_name, str(exc))
            return {}, True
        except PriceSourceError as exc:
            logger.warning("%s fetch error: %s", source.provider_name, exc)
            self._record(source.provider_name, str(exc))
            return {}, False
        self._record(source.provider_name)
        prices: Dict[str, float] = {}
        for address, price in raw.items():
            try:
                prices[normalize_address(address)] = float(price or 0.0)
            except (TypeError, ValueError):
                logger.warning("%s returned unusable price %r for %s", source.provider_name, price, address)
        return prices, False

    def _record(self, provider_name: str, error: Optional[str] = None) -> None:
        with self._lock:
            health = self._health[provider_name]
            if error is None:
                health.record_success()
            else:
                health.record_failure(error)

    def _store(self, ident: str, price: float, source: PriceSourceKind) -> PriceLookup:
        fetched_at = self._clock()
        with self._lock:
            self._entries[ident] = CacheEntry(price, source, fetched_at)
        return PriceLookup(price, False, source, fetched_at)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        logger.info("Price cache cleared")

    def stats(self) -> CacheStats:
        now = self._clock()
        with self._lock:
            live = sum(1 for e in self._entries.values() if now - e.fetched_at < self._ttl_s)
            total = len(self._entries)
        return CacheStats(total=total, live=live, expired=total - live, ttl_s=self._ttl_s)

    def health(self) -> Dict[str, ProviderHealth]:
        """Return a point-in-time copy of each source's health."""
        with self._lock:
            return {name: replace(h) for name, h in self._health.items()}
