"""
Treasury snapshot: balances + metadata + prices for a fixed watch-list.

refresh() builds a complete Holdings off to the side and publishes it with a
single reference swap, so readers see either the previous cycle or the new one,
never a mix. Holdings are immutable once published.
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Protocol, Sequence, Tuple

from .cache import PriceCache
from .core.units import NATIVE_TOKEN, normalize_address
from .tokens import PriceSourceKind, TokenMetadata, TokenRecord

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_INTERVAL_S = 300.0
# 0.00007 ETH sent with every wallet.
DEFAULT_NATIVE_PER_WALLET_WEI = 70_000_000_000_000


class TreasuryReader(Protocol):
    """Read-only view of the on-chain treasury."""

    def token_balance(self, identifier: str) -> int: ...

    def token_metadata(self, identifier: str) -> TokenMetadata: ...

    def native_balance(self) -> int: ...


@dataclass(frozen=True)
class NativeCurrency:
    symbol: str = "ETH"
    decimals: int = 18
    amount_per_wallet: int = DEFAULT_NATIVE_PER_WALLET_WEI


@dataclass(frozen=True, eq=False)
class Holdings:
    """One published treasury snapshot. Records iterate in watch-list order."""

    records: Mapping[str, TokenRecord]
    native: Optional[TokenRecord]
    taken_at: float
    cycle: int
    native_per_wallet: int = DEFAULT_NATIVE_PER_WALLET_WEI

    @classmethod
    def build(
        cls,
        records: Iterable[TokenRecord],
        *,
        native: Optional[TokenRecord] = None,
        taken_at: float = 0.0,
        cycle: int = 0,
        native_per_wallet: int = DEFAULT_NATIVE_PER_WALLET_WEI,
    ) -> Holdings:
        """Zero-balance records are dropped; later duplicates replace earlier ones."""
        ordered: Dict[str, TokenRecord] = {}
        for rec in records:
            if rec.treasury_balance > 0:
                ordered[rec.identifier] = rec
        return cls(
            records=MappingProxyType(ordered),
            native=native,
            taken_at=taken_at,
            cycle=cycle,
            native_per_wallet=native_per_wallet,
        )

    def __iter__(self) -> Iterator[TokenRecord]:
        return iter(self.records.values())

    def __len__(self) -> int:
        return len(self.records)

    @property
    def is_empty(self) -> bool:
        return not self.records

    def get(self, identifier: str) -> Optional[TokenRecord]:
        ident = normalize_address(identifier)
        if ident == NATIVE_TOKEN:
            return self.native
        return self.records.get(ident)

    def prices(self) -> Dict[str, float]:
        out = {rec.identifier: rec.price_usd for rec in self}
        if self.native is not None:
            out[self.native.identifier] = self.native.price_usd
        return out

    @property
    def total_value_usd(self) -> float:
        total = sum(rec.value_usd for rec in self)
        if self.native is not None:
            total += self.native.value_usd
        return total

    def age(self, now: float) -> float:
        return max(0.0, now - self.taken_at)


@dataclass
class _Holding:
    identifier: str
    balance: int
    metadata: TokenMetadata


class TreasurySnapshot:
    """Owns the current Holdings and rebuilds it on refresh()."""

    def __init__(
        self,
        reader: TreasuryReader,
        price_cache: PriceCache,
        watch_list: Sequence[str],
        *,
        native: Optional[NativeCurrency] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        ids = [normalize_address(a) for a in watch_list]
        self._watch_list: Tuple[str, ...] = tuple(i for i in dict.fromkeys(ids) if i != NATIVE_TOKEN)
        self._reader = reader
        self._prices = price_cache
        self._native = native
        self._clock = clock
        self._metadata: Dict[str, TokenMetadata] = {}
        self._current: Optional[Holdings] = None
        self._cycle = 0
        self._swap_lock = threading.Lock()
        self._refresh_lock = threading.Lock()

    @property
    def watch_list(self) -> Tuple[str, ...]:
        return self._watch_list

    @property
    def current(self) -> Optional[Holdings]:
        with self._swap_lock:
            return self._current

    def get_token(self, identifier: str) -> Optional[TokenRecord]:
        holdings = self.current
        return holdings.get(identifier) if holdings is not None else None

    def get_price(self, identifier: str) -> Optional[float]:
        rec = self.get_token(identifier)
        return rec.price_usd if rec is not None else None

    def get_balance(self, identifier: str) -> Optional[int]:
        rec = self.get_token(identifier)
        return rec.treasury_balance if rec is not None else None

    def refresh(self) -> Holdings:
        """
        Rebuild and publish a new Holdings.
        Concurrent refreshes run one after another. If pricing raises
        PriceSourcesUnavailableError, the previous Holdings stays published.
        """
        with self._refresh_lock:
            held = self._read_holdings()
            native_balance = self._read_native_balance()

            ids = [h.identifier for h in held]
            if native_balance is not None:
                ids.append(NATIVE_TOKEN)
            lookups = self._prices.prices(ids) if ids else {}

            records: List[TokenRecord] = []
            for h in held:
                lookup = lookups[h.identifier]
                records.append(
                    TokenRecord(
                        identifier=h.identifier,
                        symbol=h.metadata.symbol,
                        decimals=h.metadata.decimals,
                        treasury_balance=h.balance,
                        price_usd=lookup.price_usd,
                        price_source=lookup.source,
                        fetched_at=lookup.fetched_at,
                    )
                )

            native_rec: Optional[TokenRecord] = None
            if native_balance is not None and self._native is not None:
                lookup = lookups[NATIVE_TOKEN]
                native_rec = TokenRecord(
                    identifier=NATIVE_TOKEN,
                    symbol=self._native.symbol,
                    decimals=self._native.decimals,
                    treasury_balance=native_balance,
                    price_usd=lookup.price_usd,
                    price_source=lookup.source,
                    fetched_at=lookup.fetched_at,
                )

            self._cycle += 1
            holdings = Holdings.build(
                records,
                native=native_rec,
                taken_at=self._clock(),
                cycle=self._cycle,
                native_per_wallet=self._native.amount_per_wallet if self._native is not None else 0,
            )
            with self._swap_lock:
                self._current = holdings

        unpriced = [r.symbol for r in holdings if r.price_source is PriceSourceKind.NONE]
        logger.info(
            "Treasury snapshot #%d: %d token(s)%s, total value $%s",
            holdings.cycle,
            len(holdings),
            " + native" if holdings.native is not None else "",
            f"{holdings.total_value_usd:,.2f}",
        )
        if unpriced:
            logger.warning("Unpriced treasury tokens this cycle: %s", ", ".join(unpriced))
        return holdings

    def _read_holdings(self) -> List[_Holding]:
        held: List[_Holding] = []
        for ident in self._watch_list:
            try:
                balance = int(self._reader.token_balance(ident))
            except Exception as exc:
                logger.warning("Skipping %s: balance read failed: %s", ident, exc)
                continue
            if balance <= 0:
                continue
            metadata = self._metadata_for(ident)
            if metadata is None:
                continue
            held.append(_Holding(ident, balance, metadata))
        return held

    def _metadata_for(self, ident: str) -> Optional[TokenMetadata]:
        cached = self._metadata.get(ident)
        if cached is not None:
            return cached
        try:
            metadata = self._reader.token_metadata(ident)
        except Exception as exc:
            logger.warning("Skipping %s: metadata read failed: %s", ident, exc)
            return None
        self._metadata[ident] = metadata
        return metadata

    def _read_native_balance(self) -> Optional[int]:
        if self._native is None:
            return None
        try:
            return int(self._reader.native_balance())
        except Exception as exc:
            logger.warning("Native balance read failed: %s", exc)
            return None
