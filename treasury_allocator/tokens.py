"""
Data contracts shared by the cache, snapshot, engine, and validator.

All records are frozen dataclasses keyed on the lowercase token address. Native
amounts and treasury balances are Python ints; prices and USD values are floats.
"""

from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, List, Optional, Tuple

from .core.errors import InvalidTokenIdentifierError
from .core.units import (
    MAX_UINT256,
    check_decimals,
    from_native_units,
    native_value_usd,
    normalize_address,
)

logger = logging.getLogger(__name__)

# On-chain estimatedValue is denominated in USDC (6 decimals).
USDC_DECIMALS = 6


class PriceSourceKind(enum.Enum):
    """Which upstream answered for a price."""

    PRIMARY = "primary"
    FALLBACK = "fallback"
    NONE = "none"


@dataclass(frozen=True)
class TokenMetadata:
    symbol: str
    decimals: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "decimals", check_decimals(self.decimals))


@dataclass(frozen=True)
class TokenRecord:
    """One treasury holding with its latest price. price_usd == 0 means unpriced."""

    identifier: str
    symbol: str
    decimals: int
    treasury_balance: int
    price_usd: float = 0.0
    price_source: PriceSourceKind = PriceSourceKind.NONE
    fetched_at: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "identifier", normalize_address(self.identifier))
        object.__setattr__(self, "decimals", check_decimals(self.decimals))
        balance = int(self.treasury_balance)
        if balance < 0 or balance > MAX_UINT256:
            raise ValueError(f"treasury balance out of uint256 range: {self.treasury_balance}")
        object.__setattr__(self, "treasury_balance", balance)
        price = float(self.price_usd)
        if not math.isfinite(price) or price < 0:
            raise ValueError(f"price must be a finite non-negative number: {self.price_usd}")
        object.__setattr__(self, "price_usd", price)

    @property
    def is_priced(self) -> bool:
        return self.price_usd > 0

    @property
    def balance_units(self) -> float:
        return from_native_units(self.treasury_balance, self.decimals)

    @property
    def value_usd(self) -> float:
        return native_value_usd(self.treasury_balance, self.decimals, self.price_usd)


@dataclass(frozen=True)
class SponsorSet:
    """Token addresses currently designated as sponsored. Possibly empty."""

    members: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def of(cls, identifiers: Iterable[str]) -> SponsorSet:
        """Normalize identifiers; malformed entries are dropped with a warning."""
        out = set()
        for ident in identifiers:
            try:
                out.add(normalize_address(ident))
            except InvalidTokenIdentifierError as exc:
                logger.warning("Ignoring malformed sponsor identifier: %s", exc)
        return cls(frozenset(out))

    @classmethod
    def empty(cls) -> SponsorSet:
        return cls(frozenset())

    def __contains__(self, identifier: object) -> bool:
        if not isinstance(identifier, str):
            return False
        return identifier.strip().lower() in self.members

    def __len__(self) -> int:
        return len(self.members)

    def __iter__(self):
        return iter(sorted(self.members))


@dataclass(frozen=True)
class AllocationRequest:
    tier: int
    target_value_usd: float
    request_id: Optional[int] = None

    def __post_init__(self) -> None:
        target = float(self.target_value_usd)
        if not math.isfinite(target) or target <= 0:
            raise ValueError(f"target_value_usd must be > 0, got {self.target_value_usd}")
        object.__setattr__(self, "target_value_usd", target)

    @classmethod
    def from_estimated_value(
        cls,
        tier: int,
        estimated_value: int,
        *,
        request_id: Optional[int] = None,
        decimals: int = USDC_DECIMALS,
    ) -> AllocationRequest:
        """Build from the integer estimatedValue carried by the purchase event."""
        return cls(
            tier=int(tier),
            target_value_usd=from_native_units(int(estimated_value), decimals),
            request_id=request_id,
        )

    @property
    def request_key(self) -> Optional[str]:
        """Stable key for replayable draws; None when the request has no id."""
        if self.request_id is None:
            return None
        return f"tier:{self.tier}|request:{self.request_id}"


class LineRole(enum.Enum):
    SPONSOR = "sponsor"
    OTHER = "other"
    FALLBACK = "fallback"
    NATIVE = "native"


@dataclass(frozen=True)
class AllocationLine:
    identifier: str
    symbol: str
    decimals: int
    amount_native: int
    price_usd: float
    value_usd: float
    role: LineRole
    partial: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.amount_native, int) or isinstance(self.amount_native, bool):
            raise TypeError(f"amount_native must be int, got {type(self.amount_native).__name__}")
        if self.amount_native < 0:
            raise ValueError(f"amount_native must be non-negative, got {self.amount_native}")


@dataclass(frozen=True)
class AllocationResult:
    """
    Ordered selection for one request. variance_from_target is informational;
    out_of_tolerance flags |variance| beyond the configured tolerance.
    """

    tier: int
    target_value_usd: float
    lines: Tuple[AllocationLine, ...]
    realized_value_usd: float
    variance_from_target: float
    variance_tolerance: float = 0.05
    native_line: Optional[AllocationLine] = None

    @property
    def tokens(self) -> List[str]:
        return [line.identifier for line in self.lines]

    @property
    def amounts(self) -> List[int]:
        return [line.amount_native for line in self.lines]

    @property
    def has_partial(self) -> bool:
        return any(line.partial for line in self.lines)

    @property
    def out_of_tolerance(self) -> bool:
        return abs(self.variance_from_target) > self.variance_tolerance
