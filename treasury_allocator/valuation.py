"""
Realized USD value of a selection, recomputed from prices.

validate_value is pure: it reads the lines and a price mapping and never touches
the cache or the snapshot. revalue is the reporting path that pulls current
prices from a PriceCache first.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, Iterable, Mapping, Tuple

from .core.units import native_value_usd, normalize_address
from .tokens import AllocationLine

if TYPE_CHECKING:
    from .cache import PriceCache


@dataclass(frozen=True)
class LineValue:
    identifier: str
    amount_native: int
    price_usd: float
    value_usd: float


@dataclass(frozen=True)
class Valuation:
    total_value_usd: float
    per_line: Tuple[LineValue, ...]

    def variance(self, target_value_usd: float) -> float:
        """(realized - target) / target."""
        if target_value_usd <= 0:
            raise ValueError(f"target must be > 0, got {target_value_usd}")
        return (self.total_value_usd - target_value_usd) / target_value_usd


def validate_value(lines: Iterable[AllocationLine], prices: Mapping[str, float]) -> Valuation:
    """Value each line at prices[identifier]; a missing price values the line at 0."""
    normalized: Dict[str, float] = {normalize_address(k): float(v) for k, v in prices.items()}
    per_line = []
    for line in lines:
        price = normalized.get(line.identifier, 0.0)
        per_line.append(
            LineValue(
                identifier=line.identifier,
                amount_native=line.amount_native,
                price_usd=price,
                value_usd=native_value_usd(line.amount_native, line.decimals, price),
            )
        )
    return Valuation(total_value_usd=sum(v.value_usd for v in per_line), per_line=tuple(per_line))


def revalue(lines: Iterable[AllocationLine], cache: PriceCache) -> Valuation:
    lines = list(lines)
    lookups = cache.prices(line.identifier for line in lines)
    return validate_value(lines, {ident: lookup.price_usd for ident, lookup in lookups.items()})
