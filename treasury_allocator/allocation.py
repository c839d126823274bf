"""
Token selection: turn a target USD value into (token, native amount) lines.

The engine is a pure function of (request, holdings, sponsors). It never calls
the network; prices come from the published Holdings.

Passes:
1. Sponsor pass: sponsor_share of the target split evenly across priced sponsors.
2. Other pass: the rest split evenly across up to max_other_tokens priced
   non-sponsor tokens drawn by a TokenPicker.
3. Fallback: if nothing was allocated, the priced holding with the largest USD
   value covers the whole target.

Every amount is clamped to the treasury balance; a clamped line is flagged partial.
"""

from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence

from .core.errors import (
    AllocationError,
    ConfigError,
    NoPricedTokensError,
    NoTreasuryTokensError,
    VarianceToleranceError,
)
from .core.seeding import SALT_OTHER_TOKENS, rng_for, rng_from_seed
from .core.units import native_value_usd, to_native_units
from .tokens import (
    AllocationLine,
    AllocationRequest,
    AllocationResult,
    LineRole,
    SponsorSet,
    TokenRecord,
)
from .treasury import Holdings
from .valuation import validate_value

logger = logging.getLogger(__name__)


class SponsorBudgetPolicy(enum.Enum):
    """What happens to the sponsor half when the sponsor pass allocates nothing."""

    REDISTRIBUTE = "redistribute"
    DROP = "drop"


@dataclass(frozen=True)
class AllocationPolicy:
    sponsor_share: float = 0.5
    max_other_tokens: int = 3
    sponsor_budget_policy: SponsorBudgetPolicy = SponsorBudgetPolicy.REDISTRIBUTE
    variance_tolerance: float = 0.05
    reject_out_of_tolerance: bool = False
    allow_unpriced_fallback: bool = False

    def __post_init__(self) -> None:
        if not 0.0 <= self.sponsor_share <= 1.0:
            raise ConfigError(f"sponsor_share must be within [0, 1], got {self.sponsor_share}")
        if self.max_other_tokens < 0:
            raise ConfigError(f"max_other_tokens must be >= 0, got {self.max_other_tokens}")
        if self.variance_tolerance < 0:
            raise ConfigError(f"variance_tolerance must be >= 0, got {self.variance_tolerance}")
        if not isinstance(self.sponsor_budget_policy, SponsorBudgetPolicy):
            try:
                policy = SponsorBudgetPolicy(str(self.sponsor_budget_policy).lower())
            except ValueError as exc:
                raise ConfigError(f"unknown sponsor_budget_policy: {self.sponsor_budget_policy!r}") from exc
            object.__setattr__(self, "sponsor_budget_policy", policy)


# ---------------------------------------------------------------------------
# Token pickers for the other pass
# ---------------------------------------------------------------------------


class TokenPicker(Protocol):
    def pick(
        self, candidates: Sequence[TokenRecord], k: int, request: AllocationRequest
    ) -> List[TokenRecord]:
        """Return k distinct records from candidates."""
        ...


class RandomTokenPicker:
    """Uniform draw without replacement from one shared Generator."""

    def __init__(self, seed: Optional[int] = None) -> None:
        self._rng = rng_from_seed(seed)
        self._lock = threading.Lock()

    def pick(
        self, candidates: Sequence[TokenRecord], k: int, request: AllocationRequest
    ) -> List[TokenRecord]:
        k = min(k, len(candidates))
        if k <= 0:
            return []
        with self._lock:
            idx = self._rng.choice(len(candidates), size=k, replace=False)
        return [candidates[int(i)] for i in idx]


class RequestSeededTokenPicker:
    """
    Uniform draw seeded from the request key, so replaying a request reproduces
    its draw. Requests without an id fall back to a non-deterministic draw.
    """

    def __init__(self, salt: str = SALT_OTHER_TOKENS) -> None:
        self._salt = salt
        self._unkeyed = RandomTokenPicker()

    def pick(
        self, candidates: Sequence[TokenRecord], k: int, request: AllocationRequest
    ) -> List[TokenRecord]:
        key = request.request_key
        if key is None:
            return self._unkeyed.pick(candidates, k, request)
        k = min(k, len(candidates))
        if k <= 0:
            return []
        idx = rng_for(key, self._salt).choice(len(candidates), size=k, replace=False)
        return [candidates[int(i)] for i in idx]


class OrderedTokenPicker:
    """First k candidates in holdings order. Deterministic; for dry runs and tests."""

    def pick(
        self, candidates: Sequence[TokenRecord], k: int, request: AllocationRequest
    ) -> List[TokenRecord]:
        return list(candidates[: max(k, 0)])


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class AllocationEngine:
    """Stateless apart from its policy and picker; safe to share across threads."""

    def __init__(
        self,
        policy: Optional[AllocationPolicy] = None,
        picker: Optional[TokenPicker] = None,
    ) -> None:
        self.policy = policy or AllocationPolicy()
        self.picker = picker or RandomTokenPicker()

    def select_tokens(
        self,
        request: AllocationRequest,
        holdings: Holdings,
        sponsors: Optional[SponsorSet] = None,
    ) -> AllocationResult:
        sponsors = sponsors if sponsors is not None else SponsorSet.empty()
        records = list(holdings)
        if not records:
            raise NoTreasuryTokensError("No tokens available in treasury")

        target = request.target_value_usd
        sponsored = [r for r in records if r.identifier in sponsors]
        others = [r for r in records if r.identifier not in sponsors]
        logger.info(
            "Selecting tokens for tier %s: target $%.2f, %d sponsor / %d other token(s) in treasury",
            request.tier, target, len(sponsored), len(others),
        )
        if len(sponsors) > 0 and not sponsored:
            logger.warning("Sponsors exist but none have balance in treasury")

        sponsor_budget = target * self.policy.sponsor_share
        other_budget = target - sponsor_budget

        lines: List[AllocationLine] = self._sponsor_pass(sponsored, sponsor_budget)
        if not lines and sponsor_budget > 0:
            if self.policy.sponsor_budget_policy is SponsorBudgetPolicy.REDISTRIBUTE:
                logger.info("No sponsor allocation; redistributing $%.2f to other tokens", sponsor_budget)
                other_budget += sponsor_budget
            else:
                logger.warning("No sponsor allocation; dropping sponsor budget of $%.2f", sponsor_budget)

        lines.extend(self._other_pass(others, other_budget, request))

        if not lines:
            logger.warning("No tokens selected, using fallback")
            lines.append(self._fallback_line(records, target))

        valuation = validate_value(lines, holdings.prices())
        realized = valuation.total_value_usd
        result = AllocationResult(
            tier=request.tier,
            target_value_usd=target,
            lines=tuple(lines),
            realized_value_usd=realized,
            variance_from_target=valuation.variance(target),
            variance_tolerance=self.policy.variance_tolerance,
            native_line=self._native_line(holdings),
        )

        logger.info(
            "Selected %d token(s): total value $%.2f (target $%.2f, variance %+.2f%%)",
            len(result.lines), realized, target, result.variance_from_target * 100,
        )
        if result.out_of_tolerance:
            msg = (
                f"Allocation variance {result.variance_from_target:+.2%} exceeds "
                f"tolerance {self.policy.variance_tolerance:.2%} for tier {request.tier}"
            )
            if self.policy.reject_out_of_tolerance:
                raise VarianceToleranceError(msg, result.variance_from_target)
            logger.warning(msg)
        return result

    def _sponsor_pass(self, sponsored: List[TokenRecord], budget: float) -> List[AllocationLine]:
        if not sponsored or budget <= 0:
            return []
        priced = []
        for rec in sponsored:
            if rec.is_priced:
                priced.append(rec)
            else:
                logger.warning("Skipping sponsor %s: price unavailable", rec.symbol)
        if not priced:
            return []
        per_sponsor = budget / len(priced)
        lines = []
        for rec in priced:
            line = self._line_for(rec, per_sponsor, LineRole.SPONSOR)
            if line is not None:
                lines.append(line)
        return lines

    def _other_pass(
        self, others: List[TokenRecord], budget: float, request: AllocationRequest
    ) -> List[AllocationLine]:
        if budget <= 0:
            return []
        candidates = [r for r in others if r.is_priced]
        for rec in others:
            if not rec.is_priced:
                logger.warning("Skipping %s: price unavailable", rec.symbol)
        chosen = self.picker.pick(candidates, min(self.policy.max_other_tokens, len(candidates)), request)
        if not chosen:
            return []
        per_token = budget / len(chosen)
        lines = []
        for rec in chosen:
            line = self._line_for(rec, per_token, LineRole.OTHER)
            if line is not None:
                lines.append(line)
        return lines

    def _line_for(self, rec: TokenRecord, value_usd: float, role: LineRole) -> Optional[AllocationLine]:
        amount = to_native_units(value_usd, rec.price_usd, rec.decimals)
        partial = False
        if amount > rec.treasury_balance:
            logger.warning(
                "Insufficient balance for %s: need %d, have %d; using all available",
                rec.symbol, amount, rec.treasury_balance,
            )
            amount = rec.treasury_balance
            partial = True
        if amount <= 0:
            logger.warning("Skipping %s: $%.6f is below one native unit", rec.symbol, value_usd)
            return None
        return AllocationLine(
            identifier=rec.identifier,
            symbol=rec.symbol,
            decimals=rec.decimals,
            amount_native=amount,
            price_usd=rec.price_usd,
            value_usd=native_value_usd(amount, rec.decimals, rec.price_usd),
            role=role,
            partial=partial,
        )

    def _fallback_line(self, records: List[TokenRecord], target: float) -> AllocationLine:
        priced = sorted((r for r in records if r.is_priced), key=lambda r: r.value_usd, reverse=True)
        for rec in priced:
            line = self._line_for(rec, target, LineRole.FALLBACK)
            if line is not None:
                return line

        # First watch-list token at $1 parity; unpriced ones only when allowed.
        eligible = records if self.policy.allow_unpriced_fallback else [r for r in records if r.is_priced]
        if not eligible:
            raise NoPricedTokensError(f"None of {len(records)} treasury token(s) could be priced")
        rec = eligible[0]
        wanted = to_native_units(target, 1.0, rec.decimals)
        amount = min(wanted, rec.treasury_balance)
        if amount <= 0:
            raise AllocationError(f"Fallback token {rec.symbol} yields no native units for ${target:.2f}")
        logger.warning("Fallback to %s at $1 parity: %d native units", rec.symbol, amount)
        return AllocationLine(
            identifier=rec.identifier,
            symbol=rec.symbol,
            decimals=rec.decimals,
            amount_native=amount,
            price_usd=rec.price_usd,
            value_usd=native_value_usd(amount, rec.decimals, rec.price_usd),
            role=LineRole.FALLBACK,
            partial=wanted > rec.treasury_balance,
        )

    def _native_line(self, holdings: Holdings) -> Optional[AllocationLine]:
        native = holdings.native
        if native is None or holdings.native_per_wallet <= 0:
            return None
        amount = min(holdings.native_per_wallet, native.treasury_balance)
        if amount <= 0:
            logger.warning("Treasury has no %s for the per-wallet grant", native.symbol)
            return None
        return AllocationLine(
            identifier=native.identifier,
            symbol=native.symbol,
            decimals=native.decimals,
            amount_native=amount,
            price_usd=native.price_usd,
            value_usd=native_value_usd(amount, native.decimals, native.price_usd),
            role=LineRole.NATIVE,
            partial=amount < holdings.native_per_wallet,
        )
