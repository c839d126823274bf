"""
Address normalization and USD <-> native-unit conversion.

Native amounts are Python ints end to end. USD values are floats; the only place the
two meet is to_native_units, which scales the float token quantity through Decimal so
that 18-decimal amounts above 2**53 stay exact.
"""

from __future__ import annotations

import math
import re
from decimal import ROUND_FLOOR, Decimal, localcontext

from .errors import InvalidTokenIdentifierError

# uint256 needs 78 significant digits; leave headroom for the scale step.
_DECIMAL_PREC = 96

_ADDRESS_RE = re.compile(r"^0x[0-9a-f]{40}$")

NATIVE_TOKEN = "0x" + "0" * 40
MAX_UINT256 = 2**256 - 1


def normalize_address(value: str) -> str:
    """Lowercase a 20-byte hex address; raise InvalidTokenIdentifierError if malformed."""
    if not isinstance(value, str):
        raise InvalidTokenIdentifierError(f"token identifier must be a string, got {type(value).__name__}")
    addr = value.strip().lower()
    if not _ADDRESS_RE.match(addr):
        raise InvalidTokenIdentifierError(f"not a 20-byte hex address: {value!r}")
    return addr


def is_native(identifier: str) -> bool:
    return normalize_address(identifier) == NATIVE_TOKEN


def check_decimals(decimals: int) -> int:
    d = int(decimals)
    if d < 0 or d > 255:
        raise ValueError(f"decimals out of range 0..255: {decimals}")
    return d


def to_native_units(value_usd: float, price_usd: float, decimals: int) -> int:
    """
    floor(value_usd / price_usd * 10**decimals) as an int.
    Returns 0 for a non-positive value or price (unpriced tokens get nothing).
    """
    d = check_decimals(decimals)
    if value_usd <= 0 or price_usd <= 0:
        return 0
    quantity = value_usd / price_usd
    if not math.isfinite(quantity):
        raise ValueError(f"non-finite token quantity for value={value_usd} price={price_usd}")
    with localcontext() as ctx:
        ctx.prec = _DECIMAL_PREC
        scaled = Decimal(repr(quantity)).scaleb(d)
        return int(scaled.to_integral_value(rounding=ROUND_FLOOR))


def from_native_units(amount: int, decimals: int) -> float:
    """Human-readable token quantity for a native amount."""
    d = check_decimals(decimals)
    with localcontext() as ctx:
        ctx.prec = _DECIMAL_PREC
        return float(Decimal(int(amount)).scaleb(-d))


def native_value_usd(amount: int, decimals: int, price_usd: float) -> float:
    if price_usd <= 0 or amount <= 0:
        return 0.0
    return from_native_units(amount, decimals) * price_usd
