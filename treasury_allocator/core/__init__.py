"""
Stable facade: exception types and address/unit helpers. No I/O.
Do not add exports without updating __all__.
"""

from __future__ import annotations

from .errors import (
    AllocationError,
    ConfigError,
    InvalidTokenIdentifierError,
    NoPricedTokensError,
    NoTreasuryTokensError,
    PriceSourceError,
    PriceSourcesUnavailableError,
    PriceTransportError,
    SnapshotUnavailableError,
    TreasuryAllocatorError,
    VarianceToleranceError,
)
from .units import NATIVE_TOKEN, from_native_units, is_native, normalize_address, to_native_units

# Do not add exports without updating __all__.
__all__ = [
    "NATIVE_TOKEN",
    "AllocationError",
    "ConfigError",
    "InvalidTokenIdentifierError",
    "NoPricedTokensError",
    "NoTreasuryTokensError",
    "PriceSourceError",
    "PriceSourcesUnavailableError",
    "PriceTransportError",
    "SnapshotUnavailableError",
    "TreasuryAllocatorError",
    "VarianceToleranceError",
    "from_native_units",
    "is_native",
    "normalize_address",
    "to_native_units",
]
