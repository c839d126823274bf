"""
Top-level public API surface. Stable facades only.
Canonical entrypoint: import treasury_allocator; build a service with
treasury_allocator.create_service() or wire the pieces by hand.
Does not import cli or onchain (web3 is loaded only when the service needs it).
"""

from __future__ import annotations

from . import core
from ._version import __version__
from .allocation import AllocationEngine, AllocationPolicy, SponsorBudgetPolicy
from .cache import PriceCache, PriceLookup
from .defaults import create_price_cache, create_service
from .service import AllocationService
from .sponsors import SponsorBook, StaticSponsorRegistry
from .tokens import AllocationLine, AllocationRequest, AllocationResult, SponsorSet, TokenRecord
from .treasury import Holdings, NativeCurrency, TreasurySnapshot
from .valuation import revalue, validate_value

# Do not add exports without updating __all__.
__all__ = [
    "__version__",
    "AllocationEngine",
    "AllocationLine",
    "AllocationPolicy",
    "AllocationRequest",
    "AllocationResult",
    "AllocationService",
    "Holdings",
    "NativeCurrency",
    "PriceCache",
    "PriceLookup",
    "SponsorBook",
    "SponsorBudgetPolicy",
    "SponsorSet",
    "StaticSponsorRegistry",
    "TokenRecord",
    "TreasurySnapshot",
    "core",
    "create_price_cache",
    "create_service",
    "revalue",
    "validate_value",
]
