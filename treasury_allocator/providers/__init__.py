"""
USD price sources for treasury tokens.

CoinGecko answers batched lookups (primary); Moralis answers one address at a
time (fallback). Each source paces itself through its own RateGate.
"""

from __future__ import annotations

from .base import PriceSource, ProviderHealth, ProviderStatus
from .coingecko import CoinGeckoPriceSource
from .moralis import MoralisPriceSource
from .ratelimit import RateGate

__all__ = [
    "CoinGeckoPriceSource",
    "MoralisPriceSource",
    "PriceSource",
    "ProviderHealth",
    "ProviderStatus",
    "RateGate",
]
