"""
Moralis price source (fallback).

One address per call:
  GET {base}/erc20/{address}/price?chain={chain}
The native currency is priced through its wrapped token.
"""
from __future__ import annotations

import logging
from typing import Dict, Optional, Sequence

from ..core.errors import PriceSourceError
from ..core.units import NATIVE_TOKEN, normalize_address
from .http import HTTP_TIMEOUT_S, get_json, to_float
from .ratelimit import RateGate

logger = logging.getLogger(__name__)

MORALIS_BASE_URL = "https://deep-index.moralis.io/api/v2.2"
MORALIS_MIN_INTERVAL_S = 0.5
# WETH on Base.
DEFAULT_WRAPPED_NATIVE = "0x4200000000000000000000000000000000000006"


class MoralisPriceSource:
    """Fetch the USD price of one ERC-20 per request."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        chain: str = "base",
        wrapped_native: str = DEFAULT_WRAPPED_NATIVE,
        base_url: str = MORALIS_BASE_URL,
        timeout_s: float = HTTP_TIMEOUT_S,
        gate: Optional[RateGate] = None,
    ) -> None:
        if not api_key:
            logger.warning("Moralis API key not configured; fallback lookups will be rejected")
        self._api_key = api_key or ""
        self._chain = chain
        self._wrapped_native = normalize_address(wrapped_native)
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s
        self._gate = gate or RateGate("moralis", MORALIS_MIN_INTERVAL_S)

    @property
    def provider_name(self) -> str:
        return "moralis"

    def fetch_prices(self, identifiers: Sequence[str]) -> Dict[str, float]:
        prices: Dict[str, float] = {}
        for identifier in dict.fromkeys(normalize_address(i) for i in identifiers):
            prices[identifier] = self._fetch_one(identifier)
        return prices

    def _fetch_one(self, address: str) -> float:
        query = self._wrapped_native if address == NATIVE_TOKEN else address
        data = get_json(
            self.provider_name,
            f"{self._base_url}/erc20/{query}/price",
            params={"chain": self._chain},
            headers={"accept": "application/json", "X-API-Key": self._api_key},
            timeout_s=self._timeout_s,
            gate=self._gate,
        )
        if not isinstance(data, dict):
            raise PriceSourceError(f"moralis: unexpected response type {type(data).__name__}")
        price = to_float(data.get("usdPrice"))
        if price is None:
            price = to_float(data.get("usdPriceFormatted"))
        return price if price is not None and price > 0 else 0.0
