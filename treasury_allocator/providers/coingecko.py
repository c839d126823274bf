"""
CoinGecko price source (primary).

Batched contract-address lookup on the configured platform:
  GET {base}/simple/token_price/{platform}?contract_addresses=a,b&vs_currencies=usd
The native currency has no contract address and is priced by coin id:
  GET {base}/simple/price?ids={native_coin_id}&vs_currencies=usd
"""
from __future__ import annotations

import logging
from typing import Dict, Optional, Sequence

from ..core.errors import PriceSourceError
from ..core.units import NATIVE_TOKEN, normalize_address
from .http import HTTP_TIMEOUT_S, get_json, safe_get, to_float
from .ratelimit import RateGate

logger = logging.getLogger(__name__)

COINGECKO_BASE_URL = "https://api.coingecko.com/api/v3"
COINGECKO_MIN_INTERVAL_S = 1.2


class CoinGeckoPriceSource:
    """Fetch USD prices for many token addresses in one call."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        platform: str = "base",
        native_coin_id: str = "ethereum",
        base_url: str = COINGECKO_BASE_URL,
        timeout_s: float = HTTP_TIMEOUT_S,
        gate: Optional[RateGate] = None,
    ) -> None:
        self._api_key = api_key or None
        self._platform = platform
        self._native_coin_id = native_coin_id
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s
        self._gate = gate or RateGate("coingecko", COINGECKO_MIN_INTERVAL_S)

    @property
    def provider_name(self) -> str:
        return "coingecko"

    def _headers(self) -> Dict[str, str]:
        headers = {"accept": "application/json"}
        if self._api_key:
            headers["x-cg-demo-api-key"] = self._api_key
        return headers

    def fetch_prices(self, identifiers: Sequence[str]) -> Dict[str, float]:
        ids = list(dict.fromkeys(normalize_address(i) for i in identifiers))
        contracts = [i for i in ids if i != NATIVE_TOKEN]
        prices: Dict[str, float] = {}

        if contracts:
            data = get_json(
                self.provider_name,
                f"{self._base_url}/simple/token_price/{self._platform}",
                params={"contract_addresses": ",".join(contracts), "vs_currencies": "usd"},
                headers=self._headers(),
                timeout_s=self._timeout_s,
                gate=self._gate,
            )
            if not isinstance(data, dict):
                raise PriceSourceError(f"coingecko: unexpected response type {type(data).__name__}")
            for address, entry in data.items():
                price = to_float(entry.get("usd")) if isinstance(entry, dict) else None
                prices[address.lower()] = price if price is not None and price > 0 else 0.0

        if NATIVE_TOKEN in ids:
            try:
                prices[NATIVE_TOKEN] = self._fetch_native()
            except PriceSourceError as exc:
                if not contracts:
                    raise
                # Contract prices stand; the native id is left for the fallback.
                logger.warning("coingecko native price failed, keeping %d contract price(s): %s", len(prices), exc)

        logger.debug("coingecko priced %d/%d addresses", sum(1 for p in prices.values() if p > 0), len(ids))
        return prices

    def _fetch_native(self) -> float:
        data = get_json(
            self.provider_name,
            f"{self._base_url}/simple/price",
            params={"ids": self._native_coin_id, "vs_currencies": "usd"},
            headers=self._headers(),
            timeout_s=self._timeout_s,
            gate=self._gate,
        )
        price = to_float(safe_get(data, f"{self._native_coin_id}.usd")) if isinstance(data, dict) else None
        return price if price is not None and price > 0 else 0.0
