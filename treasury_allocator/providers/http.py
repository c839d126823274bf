"""
Shared HTTP helper for price sources: one GET, JSON decode, error mapping.

Timeouts and connection errors become PriceTransportError so the cache can tell
"unreachable" apart from "answered badly".
"""
from __future__ import annotations

from typing import Any, Dict, Optional

import requests

from ..core.errors import PriceSourceError, PriceTransportError
from .ratelimit import RateGate

HTTP_TIMEOUT_S = 10.0


def safe_get(d: Dict[str, Any], path: str, default: Any = None) -> Any:
    cur: Any = d
    for key in path.split("."):
        if not isinstance(cur, dict) or key not in cur:
            return default
        cur = cur[key]
    return cur


def to_float(x: Any) -> Optional[float]:
    if x is None:
        return None
    try:
        return float(x)
    except (TypeError, ValueError):
        return None


def get_json(
    provider: str,
    url: str,
    *,
    params: Optional[Dict[str, str]] = None,
    headers: Optional[Dict[str, str]] = None,
    timeout_s: float = HTTP_TIMEOUT_S,
    gate: Optional[RateGate] = None,
) -> Any:
    """GET url through the source's rate gate and return the decoded JSON body."""
    if gate is not None:
        gate.acquire()
    try:
        resp = requests.get(url, params=params, headers=headers, timeout=timeout_s)
    except (requests.Timeout, requests.ConnectionError) as exc:
        raise PriceTransportError(f"{provider}: {type(exc).__name__}: {exc}") from exc
    except requests.RequestException as exc:
        raise PriceSourceError(f"{provider}: {type(exc).__name__}: {exc}") from exc

    if resp.status_code == 429:
        raise PriceSourceError(f"{provider} rate limit (HTTP 429)")
    if resp.status_code >= 400:
        raise PriceSourceError(f"{provider} API error: HTTP {resp.status_code}")
    try:
        return resp.json()
    except ValueError as exc:
        raise PriceSourceError(f"{provider}: response is not JSON") from exc
