"""
Load config from config.yaml with optional env overrides.
Single source of truth for RPC endpoint, contract addresses, watch-list, price
sources, and allocation policy.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .core.errors import ConfigError

# Defaults if no YAML or env
_DEFAULTS: Dict[str, Any] = {
    "chain": {
        "rpc_url": "https://mainnet.base.org",
        "rpc_timeout_s": 10.0,
    },
    "treasury": {
        "address": "",
        "refresh_interval_s": 300,
        "max_snapshot_age_s": 900,
        # Common Base tokens checked for treasury balance.
        "watch_list": [
            "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",  # USDC
            "0x4ed4E862860beD51a9570b96d89aF5E1B0Efefed",  # DEGEN
            "0x4200000000000000000000000000000000000006",  # WETH
            "0x50c5725949A6F0c72E6C4a641F24049A917DB0Cb",  # DAI
            "0x2Ae3F1Ec7F1F5012CFEab0185bfc7aa3cf0DEc22",  # cbETH
            "0xd9aAEc86B65D86f6A7B5B1b0c42FFA531710b6CA",  # USDbC
            "0x940181a94A35A4569E4529A3CDfB74e38FD98631",  # AERO
        ],
    },
    "native": {
        "symbol": "ETH",
        "decimals": 18,
        "amount_per_wallet_wei": 70_000_000_000_000,
        "coingecko_id": "ethereum",
        "wrapped_address": "0x4200000000000000000000000000000000000006",
    },
    "sponsors": {
        "auction_address": "",
        "static": [],
    },
    "prices": {
        "ttl_s": 300,
        "http_timeout_s": 10.0,
        "coingecko": {
            "base_url": "https://api.coingecko.com/api/v3",
            "platform": "base",
            "api_key": "",
            "min_interval_s": 1.2,
        },
        "moralis": {
            "base_url": "https://deep-index.moralis.io/api/v2.2",
            "chain": "base",
            "api_key": "",
            "min_interval_s": 0.5,
        },
    },
    "allocation": {
        "sponsor_share": 0.5,
        "max_other_tokens": 3,
        "sponsor_budget_policy": "redistribute",
        "variance_tolerance": 0.05,
        "reject_out_of_tolerance": False,
        "allow_unpriced_fallback": False,
        "seed": None,
    },
}


def _config_yaml_path() -> Path:
    """TREASURY_ALLOCATOR_CONFIG, else config.yaml at repo root (parent of package dir)."""
    override = os.environ.get("TREASURY_ALLOCATOR_CONFIG", "").strip()
    if override:
        return Path(override)
    return Path(__file__).resolve().parent.parent / "config.yaml"


def _load_yaml(path: Optional[Path] = None) -> dict:
    config_path = path or _config_yaml_path()
    if not config_path.exists():
        return {}
    with open(config_path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return data if isinstance(data, dict) else {}


def _deep_merge(base: dict, override: dict) -> dict:
    out = dict(base)
    for k, v in override.items():
        if k in out and isinstance(out[k], dict) and isinstance(v, dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def _env_overrides() -> dict:
    overrides: dict = {}
    rpc = os.environ.get("TREASURY_RPC_URL")
    if rpc:
        overrides.setdefault("chain", {})["rpc_url"] = rpc
    treasury = os.environ.get("TREASURY_ADDRESS")
    if treasury:
        overrides.setdefault("treasury", {})["address"] = treasury
    auction = os.environ.get("SPONSOR_AUCTION_ADDRESS")
    if auction:
        overrides.setdefault("sponsors", {})["auction_address"] = auction
    cg_key = os.environ.get("COINGECKO_API_KEY")
    if cg_key:
        overrides.setdefault("prices", {}).setdefault("coingecko", {})["api_key"] = cg_key
    moralis_key = os.environ.get("MORALIS_API_KEY")
    if moralis_key:
        overrides.setdefault("prices", {}).setdefault("moralis", {})["api_key"] = moralis_key
    return overrides


def get_config(path: Optional[Path] = None) -> dict:
    """Return merged config: defaults <- config.yaml <- env."""
    merged = _deep_merge(_DEFAULTS, _load_yaml(path))
    merged = _deep_merge(merged, _env_overrides())
    return merged


def _positive(value: Any, name: str) -> float:
    try:
        out = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be a number, got {value!r}") from exc
    if out <= 0:
        raise ConfigError(f"{name} must be > 0, got {value!r}")
    return out


# Convenience accessors
def rpc_url(cfg: Optional[dict] = None) -> str:
    return str((cfg or get_config())["chain"]["rpc_url"])


def treasury_address(cfg: Optional[dict] = None) -> str:
    return str((cfg or get_config())["treasury"]["address"] or "")


def sponsor_auction_address(cfg: Optional[dict] = None) -> str:
    return str((cfg or get_config())["sponsors"]["auction_address"] or "")


def watch_list(cfg: Optional[dict] = None) -> List[str]:
    return list((cfg or get_config())["treasury"]["watch_list"] or [])


def refresh_interval_s(cfg: Optional[dict] = None) -> float:
    return _positive((cfg or get_config())["treasury"]["refresh_interval_s"], "treasury.refresh_interval_s")


def max_snapshot_age_s(cfg: Optional[dict] = None) -> Optional[float]:
    value = (cfg or get_config())["treasury"].get("max_snapshot_age_s")
    return None if value is None else _positive(value, "treasury.max_snapshot_age_s")


def price_ttl_s(cfg: Optional[dict] = None) -> float:
    return _positive((cfg or get_config())["prices"]["ttl_s"], "prices.ttl_s")


def http_timeout_s(cfg: Optional[dict] = None) -> float:
    return _positive((cfg or get_config())["prices"]["http_timeout_s"], "prices.http_timeout_s")


def allocation_settings(cfg: Optional[dict] = None) -> dict:
    return dict((cfg or get_config())["allocation"])
