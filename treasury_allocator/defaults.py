"""
Build the standard object graph from a merged config dict.
"""
from __future__ import annotations

from typing import Optional

from . import config as cfg_mod
from .allocation import AllocationEngine, AllocationPolicy, RandomTokenPicker, RequestSeededTokenPicker, TokenPicker
from .cache import PriceCache
from .providers import CoinGeckoPriceSource, MoralisPriceSource, RateGate
from .service import AllocationService
from .sponsors import SponsorBook, SponsorRegistry, StaticSponsorRegistry
from .treasury import NativeCurrency, TreasuryReader, TreasurySnapshot


def create_price_cache(cfg: Optional[dict] = None) -> PriceCache:
    """CoinGecko primary, Moralis fallback, each behind its own rate gate."""
    cfg = cfg or cfg_mod.get_config()
    prices = cfg["prices"]
    native = cfg["native"]
    timeout_s = cfg_mod.http_timeout_s(cfg)
    cg = prices["coingecko"]
    mo = prices["moralis"]
    primary = CoinGeckoPriceSource(
        cg.get("api_key") or None,
        platform=cg["platform"],
        native_coin_id=native["coingecko_id"],
        base_url=cg["base_url"],
        timeout_s=timeout_s,
        gate=RateGate("coingecko", float(cg["min_interval_s"])),
    )
    fallback = MoralisPriceSource(
        mo.get("api_key") or None,
        chain=mo["chain"],
        wrapped_native=native["wrapped_address"],
        base_url=mo["base_url"],
        timeout_s=timeout_s,
        gate=RateGate("moralis", float(mo["min_interval_s"])),
    )
    return PriceCache(primary, fallback, ttl_s=cfg_mod.price_ttl_s(cfg))


def policy_from_config(cfg: Optional[dict] = None) -> AllocationPolicy:
    settings = cfg_mod.allocation_settings(cfg)
    return AllocationPolicy(
        sponsor_share=float(settings["sponsor_share"]),
        max_other_tokens=int(settings["max_other_tokens"]),
        sponsor_budget_policy=settings["sponsor_budget_policy"],
        variance_tolerance=float(settings["variance_tolerance"]),
        reject_out_of_tolerance=bool(settings["reject_out_of_tolerance"]),
        allow_unpriced_fallback=bool(settings["allow_unpriced_fallback"]),
    )


def picker_from_config(cfg: Optional[dict] = None) -> TokenPicker:
    """Explicit seed: one seeded stream. No seed: draw keyed by request id when present."""
    seed = cfg_mod.allocation_settings(cfg).get("seed")
    if seed is not None:
        return RandomTokenPicker(int(seed))
    return RequestSeededTokenPicker()


def native_from_config(cfg: Optional[dict] = None) -> NativeCurrency:
    native = (cfg or cfg_mod.get_config())["native"]
    return NativeCurrency(
        symbol=str(native["symbol"]),
        decimals=int(native["decimals"]),
        amount_per_wallet=int(native["amount_per_wallet_wei"]),
    )


def create_service(
    cfg: Optional[dict] = None,
    *,
    reader: Optional[TreasuryReader] = None,
    registry: Optional[SponsorRegistry] = None,
    price_cache: Optional[PriceCache] = None,
) -> AllocationService:
    """
    Wire the service. reader/registry default to the web3 contracts named in
    config; a static sponsor list in config is used when no auction address is set.
    """
    cfg = cfg or cfg_mod.get_config()
    if reader is None or (registry is None and cfg_mod.sponsor_auction_address(cfg)):
        from .onchain import Web3SponsorRegistry, Web3TreasuryReader, connect

        w3 = connect(cfg_mod.rpc_url(cfg), float(cfg["chain"].get("rpc_timeout_s", 10.0)))
        if reader is None:
            reader = Web3TreasuryReader(w3, cfg_mod.treasury_address(cfg))
        if registry is None and cfg_mod.sponsor_auction_address(cfg):
            registry = Web3SponsorRegistry(w3, cfg_mod.sponsor_auction_address(cfg))
    if registry is None:
        registry = StaticSponsorRegistry(cfg["sponsors"].get("static") or [])

    snapshot = TreasurySnapshot(
        reader,
        price_cache or create_price_cache(cfg),
        cfg_mod.watch_list(cfg),
        native=native_from_config(cfg),
    )
    engine = AllocationEngine(policy_from_config(cfg), picker_from_config(cfg))
    return AllocationService(
        snapshot,
        SponsorBook(registry),
        engine,
        refresh_interval_s=cfg_mod.refresh_interval_s(cfg),
        max_snapshot_age_s=cfg_mod.max_snapshot_age_s(cfg),
    )
