"""
Prices: look up USD prices for addresses (default: configured watch-list) through
the cache and its primary/fallback sources.
"""
from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from .. import config as cfg_mod
from ..core.errors import InvalidTokenIdentifierError, PriceSourcesUnavailableError
from ..defaults import create_price_cache
from ..report import render_prices
from ._common import add_common_args, setup


def main(argv: Optional[List[str]] = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    ap = argparse.ArgumentParser(prog="treasury-allocator prices", description="Look up token USD prices")
    ap.add_argument("addresses", nargs="*", help="Token addresses (default: treasury watch-list)")
    add_common_args(ap)
    args = ap.parse_args(argv)
    cfg = setup(args)

    addresses = args.addresses or cfg_mod.watch_list(cfg)
    cache = create_price_cache(cfg)
    try:
        lookups = cache.prices(addresses)
    except InvalidTokenIdentifierError as e:
        print(f"Invalid address: {e}", file=sys.stderr)
        return 2
    except PriceSourcesUnavailableError as e:
        print(f"Price sources unavailable: {e}", file=sys.stderr)
        return 1
    print(render_prices(lookups))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
