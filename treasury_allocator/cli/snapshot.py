"""
Snapshot: read treasury balances on-chain, price them, print the holdings table.
"""
from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from ..core.errors import TreasuryAllocatorError
from ..defaults import create_service
from ..report import render_holdings
from ._common import add_common_args, setup


def main(argv: Optional[List[str]] = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    ap = argparse.ArgumentParser(prog="treasury-allocator snapshot", description="Show current treasury holdings")
    add_common_args(ap)
    args = ap.parse_args(argv)
    cfg = setup(args)

    try:
        service = create_service(cfg)
        holdings = service.refresh()
    except TreasuryAllocatorError as e:
        print(f"Snapshot failed: {e}", file=sys.stderr)
        return 1
    print(render_holdings(holdings))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
