"""
Select: dry-run token selection for one tier against a fresh treasury snapshot.
Nothing is sent on-chain; the allocation table is printed.
"""
from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from ..allocation import RandomTokenPicker
from ..core.errors import AllocationError, TreasuryAllocatorError
from ..defaults import create_service
from ..report import render_allocation
from ..tokens import AllocationRequest
from ._common import add_common_args, setup


def main(argv: Optional[List[str]] = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    ap = argparse.ArgumentParser(prog="treasury-allocator select", description="Dry-run token selection for a tier")
    ap.add_argument("--tier", type=int, required=True)
    value = ap.add_mutually_exclusive_group(required=True)
    value.add_argument("--target", type=float, help="Target value in USD")
    value.add_argument("--estimated-value", type=int, help="Target as on-chain estimatedValue (USDC, 6 decimals)")
    ap.add_argument("--request-id", type=int, default=None, help="Request id; keys a replayable token draw")
    ap.add_argument("--seed", type=int, default=None, help="Seed the token draw (overrides config)")
    add_common_args(ap)
    args = ap.parse_args(argv)
    cfg = setup(args)

    try:
        if args.estimated_value is not None:
            request = AllocationRequest.from_estimated_value(args.tier, args.estimated_value, request_id=args.request_id)
        else:
            request = AllocationRequest(args.tier, args.target, request_id=args.request_id)
    except ValueError as e:
        print(f"Invalid request: {e}", file=sys.stderr)
        return 2

    try:
        service = create_service(cfg)
        if args.seed is not None:
            service.engine.picker = RandomTokenPicker(args.seed)
        service.refresh()
        result = service.allocate(request)
    except AllocationError as e:
        print(f"Allocation failed: {e}", file=sys.stderr)
        return 1
    except TreasuryAllocatorError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(render_allocation(result))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
