"""
Top-level CLI dispatcher: treasury-allocator <command> [args...].
"""

from __future__ import annotations

import argparse
import sys
from typing import List, Optional

_COMMANDS = {
    "prices": "Look up token USD prices (cache + fallback)",
    "snapshot": "Read and price the treasury holdings",
    "select": "Dry-run token selection for a tier",
}


def main(argv: Optional[List[str]] = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    parser = argparse.ArgumentParser(
        prog="treasury-allocator",
        description="Treasury token allocation CLI",
    )
    subparsers = parser.add_subparsers(dest="command", help="command")
    for name, help_text in _COMMANDS.items():
        subparsers.add_parser(name, help=help_text, add_help=False)

    args, rest = parser.parse_known_args(argv)
    if not args.command:
        parser.print_help()
        return 0

    cmd = args.command
    if cmd == "prices":
        from treasury_allocator.cli import prices as mod

        return mod.main(rest)
    if cmd == "snapshot":
        from treasury_allocator.cli import snapshot as mod

        return mod.main(rest)
    if cmd == "select":
        from treasury_allocator.cli import select_tokens as mod

        return mod.main(rest)

    parser.print_help()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
