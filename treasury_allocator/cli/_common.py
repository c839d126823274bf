"""Arguments and setup shared by every subcommand."""
from __future__ import annotations

import argparse
import logging
from pathlib import Path

from .. import config as cfg_mod

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def add_common_args(ap: argparse.ArgumentParser) -> None:
    ap.add_argument("--config", default=None, help="Path to config.yaml (default: TREASURY_ALLOCATOR_CONFIG or repo root)")
    ap.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )


def setup(args: argparse.Namespace) -> dict:
    """Configure logging and return the merged config."""
    logging.basicConfig(level=getattr(logging, args.log_level), format=LOG_FORMAT)
    return cfg_mod.get_config(Path(args.config) if args.config else None)
