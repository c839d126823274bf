"""
Tabular views of holdings and allocations for the CLI and logs.
Native amounts are kept as strings: uint256 values overflow int64 columns.
"""
from __future__ import annotations

from typing import Any, Dict, Mapping

import pandas as pd

from .cache import PriceLookup
from .tokens import AllocationResult
from .treasury import Holdings

HOLDINGS_COLUMNS = ["symbol", "address", "balance", "price_usd", "value_usd", "source"]
ALLOCATION_COLUMNS = ["role", "symbol", "address", "amount_native", "price_usd", "value_usd", "partial"]
PRICE_COLUMNS = ["address", "price_usd", "source", "cached"]


def format_usd(x: Any, decimals: int = 2) -> str:
    """Format dollars; handles NaN."""
    if pd.isna(x):
        return "—"
    return f"${float(x):,.{decimals}f}"


def format_percent(x: Any, decimals: int = 2) -> str:
    if pd.isna(x):
        return "—"
    return f"{float(x) * 100:+.{decimals}f}%"


def holdings_frame(holdings: Holdings) -> pd.DataFrame:
    rows = []
    records = list(holdings)
    if holdings.native is not None:
        records.append(holdings.native)
    for rec in records:
        rows.append(
            {
                "symbol": rec.symbol,
                "address": rec.identifier,
                "balance": rec.balance_units,
                "price_usd": rec.price_usd,
                "value_usd": rec.value_usd,
                "source": rec.price_source.value,
            }
        )
    return pd.DataFrame(rows, columns=HOLDINGS_COLUMNS)


def allocation_frame(result: AllocationResult) -> pd.DataFrame:
    lines = list(result.lines)
    if result.native_line is not None:
        lines.append(result.native_line)
    rows = [
        {
            "role": line.role.value,
            "symbol": line.symbol,
            "address": line.identifier,
            "amount_native": str(line.amount_native),
            "price_usd": line.price_usd,
            "value_usd": line.value_usd,
            "partial": line.partial,
        }
        for line in lines
    ]
    return pd.DataFrame(rows, columns=ALLOCATION_COLUMNS)


def prices_frame(lookups: Mapping[str, PriceLookup]) -> pd.DataFrame:
    rows = [
        {"address": ident, "price_usd": lk.price_usd, "source": lk.source.value, "cached": lk.from_cache}
        for ident, lk in lookups.items()
    ]
    return pd.DataFrame(rows, columns=PRICE_COLUMNS)


def _table(df: pd.DataFrame, money_cols: Dict[str, int]) -> str:
    if df.empty:
        return "*No data*"
    out = df.copy()
    for col, decimals in money_cols.items():
        out[col] = out[col].map(lambda v, d=decimals: format_usd(v, d))
    return out.to_string(index=False)


def render_holdings(holdings: Holdings) -> str:
    header = (
        f"Treasury snapshot #{holdings.cycle}: {len(holdings)} token(s), "
        f"total {format_usd(holdings.total_value_usd)}"
    )
    return header + "\n" + _table(holdings_frame(holdings), {"price_usd": 6, "value_usd": 2})


def render_allocation(result: AllocationResult) -> str:
    header = (
        f"Tier {result.tier}: target {format_usd(result.target_value_usd)}, "
        f"realized {format_usd(result.realized_value_usd)} "
        f"({format_percent(result.variance_from_target)})"
    )
    if result.out_of_tolerance:
        header += " OUT OF TOLERANCE"
    return header + "\n" + _table(allocation_frame(result), {"price_usd": 6, "value_usd": 4})


def render_prices(lookups: Mapping[str, PriceLookup]) -> str:
    return _table(prices_frame(lookups), {"price_usd": 6})
