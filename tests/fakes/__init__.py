"""Fake price sources, treasury reader and sponsor registry for tests (no live network)."""

from .providers import (
    AERO,
    DAI,
    DEGEN,
    FAKE_METADATA,
    FAKE_NOW,
    USDC,
    WETH,
    FakeClock,
    FakePriceSource,
    FakePriceSourceAlwaysFail,
    FakePriceSourceFailNThenSucceed,
    FakeSponsorRegistry,
    FakeTreasuryReader,
)

__all__ = [
    "AERO",
    "DAI",
    "DEGEN",
    "FAKE_METADATA",
    "FAKE_NOW",
    "USDC",
    "WETH",
    "FakeClock",
    "FakePriceSource",
    "FakePriceSourceAlwaysFail",
    "FakePriceSourceFailNThenSucceed",
    "FakeSponsorRegistry",
    "FakeTreasuryReader",
]
