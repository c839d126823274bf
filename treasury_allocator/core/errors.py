"""
Shared exception types for treasury_allocator.
Soft failures (one unpriceable token, one failing price source) never surface here;
they are absorbed and logged. Only hard conditions propagate to callers.
"""

from __future__ import annotations


class TreasuryAllocatorError(Exception):
    """Base exception for treasury_allocator; catch this for any package-raised error."""

    pass


class ConfigError(TreasuryAllocatorError):
    """Invalid or missing configuration value."""


class InvalidTokenIdentifierError(TreasuryAllocatorError, ValueError):
    """Token identifier is not a 20-byte hex address."""


class PriceSourceError(TreasuryAllocatorError):
    """A single price source call failed (bad status, bad payload)."""


class PriceTransportError(PriceSourceError):
    """A price source could not be reached (connection error or timeout)."""


class PriceSourcesUnavailableError(TreasuryAllocatorError):
    """Both price sources were unreachable for every identifier in a lookup."""


class AllocationError(TreasuryAllocatorError):
    """Token selection failed; the funding executor must surface this, not fund nothing."""


class NoTreasuryTokensError(AllocationError):
    """The treasury holds no tokens with a positive balance."""


class NoPricedTokensError(AllocationError):
    """The treasury holds tokens but none of them could be priced."""


class SnapshotUnavailableError(AllocationError):
    """No treasury snapshot has been published yet."""


class VarianceToleranceError(AllocationError):
    """Realized value deviates from the target beyond the configured tolerance."""

    def __init__(self, message: str, variance: float) -> None:
        super().__init__(message)
        self.variance = variance


__all__ = [
    "AllocationError",
    "ConfigError",
    "InvalidTokenIdentifierError",
    "NoPricedTokensError",
    "NoTreasuryTokensError",
    "PriceSourceError",
    "PriceSourcesUnavailableError",
    "PriceTransportError",
    "SnapshotUnavailableError",
    "TreasuryAllocatorError",
    "VarianceToleranceError",
]
