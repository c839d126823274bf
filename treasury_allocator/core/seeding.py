"""
RNG seeding for the random token draw.

A draw keyed by request is replayable: the same (request_key, salt, version)
always yields the same Generator, across processes. Never use Python's built-in
hash() (not stable across processes).
"""

from __future__ import annotations

import hashlib
from typing import Optional

import numpy as np

# Bump when the hashing scheme, salts or encoding change.
SEED_ROOT_VERSION = 1

SALT_OTHER_TOKENS = "other_tokens"


def seed_root(request_key: str, *, salt: str, version: int = SEED_ROOT_VERSION) -> int:
    """Stable 63-bit seed from request_key and component salt (SHA-256)."""
    payload = f"{request_key}|{salt}|{version}".encode("utf-8")
    digest = hashlib.sha256(payload).digest()
    return int.from_bytes(digest[:8], byteorder="big") % (2**63)


def rng_for(request_key: str, salt: str, version: int = SEED_ROOT_VERSION) -> np.random.Generator:
    return np.random.default_rng(seed_root(request_key, salt=salt, version=version))


def rng_from_seed(seed: Optional[int]) -> np.random.Generator:
    """Generator from an explicit seed; None gives a non-deterministic generator."""
    if seed is not None:
        return np.random.default_rng(seed)
    return np.random.default_rng()


__all__ = ["SALT_OTHER_TOKENS", "SEED_ROOT_VERSION", "rng_for", "rng_from_seed", "seed_root"]
