"""
On-chain collaborators over web3: treasury balances, ERC-20 metadata, sponsor list.

Only view calls; nothing here signs or sends transactions.
"""
from __future__ import annotations

import logging
from typing import List

from web3 import Web3

from .core.errors import ConfigError
from .core.units import normalize_address
from .tokens import TokenMetadata

logger = logging.getLogger(__name__)

# Minimal ABI fragments for the calls we make.
TOKEN_TREASURY_ABI = [
    {
        "name": "getTokenBalance",
        "inputs": [{"name": "token", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]

SPONSOR_AUCTION_ABI = [
    {
        "name": "getActiveSponsors",
        "inputs": [],
        "outputs": [{"name": "", "type": "address[]"}],
        "stateMutability": "view",
        "type": "function",
    },
]

ERC20_ABI = [
    {"name": "symbol", "inputs": [], "outputs": [{"name": "", "type": "string"}], "stateMutability": "view", "type": "function"},
    {"name": "decimals", "inputs": [], "outputs": [{"name": "", "type": "uint8"}], "stateMutability": "view", "type": "function"},
]


def connect(rpc_url: str, timeout_s: float = 10.0) -> Web3:
    if not rpc_url:
        raise ConfigError("chain.rpc_url is not set")
    return Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout_s}))


def _checksum(address: str) -> str:
    return Web3.to_checksum_address(normalize_address(address))


class Web3TreasuryReader:
    """TreasuryReader backed by the TokenTreasury contract."""

    def __init__(self, w3: Web3, treasury_address: str) -> None:
        if not treasury_address:
            raise ConfigError("treasury.address is not set")
        self.w3 = w3
        self._treasury_address = _checksum(treasury_address)
        self._treasury = w3.eth.contract(address=self._treasury_address, abi=TOKEN_TREASURY_ABI)

    def token_balance(self, identifier: str) -> int:
        return int(self._treasury.functions.getTokenBalance(_checksum(identifier)).call())

    def token_metadata(self, identifier: str) -> TokenMetadata:
        token = self.w3.eth.contract(address=_checksum(identifier), abi=ERC20_ABI)
        symbol = token.functions.symbol().call()
        decimals = token.functions.decimals().call()
        if isinstance(symbol, bytes):
            symbol = symbol.rstrip(b"\x00").decode("utf-8", errors="replace")
        return TokenMetadata(symbol=str(symbol), decimals=int(decimals))

    def native_balance(self) -> int:
        return int(self.w3.eth.get_balance(self._treasury_address))


class Web3SponsorRegistry:
    """SponsorRegistry backed by the SponsorAuction contract."""

    def __init__(self, w3: Web3, auction_address: str) -> None:
        if not auction_address:
            raise ConfigError("sponsors.auction_address is not set")
        self._auction = w3.eth.contract(address=_checksum(auction_address), abi=SPONSOR_AUCTION_ABI)

    def active_sponsors(self) -> List[str]:
        sponsors = list(self._auction.functions.getActiveSponsors().call())
        logger.debug("getActiveSponsors returned %d address(es)", len(sponsors))
        return sponsors
