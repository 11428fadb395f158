"""Helpers for normalizing wallet addresses and transaction hashes."""

from __future__ import annotations

import re
from functools import lru_cache

from eth_utils import is_hex_address

_TX_HASH_RE = re.compile(r"^0x[a-fA-F0-9]{64}$")


class InvalidAddressError(ValueError):
    """Raised for strings that are not 20-byte hex addresses."""


@lru_cache(maxsize=512)
def is_valid_evm_address(address: str) -> bool:
    if not address:
        return False
    return bool(is_hex_address(address))


def normalize_address(address: str) -> str:
    """Lowercase form used as the join key against the Trails API."""

    candidate = (address or "").strip()
    if not is_valid_evm_address(candidate):
        raise InvalidAddressError(f"Invalid wallet address: {address!r}")
    return candidate.lower()


def short_address(address: str) -> str:
    """``0x1234...abcd`` for feeds and CLI output."""
    if len(address) <= 10:
        return address
    return f"{address[:6]}...{address[-4:]}"


def short_hash(tx_hash: str) -> str:
    if len(tx_hash) <= 18:
        return tx_hash
    return f"{tx_hash[:10]}...{tx_hash[-8:]}"


def is_valid_tx_hash(tx_hash: str) -> bool:
    return bool(tx_hash and _TX_HASH_RE.fullmatch(tx_hash))


__all__ = [
    "InvalidAddressError",
    "is_valid_evm_address",
    "is_valid_tx_hash",
    "normalize_address",
    "short_address",
    "short_hash",
]
