"""Wallet key normalization: the only way a wallet string becomes a lookup key."""

from __future__ import annotations

from eth_utils import is_0x_prefixed, is_hex_address

from backend_carstarz.core.exceptions import InvalidAddress


def normalize(address: str) -> str:
    """
    Return the canonical key for an EVM address: trimmed, 0x-prefixed, lowercase.

    Raises InvalidAddress unless the input is 0x followed by exactly 40 hex chars.
    Checksum casing is not enforced; any casing of a valid address is accepted.
    """
    if not isinstance(address, str):
        raise InvalidAddress(address)
    candidate = address.strip()
    if not is_0x_prefixed(candidate) or not is_hex_address(candidate):
        raise InvalidAddress(address)
    return candidate.lower()


def is_valid_wallet(address: str) -> bool:
    """Return True if address normalizes without error."""
    try:
        normalize(address)
        return True
    except InvalidAddress:
        return False


def same_wallet(a: str, b: str) -> bool:
    """Compare two addresses by canonical key. Raises InvalidAddress on malformed input."""
    return normalize(a) == normalize(b)
