"""
Data models for chain reader output.

Receipt keeps the fields of a transaction receipt the verifier needs;
VerificationResult is what a successful mint verification returns.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from web3 import Web3

RECEIPT_STATUS_SUCCESS = 1

# ERC-721 token ids are uint256
MAX_UINT256 = 2**256 - 1


@dataclass(frozen=True)
class Receipt:
    """Mined transaction receipt."""

    tx_hash: str
    block_number: int
    status: int | None  # 1 success, 0 reverted; None on pre-byzantium chains

    @property
    def succeeded(self) -> bool:
        return self.status == RECEIPT_STATUS_SUCCESS

    @classmethod
    def from_web3(cls, item: Mapping[str, Any]) -> "Receipt":
        """Build from the receipt web3 returns for eth_getTransactionReceipt."""
        status = item.get("status")
        return cls(
            tx_hash=Web3.to_hex(item["transactionHash"]).lower(),
            block_number=int(item["blockNumber"] or 0),
            status=int(status) if status is not None else None,
        )


@dataclass(frozen=True)
class VerificationResult:
    """Proof that token_id exists on-chain, owned by owner, minted in block_number."""

    token_id: int
    owner: str
    """Normalized on-chain owner."""
    block_number: int
    tx_hash: str
