"""
Mint verification: a claimed (token_id, tx_hash, owner) triple is trusted only
after the chain confirms all three.

Read-only and idempotent; safe to call repeatedly for the same inputs (for
example after a ChainUnavailable). There is no bypass: every call goes to the
chain reader it was built with.
"""

from __future__ import annotations

import re

from backend_carstarz.carstarz_logging import get_logger, short_wallet
from backend_carstarz.chain.models import VerificationResult
from backend_carstarz.chain.reader import ChainReader
from backend_carstarz.core.exceptions import (
    InvalidTransactionHash,
    OwnerMismatch,
    TransactionFailed,
    TransactionPending,
)
from backend_carstarz.utils.wallet_key import normalize

logger = get_logger(__name__)

TX_HASH_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")


def normalize_tx_hash(tx_hash: str) -> str:
    """Return the lowercase tx hash. Raises InvalidTransactionHash unless 0x + 64 hex."""
    candidate = (tx_hash or "").strip()
    if not TX_HASH_RE.match(candidate):
        raise InvalidTransactionHash(tx_hash)
    return candidate.lower()


class ChainVerifier:
    """Confirms a mint transaction is mined, succeeded, and left token_id with expected_owner."""

    def __init__(self, reader: ChainReader) -> None:
        self._reader = reader

    def verify_mint(self, token_id: int, tx_hash: str, expected_owner: str) -> VerificationResult:
        """
        Verify a claimed mint.

        Raises:
            InvalidAddress: expected_owner is malformed.
            InvalidTransactionHash: tx_hash is malformed.
            TransactionPending: no receipt yet; retry later.
            TransactionFailed: receipt status is not success.
            TokenNotFound: ownerOf(token_id) reverted.
            OwnerMismatch: on-chain owner differs from expected_owner.
            ChainUnavailable: the chain reader could not answer.
        """
        expected = normalize(expected_owner)
        tx_hash = normalize_tx_hash(tx_hash)

        receipt = self._reader.get_receipt(tx_hash)
        if receipt is None:
            logger.info("mint_verification_pending", token_id=token_id, tx_hash=tx_hash)
            raise TransactionPending(tx_hash)
        if not receipt.succeeded:
            logger.warning(
                "mint_verification_tx_failed",
                token_id=token_id,
                tx_hash=tx_hash,
                status=receipt.status,
            )
            raise TransactionFailed(tx_hash, receipt.status)

        actual = normalize(self._reader.owner_of(token_id))
        if actual != expected:
            logger.warning(
                "mint_verification_owner_mismatch",
                token_id=token_id,
                tx_hash=tx_hash,
                expected=short_wallet(expected),
                actual=short_wallet(actual),
            )
            raise OwnerMismatch(token_id, expected=expected, actual=actual)

        logger.info(
            "mint_verified",
            token_id=token_id,
            tx_hash=tx_hash,
            wallet_id=short_wallet(actual),
            block_number=receipt.block_number,
        )
        return VerificationResult(
            token_id=token_id,
            owner=actual,
            block_number=receipt.block_number,
            tx_hash=tx_hash,
        )
