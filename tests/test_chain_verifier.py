"""
Tests for ChainVerifier outcomes against the in-memory chain.
"""

from __future__ import annotations

import pytest

from backend_carstarz.chain.verifier import ChainVerifier, normalize_tx_hash
from backend_carstarz.core.exceptions import (
    ChainUnavailable,
    InvalidAddress,
    InvalidTransactionHash,
    OwnerMismatch,
    TokenNotFound,
    TransactionFailed,
    TransactionPending,
)

from tests.fakes import OTHER_OWNER, OWNER, OWNER_LOWER, TX_HASH, FakeChainReader


@pytest.fixture
def verifier(chain):
    return ChainVerifier(chain)


def test_verified_mint(chain, verifier):
    chain.add_mint(42, OWNER, TX_HASH, block_number=1234)
    result = verifier.verify_mint(42, TX_HASH, OWNER_LOWER)
    assert result.token_id == 42
    assert result.owner == OWNER_LOWER
    assert result.block_number == 1234
    assert result.tx_hash == TX_HASH


def test_owner_compared_case_insensitively(chain, verifier):
    chain.add_mint(42, OWNER_LOWER, TX_HASH)
    assert verifier.verify_mint(42, TX_HASH.upper().replace("0X", "0x"), OWNER).owner == OWNER_LOWER


def test_missing_receipt_is_pending(chain, verifier):
    with pytest.raises(TransactionPending) as excinfo:
        verifier.verify_mint(42, TX_HASH, OWNER)
    assert excinfo.value.retryable is True
    assert excinfo.value.status_code == 202
    # ownerOf is never consulted for an unmined tx
    assert all(method != "owner_of" for method, _ in chain.calls)


def test_reverted_receipt_is_failed(chain, verifier):
    chain.add_failed_tx(TX_HASH)
    with pytest.raises(TransactionFailed) as excinfo:
        verifier.verify_mint(42, TX_HASH, OWNER)
    assert excinfo.value.status == 0


def test_token_absent_on_chain(chain, verifier):
    chain.add_mint(7, OWNER, TX_HASH)
    with pytest.raises(TokenNotFound):
        verifier.verify_mint(42, TX_HASH, OWNER)


def test_owner_mismatch_carries_both_owners(chain, verifier):
    chain.add_mint(42, OTHER_OWNER, TX_HASH)
    with pytest.raises(OwnerMismatch) as excinfo:
        verifier.verify_mint(42, TX_HASH, OWNER)
    err = excinfo.value
    assert err.expected == OWNER_LOWER
    assert err.actual == OTHER_OWNER.lower()
    body = err.to_dict()
    assert body["error"] == "OWNER_MISMATCH"
    assert body["expected"] == OWNER_LOWER


def test_invalid_inputs_rejected_before_chain_calls():
    chain = FakeChainReader()
    verifier = ChainVerifier(chain)
    with pytest.raises(InvalidAddress):
        verifier.verify_mint(42, TX_HASH, "0xbad")
    with pytest.raises(InvalidTransactionHash):
        verifier.verify_mint(42, "0x1234", OWNER)
    assert chain.calls == []


def test_chain_unavailable_propagates(chain, verifier):
    chain.unavailable = True
    with pytest.raises(ChainUnavailable):
        verifier.verify_mint(42, TX_HASH, OWNER)


def test_normalize_tx_hash():
    assert normalize_tx_hash("  0x" + "AB" * 32 + " ") == TX_HASH
    with pytest.raises(InvalidTransactionHash):
        normalize_tx_hash("ab" * 32)
