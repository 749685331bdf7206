"""
Tests for MintReconciler: verification-before-write, exactly-once profiles per
token and VIN, and best-effort audit entries.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest

from backend_carstarz.core.exceptions import (
    ChainUnavailable,
    DuplicateToken,
    DuplicateVIN,
    InvalidAddress,
    InvalidTokenId,
    InvalidVehicleData,
    OwnerMismatch,
    StoreUnavailable,
    TokenNotFound,
    TransactionFailed,
    TransactionPending,
)
from backend_carstarz.database.models import ACTION_BLOCKCHAIN_MINT, VehicleInput
from backend_carstarz.reconciliation.mint import normalize_vin

from tests.fakes import OTHER_OWNER, OWNER, OWNER_LOWER, TX_HASH, TX_HASH_2

VIN1 = "1HGCM82633A004352"


def _vehicle(vin: str = VIN1, **overrides) -> VehicleInput:
    data = {"vin": vin, "make": "Honda", "model": "Accord", "year": 2003, "name": "Daily driver"}
    data.update(overrides)
    return VehicleInput(**data)


def test_confirmed_mint_creates_profile_and_audit_entry(services, chain, store):
    """Token 42, successful receipt, ownerOf returns a different casing of the claimed owner."""
    chain.add_mint(42, OWNER, TX_HASH, block_number=777)
    profile = services.reconciler.confirm_mint(42, TX_HASH, OWNER_LOWER, _vehicle())

    assert profile.token_id == 42
    assert profile.owner_wallet == OWNER_LOWER
    assert profile.vin == VIN1
    assert profile.description == "2003 Honda Accord"

    identity = services.identities.get_by_wallet(OWNER)
    assert identity is not None
    assert profile.identity_id == identity.id

    entries = store.list_audit_entries(42)
    assert len(entries) == 1
    assert entries[0].action == ACTION_BLOCKCHAIN_MINT
    assert TX_HASH in entries[0].detail
    assert "777" in entries[0].detail
    assert entries[0].actor_wallet == OWNER_LOWER


def test_owner_mismatch_writes_nothing(services, chain, store):
    chain.add_mint(42, OTHER_OWNER, TX_HASH)
    with pytest.raises(OwnerMismatch) as excinfo:
        services.reconciler.confirm_mint(42, TX_HASH, OWNER, _vehicle())
    assert excinfo.value.expected == OWNER_LOWER
    assert excinfo.value.actual == OTHER_OWNER.lower()
    assert store.count_vehicles() == 0
    assert store.get_identity_by_wallet(OWNER_LOWER) is None


@pytest.mark.parametrize("scenario", ["failed", "missing_token", "pending", "chain_down"])
def test_unverified_mint_writes_nothing(services, chain, store, scenario):
    if scenario == "failed":
        chain.add_failed_tx(TX_HASH)
        expected = TransactionFailed
    elif scenario == "missing_token":
        chain.add_mint(7, OWNER, TX_HASH)
        expected = TokenNotFound
    elif scenario == "pending":
        expected = TransactionPending
    else:
        chain.add_mint(42, OWNER, TX_HASH)
        chain.unavailable = True
        expected = ChainUnavailable

    with pytest.raises(expected):
        services.reconciler.confirm_mint(42, TX_HASH, OWNER, _vehicle())
    assert store.get_vehicle(42) is None
    assert store.list_audit_entries(42) == []


def test_pending_then_mined_succeeds(services, chain):
    with pytest.raises(TransactionPending):
        services.reconciler.confirm_mint(42, TX_HASH, OWNER, _vehicle())
    chain.add_mint(42, OWNER, TX_HASH)
    assert services.reconciler.confirm_mint(42, TX_HASH, OWNER, _vehicle()).token_id == 42


def test_invalid_claimed_owner(services, chain, store):
    chain.add_mint(42, OWNER, TX_HASH)
    with pytest.raises(InvalidAddress):
        services.reconciler.confirm_mint(42, TX_HASH, "0xabc", _vehicle())
    assert store.count_vehicles() == 0


def test_second_confirm_for_same_token_is_duplicate(services, chain, store):
    chain.add_mint(42, OWNER, TX_HASH)
    services.reconciler.confirm_mint(42, TX_HASH, OWNER, _vehicle())
    with pytest.raises(DuplicateToken) as excinfo:
        services.reconciler.confirm_mint(42, TX_HASH, OWNER, _vehicle("JH4KA8260MC000000"))
    assert excinfo.value.token_id == 42
    assert store.count_vehicles() == 1
    assert len(store.list_audit_entries(42)) == 1


def test_duplicate_vin_across_tokens(services, chain, store):
    """Two token ids with the same VIN: the second is rejected and the first is unchanged."""
    chain.add_mint(1, OWNER, TX_HASH)
    chain.add_mint(2, OWNER, TX_HASH_2)
    first = services.reconciler.confirm_mint(1, TX_HASH, OWNER, _vehicle(name="First"))
    with pytest.raises(DuplicateVIN) as excinfo:
        services.reconciler.confirm_mint(2, TX_HASH_2, OWNER, _vehicle(VIN1.lower(), name="Second"))
    assert excinfo.value.vin == VIN1
    assert store.get_vehicle(2) is None
    stored = store.get_vehicle(1)
    assert stored.name == "First"
    assert stored.updated_at == first.updated_at


def test_concurrent_confirms_create_exactly_one_profile(services, chain, store):
    chain.add_mint(42, OWNER, TX_HASH)

    def confirm(_):
        try:
            return services.reconciler.confirm_mint(42, TX_HASH, OWNER, _vehicle())
        except DuplicateToken as e:
            return e

    with ThreadPoolExecutor(max_workers=4) as pool:
        outcomes = list(pool.map(confirm, range(4)))

    created = [o for o in outcomes if not isinstance(o, DuplicateToken)]
    duplicates = [o for o in outcomes if isinstance(o, DuplicateToken)]
    assert len(created) == 1
    assert len(duplicates) == 3
    assert store.count_vehicles() == 1
    assert len(store.list_audit_entries(42)) == 1


def test_audit_write_failure_does_not_undo_profile(services, chain, store, monkeypatch):
    chain.add_mint(42, OWNER, TX_HASH)

    def broken_append(entry):
        raise StoreUnavailable("audit table locked")

    monkeypatch.setattr(store, "append_audit_entry", broken_append)
    profile = services.reconciler.confirm_mint(42, TX_HASH, OWNER, _vehicle())
    assert profile.token_id == 42
    assert store.get_vehicle(42) is not None
    assert store.list_audit_entries(42) == []


def test_caller_description_kept(services, chain):
    chain.add_mint(42, OWNER, TX_HASH)
    profile = services.reconciler.confirm_mint(42, TX_HASH, OWNER, _vehicle(description="  Track car "))
    assert profile.description == "Track car"


def test_normalize_vin():
    assert normalize_vin("  1hgcm82633a004352 ") == VIN1
    with pytest.raises(InvalidVehicleData) as excinfo:
        normalize_vin("   ")
    assert excinfo.value.status_code == 400


def test_blank_vin_rejected_before_chain_call(services, chain, store):
    chain.add_mint(42, OWNER, TX_HASH)
    with pytest.raises(InvalidVehicleData):
        services.reconciler.confirm_mint(42, TX_HASH, OWNER, _vehicle("  "))
    assert chain.calls == []
    assert store.count_vehicles() == 0


@pytest.mark.parametrize("token_id", [-1, 2**63, 2**64, 2**300])
def test_unstorable_token_id_rejected_before_any_call(services, chain, store, token_id):
    with pytest.raises(InvalidTokenId) as excinfo:
        services.reconciler.confirm_mint(token_id, TX_HASH, OWNER, _vehicle())
    assert excinfo.value.status_code == 400
    assert chain.calls == []
    assert store.get_identity_by_wallet(OWNER_LOWER) is None
    assert store.count_vehicles() == 0


@pytest.mark.parametrize("method", ["get_identity_by_wallet", "insert_identity"])
def test_store_down_during_identity_step_writes_nothing(services, chain, store, monkeypatch, method):
    chain.add_mint(42, OWNER, TX_HASH)

    def store_down(*args, **kwargs):
        raise StoreUnavailable("database is locked")

    monkeypatch.setattr(store, method, store_down)
    with pytest.raises(StoreUnavailable):
        services.reconciler.confirm_mint(42, TX_HASH, OWNER, _vehicle())
    assert store.count_vehicles() == 0
    assert store.list_audit_entries(42) == []
