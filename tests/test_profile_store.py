"""
Tests for the SQLAlchemy profile store: schema, unique constraints and the audit log.
"""

from __future__ import annotations

import pytest

from backend_carstarz.core.exceptions import (
    DuplicateIdentity,
    DuplicateToken,
    DuplicateVIN,
    InvalidTokenId,
    StoreUnavailable,
)
from backend_carstarz.database.database import SQLAlchemyProfileStore
from backend_carstarz.database.models import (
    ACTION_BLOCKCHAIN_MINT,
    MAX_STORED_TOKEN_ID,
    MintAuditEntry,
    VehicleProfile,
)

from tests.fakes import OTHER_OWNER, OWNER, OWNER_LOWER


def _profile(identity_id: int, token_id: int = 1, vin: str = "VIN0000000000001") -> VehicleProfile:
    return VehicleProfile(
        token_id=token_id,
        vin=vin,
        owner_wallet=OWNER_LOWER,
        identity_id=identity_id,
        make="Ford",
        model="Mustang",
        year=1967,
        name="Eleanor",
        created_at=100,
        updated_at=100,
    )


@pytest.fixture
def identity(store):
    return store.insert_identity(OWNER, OWNER_LOWER, "owner", 100)


def test_ensure_schema_is_idempotent(store):
    store.ensure_schema()
    store.ensure_schema()
    assert store.count_vehicles() == 0


def test_identity_unique_on_normalized_wallet(store, identity):
    with pytest.raises(DuplicateIdentity):
        store.insert_identity(OWNER_LOWER, OWNER_LOWER, None, 101)
    assert store.get_identity_by_wallet(OWNER_LOWER).id == identity.id


def test_touch_identity(store, identity):
    updated = store.touch_identity(identity.id, 200, display_name="renamed")
    assert updated.last_login == 200
    assert updated.updated_at == 200
    assert updated.display_name == "renamed"
    assert updated.created_at == 100


def test_create_and_read_vehicle(store, identity):
    created = store.create_vehicle(_profile(identity.id, token_id=42))
    assert created.token_id == 42
    assert store.get_vehicle(42).vin == "VIN0000000000001"
    assert store.get_owner_wallet(42) == OWNER_LOWER
    assert store.get_owner_wallet(43) is None
    assert store.list_token_ids() == [42]


def test_duplicate_token_classified(store, identity):
    store.create_vehicle(_profile(identity.id, token_id=1))
    with pytest.raises(DuplicateToken):
        store.create_vehicle(_profile(identity.id, token_id=1, vin="VIN0000000000002"))


def test_duplicate_vin_classified(store, identity):
    store.create_vehicle(_profile(identity.id, token_id=1))
    with pytest.raises(DuplicateVIN):
        store.create_vehicle(_profile(identity.id, token_id=2))
    assert store.count_vehicles() == 1


def test_audit_entries_newest_first(store, identity):
    store.create_vehicle(_profile(identity.id, token_id=1))
    for i, ts in enumerate((300, 100, 200)):
        store.append_audit_entry(
            MintAuditEntry(
                id=None,
                token_id=1,
                action=ACTION_BLOCKCHAIN_MINT,
                detail=f"entry {i}",
                actor_wallet=OWNER_LOWER,
                created_at=ts,
            )
        )
    entries = store.list_audit_entries(1)
    assert [e.created_at for e in entries] == [300, 200, 100]
    assert len(store.list_audit_entries(1, limit=2)) == 2
    assert store.list_audit_entries(2) == []


def test_list_token_ids_ordered(store):
    a = store.insert_identity(OWNER, OWNER_LOWER, None, 1)
    b = store.insert_identity(OTHER_OWNER, OTHER_OWNER.lower(), None, 1)
    store.create_vehicle(_profile(a.id, token_id=9, vin="VIN9"))
    store.create_vehicle(_profile(b.id, token_id=3, vin="VIN3"))
    assert store.list_token_ids() == [3, 9]
    assert store.count_vehicles() == 2


def test_driver_errors_become_store_unavailable(tmp_path):
    """SQLite cannot open a file in a directory that does not exist."""
    broken = SQLAlchemyProfileStore(f"sqlite:///{tmp_path / 'missing' / 'carstarz.db'}", timeout_sec=1.0)
    try:
        with pytest.raises(StoreUnavailable):
            broken.ensure_schema()
        with pytest.raises(StoreUnavailable):
            broken.get_identity_by_wallet(OWNER_LOWER)
    finally:
        broken.dispose()


def test_token_ids_beyond_bigint(store, identity):
    store.create_vehicle(_profile(identity.id, token_id=MAX_STORED_TOKEN_ID))
    assert store.get_vehicle(MAX_STORED_TOKEN_ID) is not None

    huge = 2**70
    assert store.get_vehicle(huge) is None
    assert store.get_owner_wallet(huge) is None
    assert store.list_audit_entries(huge) == []
    with pytest.raises(InvalidTokenId):
        store.create_vehicle(_profile(identity.id, token_id=MAX_STORED_TOKEN_ID + 1, vin="VIN2"))
    with pytest.raises(InvalidTokenId):
        store.append_audit_entry(
            MintAuditEntry(
                id=None,
                token_id=huge,
                action=ACTION_BLOCKCHAIN_MINT,
                detail="too big",
                actor_wallet=OWNER_LOWER,
                created_at=1,
            )
        )
    assert store.count_vehicles() == 1
