"""
Commit-confirm mint reconciliation.

Order of operations for confirm_mint:
1. verify on-chain (nothing is written unless this succeeds)
2. resolve or create the owner's identity
3. create the vehicle profile (store unique constraints arbitrate races)
4. append the audit entry (best-effort; never undoes step 3)
"""

from __future__ import annotations

import time
from typing import Callable

from backend_carstarz.carstarz_logging import bind_token, get_logger, short_wallet
from backend_carstarz.chain.models import VerificationResult
from backend_carstarz.chain.verifier import ChainVerifier
from backend_carstarz.core.exceptions import (
    DuplicateToken,
    DuplicateVIN,
    InvalidTokenId,
    InvalidVehicleData,
)
from backend_carstarz.database.database import ProfileStore
from backend_carstarz.database.models import (
    ACTION_BLOCKCHAIN_MINT,
    MintAuditEntry,
    VehicleInput,
    VehicleProfile,
    is_storable_token_id,
)
from backend_carstarz.identity.registry import IdentityRegistry

logger = get_logger(__name__)


def normalize_vin(vin: str) -> str:
    """VINs are compared uppercase with surrounding whitespace removed."""
    cleaned = (vin or "").strip().upper()
    if not cleaned:
        raise InvalidVehicleData("vin", "must be non-empty")
    return cleaned


class MintReconciler:
    """Creates the off-chain vehicle profile for a verified mint, exactly once per token."""

    def __init__(
        self,
        verifier: ChainVerifier,
        identities: IdentityRegistry,
        store: ProfileStore,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._verifier = verifier
        self._identities = identities
        self._store = store
        self._clock = clock

    def confirm_mint(
        self,
        token_id: int,
        tx_hash: str,
        claimed_owner: str,
        vehicle_data: VehicleInput,
    ) -> VehicleProfile:
        """
        Verify the mint and create its vehicle profile.

        InvalidTokenId and InvalidVehicleData reject the request before any chain
        call. Raises TransactionPending when the receipt is not available yet (call again
        later). Verification failures (TransactionFailed, TokenNotFound,
        OwnerMismatch) and InvalidAddress abort before any write. DuplicateToken and
        DuplicateVIN report store conflicts. StoreUnavailable / ChainUnavailable are
        infrastructure failures the caller may retry.
        """
        log = bind_token(token_id)
        if not is_storable_token_id(token_id):
            raise InvalidTokenId(token_id)
        vin = normalize_vin(vehicle_data.vin)

        verified = self._verifier.verify_mint(token_id, tx_hash, claimed_owner)

        identity = self._identities.resolve_or_create(claimed_owner)

        now = int(self._clock())
        profile = VehicleProfile(
            token_id=verified.token_id,
            vin=vin,
            owner_wallet=verified.owner,
            identity_id=identity.id,
            make=vehicle_data.make.strip(),
            model=vehicle_data.model.strip(),
            year=vehicle_data.year,
            name=vehicle_data.name.strip(),
            description=vehicle_data.resolved_description(),
            created_at=now,
            updated_at=now,
        )
        try:
            created = self._store.create_vehicle(profile)
        except DuplicateToken:
            log.info("mint_confirm_duplicate_token", tx_hash=verified.tx_hash)
            raise
        except DuplicateVIN:
            log.info("mint_confirm_duplicate_vin", vin=vin, tx_hash=verified.tx_hash)
            raise

        self._append_audit(verified, now)

        log.info(
            "mint_confirmed",
            tx_hash=verified.tx_hash,
            wallet_id=short_wallet(created.owner_wallet),
            identity_id=identity.id,
            block_number=verified.block_number,
        )
        return created

    def _append_audit(self, verified: VerificationResult, now: int) -> None:
        entry = MintAuditEntry(
            id=None,
            token_id=verified.token_id,
            action=ACTION_BLOCKCHAIN_MINT,
            detail=f"Minted in tx {verified.tx_hash} at block {verified.block_number}",
            actor_wallet=verified.owner,
            created_at=now,
        )
        try:
            self._store.append_audit_entry(entry)
        except Exception as e:
            logger.warning(
                "mint_audit_write_failed",
                token_id=verified.token_id,
                tx_hash=verified.tx_hash,
                error=str(e),
                exc_info=True,
            )
