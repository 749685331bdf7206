"""
Domain models for database entities.

Identities, vehicle profiles, mint audit entries, and transient ownership
mismatches. Plain dataclasses; the ORM rows in database.py convert to these so
callers never hold a live session object.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# token_id columns are signed 64-bit integers
MAX_STORED_TOKEN_ID = 2**63 - 1


def is_storable_token_id(token_id: int) -> bool:
    return 0 <= token_id <= MAX_STORED_TOKEN_ID


@dataclass
class Identity:
    """One identity per normalized wallet."""

    id: int
    wallet_address: str
    """Address as first supplied (original casing)."""
    normalized_wallet: str
    """Canonical lowercase key; unique."""
    username: str | None = None
    display_name: str | None = None
    created_at: int | None = None
    updated_at: int | None = None
    last_login: int | None = None
    """Unix timestamp (seconds) of the latest resolution; None until first re-login."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "wallet_address": self.wallet_address,
            "normalized_wallet": self.normalized_wallet,
            "username": self.username,
            "display_name": self.display_name,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "last_login": self.last_login,
        }


@dataclass(frozen=True)
class VehicleInput:
    """Vehicle metadata supplied by the caller at mint confirmation."""

    vin: str
    make: str
    model: str
    year: int
    name: str
    description: str | None = None

    def resolved_description(self) -> str:
        """Caller description, or '<year> <make> <model>' when none was given."""
        if self.description and self.description.strip():
            return self.description.strip()
        return f"{self.year} {self.make} {self.model}"


@dataclass
class VehicleProfile:
    """Off-chain mirror of a minted vehicle token."""

    token_id: int
    vin: str
    owner_wallet: str
    """Normalized on-chain owner confirmed at creation time (point-in-time snapshot)."""
    identity_id: int
    make: str
    model: str
    year: int
    name: str
    description: str | None = None
    created_at: int | None = None
    updated_at: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "token_id": self.token_id,
            "vin": self.vin,
            "owner_wallet": self.owner_wallet,
            "identity_id": self.identity_id,
            "make": self.make,
            "model": self.model,
            "year": self.year,
            "name": self.name,
            "description": self.description,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


ACTION_BLOCKCHAIN_MINT = "blockchain_mint"


@dataclass
class MintAuditEntry:
    """Append-only audit row; one per confirmed mint."""

    id: int | None
    token_id: int
    action: str
    detail: str
    actor_wallet: str
    created_at: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "token_id": self.token_id,
            "action": self.action,
            "detail": self.detail,
            "actor_wallet": self.actor_wallet,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class OwnershipMismatch:
    """Stored owner differs from on-chain owner. Not persisted."""

    token_id: int
    on_chain_owner: str
    stored_owner: str
    detected_at: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "token_id": self.token_id,
            "on_chain_owner": self.on_chain_owner,
            "stored_owner": self.stored_owner,
            "detected_at": self.detected_at,
        }


@dataclass(frozen=True)
class TokenLookupError:
    """One token whose audit lookup failed; the rest of the batch is unaffected."""

    token_id: int
    code: str
    detail: str

    def to_dict(self) -> dict[str, Any]:
        return {"token_id": self.token_id, "code": self.code, "detail": self.detail}


@dataclass
class AuditReport:
    """Result of an ownership audit: confirmed mismatches plus per-token failures."""

    checked: int = 0
    mismatches: list[OwnershipMismatch] = field(default_factory=list)
    errors: list[TokenLookupError] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.mismatches and not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "checked": self.checked,
            "mismatches": [m.to_dict() for m in self.mismatches],
            "errors": [e.to_dict() for e in self.errors],
        }


@dataclass
class TokenSyncReport:
    """On-chain tokens that have no off-chain vehicle profile."""

    on_chain_total: int = 0
    unmirrored: list[int] = field(default_factory=list)
    errors: list[TokenLookupError] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "on_chain_total": self.on_chain_total,
            "unmirrored": list(self.unmirrored),
            "errors": [e.to_dict() for e in self.errors],
        }
