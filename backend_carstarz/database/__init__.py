"""
Profile store: identities, vehicle profiles, and the mint audit log.

SQLite for local use via get_profile_store(); PostgreSQL via DATABASE_URL.
"""

from backend_carstarz.database.database import (
    ProfileStore,
    SQLAlchemyProfileStore,
    get_profile_store,
)
from backend_carstarz.database.models import (
    AuditReport,
    Identity,
    MintAuditEntry,
    OwnershipMismatch,
    TokenLookupError,
    TokenSyncReport,
    VehicleInput,
    VehicleProfile,
)

__all__ = [
    "ProfileStore",
    "SQLAlchemyProfileStore",
    "get_profile_store",
    "AuditReport",
    "Identity",
    "MintAuditEntry",
    "OwnershipMismatch",
    "TokenLookupError",
    "TokenSyncReport",
    "VehicleInput",
    "VehicleProfile",
]
