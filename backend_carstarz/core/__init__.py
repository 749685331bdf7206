"""
Core cross-cutting concerns: the domain error taxonomy.
"""

from backend_carstarz.core.exceptions import (
    CarstarzError,
    ChainUnavailable,
    DuplicateIdentity,
    DuplicateToken,
    DuplicateVIN,
    InvalidAddress,
    InvalidTokenId,
    InvalidTransactionHash,
    InvalidVehicleData,
    OwnerMismatch,
    ProfileNotFound,
    StoreUnavailable,
    TokenNotFound,
    TransactionFailed,
    TransactionPending,
)

__all__ = [
    "CarstarzError",
    "ChainUnavailable",
    "DuplicateIdentity",
    "DuplicateToken",
    "DuplicateVIN",
    "InvalidAddress",
    "InvalidTokenId",
    "InvalidTransactionHash",
    "InvalidVehicleData",
    "OwnerMismatch",
    "ProfileNotFound",
    "StoreUnavailable",
    "TokenNotFound",
    "TransactionFailed",
    "TransactionPending",
]
