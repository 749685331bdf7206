"""
Application-level exceptions.

Every failure that leaves the core is one of these. Each carries a stable
`code` for API consumers and a `status_code` the HTTP layer maps onto the
response. Raw sqlalchemy / web3 errors are translated at the store and chain
reader boundaries and never reach callers.
"""

from __future__ import annotations

from typing import Any


class CarstarzError(Exception):
    """Base class for all domain errors."""

    code = "CARSTARZ_ERROR"
    status_code = 500
    retryable = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "detail": self.message}


class InvalidAddress(CarstarzError):
    code = "INVALID_ADDRESS"
    status_code = 400

    def __init__(self, value: object) -> None:
        super().__init__(f"Invalid wallet address: {value!r}")
        self.value = value


class InvalidTransactionHash(CarstarzError):
    code = "INVALID_TX_HASH"
    status_code = 400

    def __init__(self, value: object) -> None:
        super().__init__(f"Invalid transaction hash: {value!r}")
        self.value = value


class InvalidTokenId(CarstarzError):
    """Token id outside the range the profile store can hold."""

    code = "INVALID_TOKEN_ID"
    status_code = 400

    def __init__(self, token_id: int) -> None:
        super().__init__(f"Token id {token_id} is out of range")
        self.token_id = token_id


class InvalidVehicleData(CarstarzError):
    code = "INVALID_VEHICLE_DATA"
    status_code = 400

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(f"Invalid vehicle {field}: {reason}")
        self.field = field


# --- verification outcomes ---------------------------------------------------


class TransactionPending(CarstarzError):
    """Receipt not available yet. Not a failure: verification is inconclusive."""

    code = "TRANSACTION_PENDING"
    status_code = 202
    retryable = True

    def __init__(self, tx_hash: str) -> None:
        super().__init__(f"Transaction {tx_hash} is not mined yet; retry later")
        self.tx_hash = tx_hash


class TransactionFailed(CarstarzError):
    code = "TRANSACTION_FAILED"
    status_code = 422

    def __init__(self, tx_hash: str, status: int | None = None) -> None:
        super().__init__(f"Transaction {tx_hash} failed on-chain (status={status})")
        self.tx_hash = tx_hash
        self.status = status


class TokenNotFound(CarstarzError):
    code = "TOKEN_NOT_FOUND"
    status_code = 404

    def __init__(self, token_id: int) -> None:
        super().__init__(f"Token {token_id} does not exist on-chain")
        self.token_id = token_id


class OwnerMismatch(CarstarzError):
    code = "OWNER_MISMATCH"
    status_code = 422

    def __init__(self, token_id: int, expected: str, actual: str) -> None:
        super().__init__(
            f"Token {token_id} is owned by {actual} on-chain, not {expected}"
        )
        self.token_id = token_id
        self.expected = expected
        self.actual = actual

    def to_dict(self) -> dict[str, Any]:
        out = super().to_dict()
        out.update(expected=self.expected, actual=self.actual)
        return out


# --- store conflicts ---------------------------------------------------------


class DuplicateToken(CarstarzError):
    code = "DUPLICATE_TOKEN"
    status_code = 409

    def __init__(self, token_id: int) -> None:
        super().__init__(f"A vehicle profile for token {token_id} already exists")
        self.token_id = token_id


class DuplicateVIN(CarstarzError):
    code = "DUPLICATE_VIN"
    status_code = 409

    def __init__(self, vin: str) -> None:
        super().__init__(f"VIN {vin} is already registered to another vehicle")
        self.vin = vin


class ProfileNotFound(CarstarzError):
    """No off-chain vehicle profile exists for the token."""

    code = "PROFILE_NOT_FOUND"
    status_code = 404

    def __init__(self, token_id: int) -> None:
        super().__init__(f"Token {token_id} has no off-chain vehicle profile")
        self.token_id = token_id


class DuplicateIdentity(CarstarzError):
    """Lost an identity insert race. IdentityRegistry turns this into a re-read."""

    code = "DUPLICATE_IDENTITY"
    status_code = 409

    def __init__(self, normalized_wallet: str) -> None:
        super().__init__(f"Identity for {normalized_wallet} already exists")
        self.normalized_wallet = normalized_wallet


# --- infrastructure ----------------------------------------------------------


class StoreUnavailable(CarstarzError):
    code = "STORE_UNAVAILABLE"
    status_code = 503
    retryable = True


class ChainUnavailable(CarstarzError):
    code = "CHAIN_UNAVAILABLE"
    status_code = 503
    retryable = True
