"""
Chain reader: read-only access to the VehicleRegistry (ERC-721) contract.

Responsibilities:
- Look up transaction receipts (absent receipt means not mined yet).
- Call ownerOf / totalSupply / tokenByIndex through web3 contract bindings.
- Keep "not mined", "reverted" and "token does not exist" distinguishable.
- Translate transport and malformed-response failures into ChainUnavailable.

Never signs or submits transactions.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Any, Callable, TypeVar

import requests
from web3 import HTTPProvider, Web3
from web3.exceptions import ContractLogicError, TransactionNotFound, Web3Exception
from web3.providers.base import BaseProvider

from backend_carstarz.carstarz_logging import get_logger
from backend_carstarz.chain.models import MAX_UINT256, Receipt
from backend_carstarz.core.exceptions import ChainUnavailable, TokenNotFound
from backend_carstarz.utils.wallet_key import normalize

logger = get_logger(__name__)

T = TypeVar("T")

ZERO_ADDRESS = "0x" + "0" * 40

# Only the read functions the verifier and auditor call
VEHICLE_REGISTRY_ABI: list[dict[str, Any]] = [
    {
        "name": "ownerOf",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "tokenId", "type": "uint256"}],
        "outputs": [{"name": "", "type": "address"}],
    },
    {
        "name": "totalSupply",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "tokenByIndex",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "index", "type": "uint256"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]

RETRYABLE_TRANSPORT_ERRORS = (requests.exceptions.ConnectionError, requests.exceptions.Timeout)


class ChainReader(ABC):
    """Read-only chain access consumed by the verifier and auditor."""

    @abstractmethod
    def get_receipt(self, tx_hash: str) -> Receipt | None:
        """Return the receipt, or None if the transaction is not mined yet."""
        ...

    @abstractmethod
    def owner_of(self, token_id: int) -> str:
        """Return the normalized owner of token_id. Raises TokenNotFound if it does not exist."""
        ...

    @abstractmethod
    def total_supply(self) -> int:
        ...

    @abstractmethod
    def token_by_index(self, index: int) -> int:
        """ERC-721 Enumerable tokenByIndex. Raises TokenNotFound if index is out of range."""
        ...


def _in_uint256(value: int) -> bool:
    return 0 <= value <= MAX_UINT256


class JsonRpcChainReader(ChainReader):
    """
    ChainReader over EVM JSON-RPC (web3.py).

    Every request is bounded by timeout_sec. Connection errors and timeouts are
    retried a few times with exponential backoff; RPC-level answers (including
    "not mined") are returned immediately and never polled.
    """

    def __init__(
        self,
        rpc_url: str,
        registry_address: str,
        *,
        timeout_sec: float = 10.0,
        max_retries: int = 2,
        min_retry_delay_sec: float = 0.25,
        max_retry_delay_sec: float = 2.0,
        provider: BaseProvider | None = None,
    ) -> None:
        """
        Args:
            rpc_url: JSON-RPC HTTP endpoint (e.g. http://localhost:8545).
            registry_address: VehicleRegistry contract address; normalized here.
            timeout_sec: Per-request deadline.
            max_retries: Extra attempts after a connection error or timeout.
            provider: Optional web3 provider (tests pass a scripted one).
        """
        if not rpc_url.strip():
            raise ValueError("rpc_url must be non-empty")
        if timeout_sec <= 0:
            raise ValueError("timeout_sec must be positive")
        self._registry = normalize(registry_address)
        self._max_retries = max(0, max_retries)
        self._min_retry_delay = min_retry_delay_sec
        self._max_retry_delay = max_retry_delay_sec
        if provider is None:
            # Retries are ours; the provider's own retry loop is switched off.
            provider = HTTPProvider(
                rpc_url.strip(),
                request_kwargs={"timeout": timeout_sec},
                exception_retry_configuration=None,
            )
        self._w3 = Web3(provider)
        self._contract = self._w3.eth.contract(
            address=Web3.to_checksum_address(self._registry),
            abi=VEHICLE_REGISTRY_ABI,
        )

    # --- public API ---

    def get_receipt(self, tx_hash: str) -> Receipt | None:
        try:
            raw = self._request("eth_getTransactionReceipt", lambda: self._w3.eth.get_transaction_receipt(tx_hash))
        except TransactionNotFound:
            return None
        try:
            return Receipt.from_web3(raw)
        except (KeyError, TypeError, ValueError) as e:
            raise ChainUnavailable(f"Malformed transaction receipt: {e}") from e

    def owner_of(self, token_id: int) -> str:
        if not _in_uint256(token_id):
            raise TokenNotFound(token_id)
        try:
            raw = self._request("ownerOf", self._contract.functions.ownerOf(token_id).call)
        except ContractLogicError as e:
            raise TokenNotFound(token_id) from e
        owner = normalize(raw)
        if owner == ZERO_ADDRESS:
            raise TokenNotFound(token_id)
        return owner

    def total_supply(self) -> int:
        try:
            return int(self._request("totalSupply", self._contract.functions.totalSupply().call))
        except ContractLogicError as e:
            raise ChainUnavailable("totalSupply() reverted; registry is not ERC-721 Enumerable") from e

    def token_by_index(self, index: int) -> int:
        if not _in_uint256(index):
            raise TokenNotFound(index)
        try:
            return int(self._request("tokenByIndex", self._contract.functions.tokenByIndex(index).call))
        except ContractLogicError as e:
            raise TokenNotFound(index) from e

    # --- plumbing ---

    def _request(self, name: str, fn: Callable[[], T]) -> T:
        """
        Run one web3 request with transport retries.

        ContractLogicError and TransactionNotFound pass through for the caller to
        map; every other failure becomes ChainUnavailable.
        """
        delay = self._min_retry_delay
        for attempt in range(self._max_retries + 1):
            try:
                return fn()
            except (ContractLogicError, TransactionNotFound):
                raise
            except RETRYABLE_TRANSPORT_ERRORS as e:
                if attempt >= self._max_retries:
                    logger.error("chain_rpc_give_up", method=name, attempts=attempt + 1, error=str(e))
                    raise ChainUnavailable(f"Chain RPC unreachable: {e.__class__.__name__}") from e
                logger.warning("chain_rpc_retry", method=name, attempt=attempt + 1, error=str(e))
                time.sleep(delay)
                delay = min(delay * 2, self._max_retry_delay)
            except (requests.exceptions.RequestException, Web3Exception, ValueError) as e:
                logger.error("chain_rpc_error", method=name, error=str(e))
                raise ChainUnavailable(f"Chain RPC error on {name}: {e.__class__.__name__}") from e
        raise ChainUnavailable(f"Chain RPC unreachable: {name}")
