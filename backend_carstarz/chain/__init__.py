"""
Chain access package.

Read-only JSON-RPC reader for the VehicleRegistry contract and the mint
verifier built on it. No event streaming: callers re-invoke verification on
their own retry schedule.
"""

from backend_carstarz.chain.models import Receipt, VerificationResult
from backend_carstarz.chain.reader import ChainReader, JsonRpcChainReader
from backend_carstarz.chain.verifier import ChainVerifier, normalize_tx_hash

__all__ = [
    "ChainReader",
    "ChainVerifier",
    "JsonRpcChainReader",
    "Receipt",
    "VerificationResult",
    "normalize_tx_hash",
]
