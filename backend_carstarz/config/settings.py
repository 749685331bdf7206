"""
Application settings.

Typed, immutable settings built from environment variables (after .env is
loaded by config.env). Built once at process start and passed down explicitly;
nothing in the core reads os.environ on its own.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from backend_carstarz.config.env import (
    get_chain_rpc_url,
    get_database_url,
    get_registry_address,
    load_carstarz_env,
)

DEFAULT_CHAIN_TIMEOUT_SEC = 10.0
DEFAULT_STORE_TIMEOUT_SEC = 5.0
DEFAULT_AUDIT_CONCURRENCY = 8
MAX_AUDIT_CONCURRENCY = 16
DEFAULT_AUDIT_INTERVAL_SEC = 900.0
DEFAULT_RETRY_AFTER_SEC = 15


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    return float(raw) if raw else default


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    return int(raw) if raw else default


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration values (no clients, no connections)."""

    database_url: str
    chain_rpc_url: str
    registry_address: str
    chain_timeout_sec: float = DEFAULT_CHAIN_TIMEOUT_SEC
    store_timeout_sec: float = DEFAULT_STORE_TIMEOUT_SEC
    audit_concurrency: int = DEFAULT_AUDIT_CONCURRENCY
    audit_interval_sec: float = DEFAULT_AUDIT_INTERVAL_SEC
    retry_after_sec: int = DEFAULT_RETRY_AFTER_SEC
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    def __post_init__(self) -> None:
        if self.chain_timeout_sec <= 0:
            raise ValueError("chain_timeout_sec must be positive")
        if self.store_timeout_sec <= 0:
            raise ValueError("store_timeout_sec must be positive")
        clamped = max(1, min(int(self.audit_concurrency), MAX_AUDIT_CONCURRENCY))
        object.__setattr__(self, "audit_concurrency", clamped)


def get_settings() -> Settings:
    """Build Settings from the environment."""
    load_carstarz_env()
    return Settings(
        database_url=get_database_url(),
        chain_rpc_url=get_chain_rpc_url(),
        registry_address=get_registry_address(),
        chain_timeout_sec=_env_float("CHAIN_REQUEST_TIMEOUT_SEC", DEFAULT_CHAIN_TIMEOUT_SEC),
        store_timeout_sec=_env_float("STORE_TIMEOUT_SEC", DEFAULT_STORE_TIMEOUT_SEC),
        audit_concurrency=_env_int("AUDIT_CONCURRENCY", DEFAULT_AUDIT_CONCURRENCY),
        audit_interval_sec=_env_float("AUDIT_INTERVAL_SEC", DEFAULT_AUDIT_INTERVAL_SEC),
        retry_after_sec=_env_int("RETRY_AFTER_SEC", DEFAULT_RETRY_AFTER_SEC),
        api_host=(os.getenv("API_HOST") or "0.0.0.0").strip(),
        api_port=_env_int("API_PORT", 8000),
    )
