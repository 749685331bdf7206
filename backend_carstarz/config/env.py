"""
Environment variable loading for Carstarz.

- CHAIN_RPC_URL: EVM JSON-RPC endpoint (default: local hardhat node)
- CHAIN_NETWORK: localhost | sepolia | mainnet (informational; picks default RPC)
- VEHICLE_REGISTRY_ADDRESS: deployed VehicleRegistry (ERC-721) contract
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Project root: config is backend_carstarz/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_BACKEND_DIR = _CONFIG_DIR.parent
_ROOT = _BACKEND_DIR.parent
_ENV_PATH = _ROOT / ".env"

LOCALHOST_RPC_URL = "http://localhost:8545"
SEPOLIA_RPC_URL = "https://rpc.sepolia.org"
MAINNET_RPC_URL = "https://eth.llamarpc.com"

# First deployment address of VehicleRegistry on a fresh hardhat node
DEFAULT_LOCAL_REGISTRY_ADDRESS = "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512"


def load_carstarz_env() -> None:
    """Load .env from project root. Safe to call multiple times; never overrides set vars."""
    if _ENV_PATH.exists():
        load_dotenv(_ENV_PATH, override=False)


def get_chain_network() -> str:
    """Return CHAIN_NETWORK from env: localhost | sepolia | mainnet. Default: localhost."""
    load_carstarz_env()
    raw = (os.getenv("CHAIN_NETWORK") or "localhost").strip().lower()
    if raw in ("localhost", "hardhat", "local"):
        return "localhost"
    if raw in ("sepolia", "mainnet"):
        return raw
    return "localhost"


def get_chain_rpc_url() -> str:
    """Resolve RPC URL. Order: CHAIN_RPC_URL > network default."""
    load_carstarz_env()
    url = (os.getenv("CHAIN_RPC_URL") or "").strip()
    if url:
        return url
    network = get_chain_network()
    if network == "sepolia":
        return SEPOLIA_RPC_URL
    if network == "mainnet":
        return MAINNET_RPC_URL
    return LOCALHOST_RPC_URL


def get_registry_address() -> str:
    """Return VEHICLE_REGISTRY_ADDRESS, or the local hardhat default on localhost."""
    load_carstarz_env()
    address = (os.getenv("VEHICLE_REGISTRY_ADDRESS") or "").strip()
    if address:
        return address
    if get_chain_network() == "localhost":
        return DEFAULT_LOCAL_REGISTRY_ADDRESS
    raise ValueError("VEHICLE_REGISTRY_ADDRESS must be set outside localhost")


def get_database_url() -> str:
    """Return CARSTARZ_DB_URL or DATABASE_URL if set; else SQLite from DATABASE_PATH."""
    load_carstarz_env()
    url = (os.getenv("CARSTARZ_DB_URL") or os.getenv("DATABASE_URL") or "").strip()
    if url:
        return url
    path = (os.getenv("DATABASE_PATH") or "").strip() or "carstarz.db"
    return f"sqlite:///{path}"


def mask_url(url: str) -> str:
    """Strip query string and credentials from a URL for logging."""
    base = url.split("?")[0]
    if "@" in base:
        scheme, _, rest = base.partition("://")
        return f"{scheme}://***@{rest.split('@', 1)[1]}"
    return base
