"""
Pytest fixtures for Carstarz tests. Uses a temporary SQLite profile store and an
in-memory chain reader.
"""

from __future__ import annotations

import pytest

from backend_carstarz.config.settings import Settings
from backend_carstarz.database.database import get_profile_store
from backend_carstarz.services import assemble_services

from tests.fakes import REGISTRY_ADDRESS, FakeChainReader


@pytest.fixture
def store(tmp_path):
    """Fresh SQLite profile store per test."""
    s = get_profile_store(f"sqlite:///{tmp_path / 'carstarz.db'}", timeout_sec=5.0)
    yield s
    s.dispose()


@pytest.fixture
def chain():
    return FakeChainReader()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'carstarz.db'}",
        chain_rpc_url="http://chain.test:8545",
        registry_address=REGISTRY_ADDRESS,
        audit_concurrency=4,
        retry_after_sec=7,
    )


@pytest.fixture
def services(settings, store, chain):
    return assemble_services(settings, store, chain)


@pytest.fixture
def client(services):
    """FastAPI TestClient over the test services (lifespan does not rebuild them)."""
    from fastapi.testclient import TestClient

    from backend_carstarz.api_server.server import create_app

    with TestClient(create_app(services)) as c:
        yield c
