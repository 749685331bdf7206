"""
Service wiring.

Builds the store, chain reader and the three core services from Settings. Each
process (API server, scheduler, CLI run) calls build_services() once and passes
the result down; there are no module-level singletons.
"""

from __future__ import annotations

from dataclasses import dataclass

from backend_carstarz.carstarz_logging import get_logger
from backend_carstarz.chain.reader import ChainReader, JsonRpcChainReader
from backend_carstarz.chain.verifier import ChainVerifier
from backend_carstarz.config.env import mask_url
from backend_carstarz.config.settings import Settings
from backend_carstarz.database.database import ProfileStore, get_profile_store
from backend_carstarz.identity.registry import IdentityRegistry
from backend_carstarz.reconciliation.auditor import OwnershipAuditor
from backend_carstarz.reconciliation.mint import MintReconciler

logger = get_logger(__name__)


@dataclass
class Services:
    settings: Settings
    store: ProfileStore
    reader: ChainReader
    verifier: ChainVerifier
    identities: IdentityRegistry
    reconciler: MintReconciler
    auditor: OwnershipAuditor

    def close(self) -> None:
        """Release the store's connection pool."""
        dispose = getattr(self.store, "dispose", None)
        if callable(dispose):
            dispose()


def assemble_services(settings: Settings, store: ProfileStore, reader: ChainReader) -> Services:
    """Wire the core services over an existing store and reader."""
    verifier = ChainVerifier(reader)
    identities = IdentityRegistry(store)
    return Services(
        settings=settings,
        store=store,
        reader=reader,
        verifier=verifier,
        identities=identities,
        reconciler=MintReconciler(verifier, identities, store),
        auditor=OwnershipAuditor(reader, store, concurrency=settings.audit_concurrency),
    )


def build_services(settings: Settings) -> Services:
    """Open the configured store and chain RPC, then wire the services."""
    store = get_profile_store(settings.database_url, timeout_sec=settings.store_timeout_sec)
    reader = JsonRpcChainReader(
        settings.chain_rpc_url,
        settings.registry_address,
        timeout_sec=settings.chain_timeout_sec,
    )
    logger.info(
        "services_ready",
        database_url=mask_url(settings.database_url),
        chain_rpc_url=mask_url(settings.chain_rpc_url),
        registry=settings.registry_address,
        audit_concurrency=settings.audit_concurrency,
    )
    return assemble_services(settings, store, reader)
