"""
Identity registry: exactly one identity per normalized wallet.

The store's unique constraint on normalized_wallet decides insert races. A
resolve that loses the race re-reads the winner's row instead of failing, so
concurrent first logins for one wallet (in any casing) all return the same
identity.
"""

from __future__ import annotations

import time
from typing import Callable

from backend_carstarz.carstarz_logging import get_logger, short_wallet
from backend_carstarz.core.exceptions import DuplicateIdentity, StoreUnavailable
from backend_carstarz.database.database import ProfileStore
from backend_carstarz.database.models import Identity
from backend_carstarz.utils.wallet_key import normalize

logger = get_logger(__name__)


def default_display_name(wallet_address: str) -> str:
    """Truncated wallet used until the user picks a name: 0xAB12…CD34."""
    wallet = wallet_address.strip()
    return f"{wallet[:6]}…{wallet[-4:]}"


class IdentityRegistry:
    """Resolve wallets to identities; create on first sight, record last_login afterwards."""

    def __init__(self, store: ProfileStore, *, clock: Callable[[], float] = time.time) -> None:
        self._store = store
        self._clock = clock

    def get_by_wallet(self, wallet: str) -> Identity | None:
        """Read-only lookup. Raises InvalidAddress or StoreUnavailable."""
        return self._store.get_identity_by_wallet(normalize(wallet))

    def resolve_or_create(self, wallet: str, *, display_name: str | None = None) -> Identity:
        """
        Return the identity for wallet, creating it if absent.

        Existing identity: last_login is set to now (display_name updated when given).
        New identity: display_name defaults to the truncated supplied address.

        Raises InvalidAddress or StoreUnavailable.
        """
        key = normalize(wallet)
        now = int(self._clock())

        existing = self._store.get_identity_by_wallet(key)
        if existing is not None:
            return self._record_login(existing, now, display_name)

        try:
            created = self._store.insert_identity(
                wallet_address=wallet.strip(),
                normalized_wallet=key,
                display_name=display_name or default_display_name(wallet),
                now=now,
            )
        except DuplicateIdentity:
            winner = self._store.get_identity_by_wallet(key)
            if winner is None:
                # Conflict reported but no row visible: the store is inconsistent.
                raise StoreUnavailable(f"Identity for {short_wallet(key)} conflicted but cannot be read")
            logger.info("identity_create_race_lost", wallet_id=short_wallet(key), identity_id=winner.id)
            return self._record_login(winner, now, display_name)

        logger.info("identity_created", wallet_id=short_wallet(key), identity_id=created.id)
        return created

    def _record_login(self, identity: Identity, now: int, display_name: str | None) -> Identity:
        updated = self._store.touch_identity(identity.id, now, display_name=display_name)
        logger.debug("identity_login_recorded", wallet_id=short_wallet(identity.normalized_wallet), identity_id=identity.id)
        return updated
