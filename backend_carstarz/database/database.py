"""
Profile Store: identities, vehicle profiles, and the mint audit log.

SQLAlchemy-backed. Uses DATABASE_URL for PostgreSQL when set; otherwise SQLite.
Unique constraints on identity_registry.normalized_wallet, vehicle_profiles.token_id
and vehicle_profiles.vin are the only concurrency-safety mechanism: conflicts are
detected from IntegrityError and classified by re-reading, then raised as typed
errors (DuplicateIdentity, DuplicateToken, DuplicateVIN). Any other driver
failure becomes StoreUnavailable.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import (
    BigInteger,
    Column,
    ForeignKey,
    Integer,
    String,
    Text,
    create_engine,
    event,
    func,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from backend_carstarz.carstarz_logging import get_logger, short_wallet
from backend_carstarz.config.env import mask_url
from backend_carstarz.core.exceptions import (
    CarstarzError,
    DuplicateIdentity,
    DuplicateToken,
    DuplicateVIN,
    InvalidTokenId,
    StoreUnavailable,
)
from backend_carstarz.database.models import (
    Identity,
    MintAuditEntry,
    VehicleProfile,
    is_storable_token_id,
)

logger = get_logger(__name__)

Base = declarative_base()

# -----------------------------------------------------------------------------
# SQLAlchemy models
# -----------------------------------------------------------------------------


class IdentityRow(Base):
    __tablename__ = "identity_registry"

    id = Column(Integer, primary_key=True, autoincrement=True)
    wallet_address = Column(String(64), nullable=False)
    normalized_wallet = Column(String(64), unique=True, nullable=False, index=True)
    username = Column(String(64), unique=True, nullable=True)
    display_name = Column(String(128), nullable=True)
    created_at = Column(Integer, nullable=False)
    updated_at = Column(Integer, nullable=False)
    last_login = Column(Integer, nullable=True)

    def to_domain(self) -> Identity:
        return Identity(
            id=self.id,
            wallet_address=self.wallet_address,
            normalized_wallet=self.normalized_wallet,
            username=self.username,
            display_name=self.display_name,
            created_at=self.created_at,
            updated_at=self.updated_at,
            last_login=self.last_login,
        )


class VehicleProfileRow(Base):
    __tablename__ = "vehicle_profiles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    token_id = Column(BigInteger, unique=True, nullable=False, index=True)
    vin = Column(String(32), unique=True, nullable=False, index=True)
    owner_wallet = Column(String(64), nullable=False, index=True)
    identity_id = Column(Integer, ForeignKey("identity_registry.id"), nullable=False, index=True)
    make = Column(String(64), nullable=False)
    model = Column(String(64), nullable=False)
    year = Column(Integer, nullable=False)
    name = Column(String(128), nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(Integer, nullable=False)
    updated_at = Column(Integer, nullable=False)

    def to_domain(self) -> VehicleProfile:
        return VehicleProfile(
            token_id=self.token_id,
            vin=self.vin,
            owner_wallet=self.owner_wallet,
            identity_id=self.identity_id,
            make=self.make,
            model=self.model,
            year=self.year,
            name=self.name,
            description=self.description,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class MintAuditRow(Base):
    """Append-only. Rows are never updated or deleted."""

    __tablename__ = "vehicle_audit_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    token_id = Column(BigInteger, ForeignKey("vehicle_profiles.token_id"), nullable=False, index=True)
    action = Column(String(64), nullable=False)
    detail = Column(Text, nullable=False)
    actor_wallet = Column(String(64), nullable=False)
    created_at = Column(Integer, nullable=False, index=True)

    def to_domain(self) -> MintAuditEntry:
        return MintAuditEntry(
            id=self.id,
            token_id=self.token_id,
            action=self.action,
            detail=self.detail,
            actor_wallet=self.actor_wallet,
            created_at=self.created_at,
        )


# -----------------------------------------------------------------------------
# Abstract store: the core depends on this, never on SQLAlchemy directly.
# -----------------------------------------------------------------------------


class ProfileStore(ABC):
    """Relational access used by the reconciliation core. All wallets passed in are normalized."""

    @abstractmethod
    def ensure_schema(self) -> None:
        """Create tables and unique constraints if they do not exist."""
        ...

    # --- identities ---

    @abstractmethod
    def get_identity_by_wallet(self, normalized_wallet: str) -> Identity | None:
        ...

    @abstractmethod
    def insert_identity(
        self,
        wallet_address: str,
        normalized_wallet: str,
        display_name: str | None,
        now: int,
    ) -> Identity:
        """Insert a new identity. Raises DuplicateIdentity if normalized_wallet exists."""
        ...

    @abstractmethod
    def touch_identity(
        self,
        identity_id: int,
        now: int,
        display_name: str | None = None,
    ) -> Identity:
        """Set last_login (and display_name when given). Returns the updated identity."""
        ...

    # --- vehicle profiles ---

    @abstractmethod
    def create_vehicle(self, profile: VehicleProfile) -> VehicleProfile:
        """Insert a profile. Raises DuplicateToken or DuplicateVIN on conflict."""
        ...

    @abstractmethod
    def get_vehicle(self, token_id: int) -> VehicleProfile | None:
        ...

    @abstractmethod
    def get_owner_wallet(self, token_id: int) -> str | None:
        """Stored owner_wallet for a token, or None if no profile exists."""
        ...

    @abstractmethod
    def list_token_ids(self, *, limit: int = 10_000) -> list[int]:
        ...

    @abstractmethod
    def count_vehicles(self) -> int:
        ...

    # --- audit log ---

    @abstractmethod
    def append_audit_entry(self, entry: MintAuditEntry) -> MintAuditEntry:
        ...

    @abstractmethod
    def list_audit_entries(self, token_id: int, *, limit: int = 100) -> list[MintAuditEntry]:
        """Audit entries for a token, newest first."""
        ...


# -----------------------------------------------------------------------------
# SQLAlchemy implementation
# -----------------------------------------------------------------------------


def _build_engine(url: str, timeout_sec: float) -> Engine:
    connect_args: dict[str, Any] = {}
    engine_kwargs: dict[str, Any] = {"pool_pre_ping": True}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        connect_args["timeout"] = timeout_sec
    else:
        engine_kwargs["pool_timeout"] = timeout_sec
        if url.startswith("postgresql"):
            connect_args["connect_timeout"] = max(1, int(timeout_sec))
            connect_args["options"] = f"-c statement_timeout={int(timeout_sec * 1000)}"
    engine = create_engine(url, connect_args=connect_args, **engine_kwargs)
    if url.startswith("sqlite"):

        @event.listens_for(engine, "connect")
        def _sqlite_pragmas(dbapi_conn: Any, _record: Any) -> None:
            cur = dbapi_conn.cursor()
            cur.execute("PRAGMA foreign_keys = ON")
            cur.execute("PRAGMA journal_mode = WAL")
            cur.close()

    return engine


class SQLAlchemyProfileStore(ProfileStore):
    """ProfileStore over SQLAlchemy; SQLite for local use, PostgreSQL via DATABASE_URL."""

    def __init__(self, url: str, *, timeout_sec: float = 5.0) -> None:
        self._url = url
        self._engine = _build_engine(url, timeout_sec)
        self._session_factory = sessionmaker(
            autocommit=False, autoflush=False, expire_on_commit=False, bind=self._engine
        )

    @property
    def engine(self) -> Engine:
        return self._engine

    def dispose(self) -> None:
        self._engine.dispose()

    @contextmanager
    def _session_scope(self) -> Iterator[Session]:
        """Commit on success, roll back on error. IntegrityError propagates; other driver errors become StoreUnavailable."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except IntegrityError:
            session.rollback()
            raise
        except SQLAlchemyError as e:
            session.rollback()
            logger.error("profile_store_unavailable", error=str(e))
            raise StoreUnavailable(f"Profile store error: {e.__class__.__name__}") from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def ensure_schema(self) -> None:
        try:
            Base.metadata.create_all(bind=self._engine)
        except SQLAlchemyError as e:
            logger.exception("profile_store_schema_failed", error=str(e))
            raise StoreUnavailable("Could not create profile store schema") from e
        logger.info("profile_store_schema_ready", url=mask_url(self._url))

    # --- identities ---

    def get_identity_by_wallet(self, normalized_wallet: str) -> Identity | None:
        with self._session_scope() as session:
            row = session.execute(
                select(IdentityRow).where(IdentityRow.normalized_wallet == normalized_wallet)
            ).scalar_one_or_none()
            return row.to_domain() if row else None

    def insert_identity(
        self,
        wallet_address: str,
        normalized_wallet: str,
        display_name: str | None,
        now: int,
    ) -> Identity:
        try:
            with self._session_scope() as session:
                row = IdentityRow(
                    wallet_address=wallet_address,
                    normalized_wallet=normalized_wallet,
                    display_name=display_name,
                    created_at=now,
                    updated_at=now,
                )
                session.add(row)
                session.flush()
                identity = row.to_domain()
        except IntegrityError as e:
            logger.info("identity_insert_conflict", wallet_id=short_wallet(normalized_wallet))
            raise DuplicateIdentity(normalized_wallet) from e
        return identity

    def touch_identity(
        self,
        identity_id: int,
        now: int,
        display_name: str | None = None,
    ) -> Identity:
        with self._session_scope() as session:
            row = session.get(IdentityRow, identity_id)
            if row is None:
                raise CarstarzError(f"Identity {identity_id} disappeared during update")
            row.last_login = now
            row.updated_at = now
            if display_name:
                row.display_name = display_name
            session.flush()
            return row.to_domain()

    # --- vehicle profiles ---

    def create_vehicle(self, profile: VehicleProfile) -> VehicleProfile:
        if not is_storable_token_id(profile.token_id):
            raise InvalidTokenId(profile.token_id)
        now = int(time.time())
        try:
            with self._session_scope() as session:
                row = VehicleProfileRow(
                    token_id=profile.token_id,
                    vin=profile.vin,
                    owner_wallet=profile.owner_wallet,
                    identity_id=profile.identity_id,
                    make=profile.make,
                    model=profile.model,
                    year=profile.year,
                    name=profile.name,
                    description=profile.description,
                    created_at=profile.created_at or now,
                    updated_at=profile.updated_at or now,
                )
                session.add(row)
                session.flush()
                created = row.to_domain()
        except IntegrityError as e:
            raise self._classify_vehicle_conflict(profile) from e
        return created

    def _classify_vehicle_conflict(self, profile: VehicleProfile) -> CarstarzError:
        """Decide which unique constraint rejected the insert by reading current state."""
        with self._session_scope() as session:
            token_taken = session.execute(
                select(VehicleProfileRow.id).where(VehicleProfileRow.token_id == profile.token_id)
            ).first()
            if token_taken is not None:
                return DuplicateToken(profile.token_id)
            vin_taken = session.execute(
                select(VehicleProfileRow.id).where(VehicleProfileRow.vin == profile.vin)
            ).first()
            if vin_taken is not None:
                return DuplicateVIN(profile.vin)
        logger.error(
            "vehicle_insert_integrity_error",
            token_id=profile.token_id,
            identity_id=profile.identity_id,
        )
        return CarstarzError(f"Vehicle profile for token {profile.token_id} violates a store constraint")

    def get_vehicle(self, token_id: int) -> VehicleProfile | None:
        if not is_storable_token_id(token_id):
            return None
        with self._session_scope() as session:
            row = session.execute(
                select(VehicleProfileRow).where(VehicleProfileRow.token_id == token_id)
            ).scalar_one_or_none()
            return row.to_domain() if row else None

    def get_owner_wallet(self, token_id: int) -> str | None:
        if not is_storable_token_id(token_id):
            return None
        with self._session_scope() as session:
            return session.execute(
                select(VehicleProfileRow.owner_wallet).where(VehicleProfileRow.token_id == token_id)
            ).scalar_one_or_none()

    def list_token_ids(self, *, limit: int = 10_000) -> list[int]:
        with self._session_scope() as session:
            rows = session.execute(
                select(VehicleProfileRow.token_id).order_by(VehicleProfileRow.token_id).limit(limit)
            ).all()
            return [r[0] for r in rows]

    def count_vehicles(self) -> int:
        with self._session_scope() as session:
            return int(session.execute(select(func.count(VehicleProfileRow.id))).scalar_one())

    # --- audit log ---

    def append_audit_entry(self, entry: MintAuditEntry) -> MintAuditEntry:
        if not is_storable_token_id(entry.token_id):
            raise InvalidTokenId(entry.token_id)
        try:
            with self._session_scope() as session:
                row = MintAuditRow(
                    token_id=entry.token_id,
                    action=entry.action,
                    detail=entry.detail,
                    actor_wallet=entry.actor_wallet,
                    created_at=entry.created_at or int(time.time()),
                )
                session.add(row)
                session.flush()
                return row.to_domain()
        except IntegrityError as e:
            raise CarstarzError(f"Audit entry for token {entry.token_id} rejected by store") from e

    def list_audit_entries(self, token_id: int, *, limit: int = 100) -> list[MintAuditEntry]:
        if not is_storable_token_id(token_id):
            return []
        with self._session_scope() as session:
            rows = session.execute(
                select(MintAuditRow)
                .where(MintAuditRow.token_id == token_id)
                .order_by(MintAuditRow.created_at.desc(), MintAuditRow.id.desc())
                .limit(limit)
            ).scalars().all()
            return [r.to_domain() for r in rows]


def get_profile_store(url: str, *, timeout_sec: float = 5.0) -> SQLAlchemyProfileStore:
    """Build a store for the given URL and make sure the schema exists."""
    store = SQLAlchemyProfileStore(url, timeout_sec=timeout_sec)
    store.ensure_schema()
    return store
