"""
FastAPI server over the reconciliation core.

Services (store, chain reader, reconciler, auditor) are built in the lifespan and
kept on app.state; routes pull them from there. Every CarstarzError is mapped to
a JSON body {"error": code, "detail": message, ...} by one exception handler.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Path, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator

from backend_carstarz import __version__
from backend_carstarz.carstarz_logging import get_logger, short_wallet
from backend_carstarz.config import get_settings
from backend_carstarz.core.exceptions import CarstarzError, ProfileNotFound, TransactionPending
from backend_carstarz.database.models import MAX_STORED_TOKEN_ID, VehicleInput
from backend_carstarz.services import Services, build_services

logger = get_logger(__name__)

TX_HASH_PATTERN = r"^0[xX][0-9a-fA-F]{64}$"
MIN_VEHICLE_YEAR = 1886
MAX_VEHICLE_YEAR = 2100


# -----------------------------------------------------------------------------
# Request models
# -----------------------------------------------------------------------------


class ResolveIdentityRequest(BaseModel):
    """POST /identities/resolve body."""

    wallet: str = Field(..., min_length=1, max_length=64, description="EVM wallet address (0x + 40 hex)")
    display_name: str | None = Field(None, max_length=128)


class VehicleDataRequest(BaseModel):
    vin: str = Field(..., min_length=1, max_length=32)
    make: str = Field(..., min_length=1, max_length=64)
    model: str = Field(..., min_length=1, max_length=64)
    year: int = Field(..., ge=MIN_VEHICLE_YEAR, le=MAX_VEHICLE_YEAR)
    name: str = Field(..., min_length=1, max_length=128)
    description: str | None = Field(None, max_length=2000)

    @field_validator("vin", "make", "model", "name")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    def to_input(self) -> VehicleInput:
        return VehicleInput(
            vin=self.vin,
            make=self.make,
            model=self.model,
            year=self.year,
            name=self.name,
            description=self.description,
        )


class MintConfirmRequest(BaseModel):
    """POST /mint-confirm body: the CRUD layer reports a mint it believes happened."""

    token_id: int = Field(..., ge=0, le=MAX_STORED_TOKEN_ID, description="ERC-721 token id")
    tx_hash: str = Field(..., pattern=TX_HASH_PATTERN, description="Mint transaction hash")
    claimed_owner: str = Field(..., min_length=1, max_length=64)
    vehicle_data: VehicleDataRequest


class OwnershipAuditRequest(BaseModel):
    """POST /ownership-audit body. An empty list audits every stored token."""

    token_ids: list[int] = Field(default_factory=list)

    @field_validator("token_ids")
    @classmethod
    def _storable_ids(cls, value: list[int]) -> list[int]:
        if any(t < 0 or t > MAX_STORED_TOKEN_ID for t in value):
            raise ValueError(f"token ids must be between 0 and {MAX_STORED_TOKEN_ID}")
        return value


# -----------------------------------------------------------------------------
# Error mapping
# -----------------------------------------------------------------------------


def _carstarz_error_response(request: Request, exc: CarstarzError) -> JSONResponse:
    content: dict[str, Any] = exc.to_dict()
    headers: dict[str, str] = {}
    if isinstance(exc, TransactionPending):
        services: Services | None = getattr(request.app.state, "services", None)
        retry_after = services.settings.retry_after_sec if services else 15
        content["retry_after_sec"] = retry_after
        headers["Retry-After"] = str(retry_after)
    if exc.status_code >= 500:
        logger.error("api_request_failed", path=request.url.path, code=exc.code, error=exc.message)
    else:
        logger.info("api_request_rejected", path=request.url.path, code=exc.code)
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


def _services(request: Request) -> Services:
    return request.app.state.services


# -----------------------------------------------------------------------------
# App factory
# -----------------------------------------------------------------------------


def create_app(services: Services | None = None) -> FastAPI:
    """
    Build the FastAPI app.

    When services is given (tests), the app uses it as-is and does not close it.
    Otherwise services are built from get_settings() at startup and closed at shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = services is None
        app.state.services = build_services(get_settings()) if owned else services
        logger.info("api_started", owned_services=owned)
        yield
        if owned:
            app.state.services.close()
        logger.info("api_stopped")

    app = FastAPI(
        title="Backend Carstarz API",
        description="Vehicle NFT mint verification and ownership reconciliation.",
        version=__version__,
        lifespan=lifespan,
    )
    if services is not None:
        app.state.services = services
    app.add_exception_handler(CarstarzError, _carstarz_error_response)

    @app.post("/identities/resolve")
    def resolve_identity(body: ResolveIdentityRequest, request: Request) -> dict[str, Any]:
        """Get or create the identity for a wallet (called on sign-in)."""
        identity = _services(request).identities.resolve_or_create(
            body.wallet, display_name=body.display_name
        )
        return identity.to_dict()

    @app.get("/identities/{wallet}")
    def get_identity(wallet: str, request: Request) -> dict[str, Any]:
        identity = _services(request).identities.get_by_wallet(wallet)
        if identity is None:
            raise HTTPException(status_code=404, detail=f"No identity for wallet {short_wallet(wallet)}")
        return identity.to_dict()

    @app.post("/mint-confirm", status_code=201)
    def mint_confirm(body: MintConfirmRequest, request: Request) -> dict[str, Any]:
        """
        Verify a reported mint on-chain and create its vehicle profile.

        201 on success, 202 while the transaction is not mined yet.
        """
        profile = _services(request).reconciler.confirm_mint(
            body.token_id,
            body.tx_hash,
            body.claimed_owner,
            body.vehicle_data.to_input(),
        )
        return profile.to_dict()

    @app.post("/ownership-audit")
    def ownership_audit(body: OwnershipAuditRequest, request: Request) -> dict[str, Any]:
        auditor = _services(request).auditor
        report = auditor.audit(body.token_ids) if body.token_ids else auditor.audit_all()
        return report.to_dict()

    @app.get("/audit-log")
    def audit_log(
        request: Request,
        token_id: int = Query(..., ge=0, le=MAX_STORED_TOKEN_ID),
        limit: int = Query(100, ge=1, le=1000),
    ) -> dict[str, Any]:
        entries = _services(request).store.list_audit_entries(token_id, limit=limit)
        return {"token_id": token_id, "entries": [e.to_dict() for e in entries]}

    @app.get("/vehicles/{token_id}")
    def get_vehicle(request: Request, token_id: int = Path(..., ge=0, le=MAX_STORED_TOKEN_ID)) -> dict[str, Any]:
        profile = _services(request).store.get_vehicle(token_id)
        if profile is None:
            raise ProfileNotFound(token_id)
        return profile.to_dict()

    @app.get("/health")
    def health() -> dict[str, str]:
        """Liveness check: API is up."""
        return {"status": "ok"}

    return app
