"""
Ownership auditor: detects divergence between on-chain ownerOf and the stored
owner_wallet snapshot.

Read-only. Token lookups fan out over a bounded thread pool; a failure for one
token is recorded in the report and never aborts the batch. Mismatches are
reported, not repaired.
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable

from backend_carstarz.carstarz_logging import get_logger, short_wallet
from backend_carstarz.chain.reader import ChainReader
from backend_carstarz.core.exceptions import CarstarzError, ProfileNotFound
from backend_carstarz.database.database import ProfileStore
from backend_carstarz.database.models import (
    AuditReport,
    OwnershipMismatch,
    TokenLookupError,
    TokenSyncReport,
)
from backend_carstarz.utils.wallet_key import normalize

logger = get_logger(__name__)

DEFAULT_CONCURRENCY = 8
MAX_CONCURRENCY = 16
UNEXPECTED_ERROR_CODE = "UNEXPECTED_ERROR"
SYNC_CHUNK_PER_WORKER = 4


def _dedupe(token_ids: Iterable[int]) -> list[int]:
    seen: set[int] = set()
    out: list[int] = []
    for tid in token_ids:
        tid = int(tid)
        if tid not in seen:
            seen.add(tid)
            out.append(tid)
    return out


def _lookup_error(token_id: int, exc: BaseException) -> TokenLookupError:
    if isinstance(exc, CarstarzError):
        return TokenLookupError(token_id=token_id, code=exc.code, detail=exc.message)
    return TokenLookupError(token_id=token_id, code=UNEXPECTED_ERROR_CODE, detail=str(exc))


class OwnershipAuditor:
    """Compares chain ownership with stored ownership for a set of tokens."""

    def __init__(
        self,
        reader: ChainReader,
        store: ProfileStore,
        *,
        concurrency: int = DEFAULT_CONCURRENCY,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._reader = reader
        self._store = store
        self._concurrency = max(1, min(int(concurrency), MAX_CONCURRENCY))
        self._clock = clock

    @property
    def concurrency(self) -> int:
        return self._concurrency

    def _check_token(self, token_id: int) -> OwnershipMismatch | None:
        """Return a mismatch for token_id, None if owners agree. Raises on lookup failure."""
        stored_raw = self._store.get_owner_wallet(token_id)
        if stored_raw is None:
            raise ProfileNotFound(token_id)
        stored = normalize(stored_raw)
        on_chain = normalize(self._reader.owner_of(token_id))
        if on_chain == stored:
            return None
        return OwnershipMismatch(
            token_id=token_id,
            on_chain_owner=on_chain,
            stored_owner=stored,
            detected_at=int(self._clock()),
        )

    def audit(self, token_ids: Iterable[int]) -> AuditReport:
        """Audit the given tokens. Never raises for per-token failures."""
        ids = _dedupe(token_ids)
        report = AuditReport(checked=len(ids))
        if not ids:
            return report

        started = time.monotonic()
        workers = min(self._concurrency, len(ids))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ownership-audit") as executor:
            futures = {tid: executor.submit(self._check_token, tid) for tid in ids}
            for tid, fut in futures.items():
                try:
                    mismatch = fut.result()
                except Exception as e:
                    err = _lookup_error(tid, e)
                    report.errors.append(err)
                    logger.warning("ownership_audit_lookup_failed", token_id=tid, code=err.code, error=err.detail)
                    continue
                if mismatch is not None:
                    report.mismatches.append(mismatch)
                    logger.warning(
                        "ownership_mismatch_detected",
                        token_id=tid,
                        on_chain_owner=short_wallet(mismatch.on_chain_owner),
                        stored_owner=short_wallet(mismatch.stored_owner),
                    )

        logger.info(
            "ownership_audit_done",
            checked=report.checked,
            mismatches=len(report.mismatches),
            errors=len(report.errors),
            concurrency=workers,
            duration_sec=round(time.monotonic() - started, 3),
        )
        return report

    def audit_all(self, *, limit: int = 10_000) -> AuditReport:
        """Audit every token that has an off-chain profile."""
        return self.audit(self._store.list_token_ids(limit=limit))

    def find_unmirrored_tokens(self) -> TokenSyncReport:
        """
        Enumerate on-chain tokens (ERC-721 Enumerable) and report those with no
        off-chain profile. Errors are per index; token_id in an error is the index.
        """
        total = self._reader.total_supply()
        report = TokenSyncReport(on_chain_total=total)
        if total <= 0:
            return report

        def _resolve(index: int) -> int | None:
            token_id = self._reader.token_by_index(index)
            if self._store.get_owner_wallet(token_id) is None:
                return token_id
            return None

        workers = min(self._concurrency, total)
        chunk = workers * SYNC_CHUNK_PER_WORKER
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="token-sync") as executor:
            for start in range(0, total, chunk):
                # at most one chunk of futures is pending at a time
                futures = {i: executor.submit(_resolve, i) for i in range(start, min(start + chunk, total))}
                for index, fut in futures.items():
                    try:
                        missing = fut.result()
                    except Exception as e:
                        report.errors.append(_lookup_error(index, e))
                        continue
                    if missing is not None:
                        report.unmirrored.append(missing)

        report.unmirrored.sort()
        logger.info(
            "token_sync_check_done",
            on_chain_total=total,
            unmirrored=len(report.unmirrored),
            errors=len(report.errors),
        )
        return report
