"""
Ownership audit scheduler: audit every mirrored token on a fixed interval via APScheduler.

Usage:
  python -m backend_carstarz.reconciliation.scheduler            # start scheduler (every AUDIT_INTERVAL_SEC)
  python -m backend_carstarz.reconciliation.scheduler --run-now  # run one audit, then exit
  python -m backend_carstarz.reconciliation.scheduler --run-now --sync-check
"""

from __future__ import annotations

import argparse
import sys

from apscheduler.schedulers.blocking import BlockingScheduler

from backend_carstarz.carstarz_logging import get_logger
from backend_carstarz.config import get_settings
from backend_carstarz.services import Services, build_services

logger = get_logger(__name__)


def run_audit(services: Services, *, sync_check: bool = False) -> int:
    """Run one full audit. Returns exit code (0 = clean, 1 = mismatches or lookup errors)."""
    report = services.auditor.audit_all()
    exit_code = 0 if report.clean else 1
    if sync_check:
        sync = services.auditor.find_unmirrored_tokens()
        if sync.unmirrored or sync.errors:
            exit_code = 1
    return exit_code


def job_audit(services: Services) -> None:
    """Scheduled job: log start, run audit, log end."""
    logger.info("audit_scheduler_job_start")
    try:
        exit_code = run_audit(services)
        logger.info("audit_scheduler_job_end", clean=exit_code == 0)
    except Exception as e:
        logger.exception("audit_scheduler_job_error", error=str(e))
        raise


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Periodically compare on-chain vehicle ownership with stored profiles."
    )
    parser.add_argument(
        "--run-now",
        action="store_true",
        help="Run one audit immediately, then exit.",
    )
    parser.add_argument(
        "--sync-check",
        action="store_true",
        help="With --run-now: also report on-chain tokens that have no profile.",
    )
    args = parser.parse_args(argv)

    settings = get_settings()
    services = build_services(settings)
    try:
        if args.run_now:
            logger.info("audit_scheduler_manual_run_start")
            exit_code = run_audit(services, sync_check=args.sync_check)
            logger.info("audit_scheduler_manual_run_end", exit_code=exit_code)
            return exit_code

        scheduler = BlockingScheduler()
        scheduler.add_job(
            job_audit,
            "interval",
            args=[services],
            seconds=settings.audit_interval_sec,
            id="carstarz_ownership_audit",
            max_instances=1,
            coalesce=True,
        )
        logger.info("audit_scheduler_started", interval_sec=settings.audit_interval_sec)
        try:
            scheduler.start()
        except (KeyboardInterrupt, SystemExit):
            logger.info("audit_scheduler_stopped")
        return 0
    finally:
        services.close()


if __name__ == "__main__":
    sys.exit(main())
