"""Scheduled job entry point.

Usage:
    python -m hearth.jobs daily-digest
    python -m hearth.jobs weekly-summary
    python -m hearth.jobs maintenance
    python -m hearth.jobs overdue

Each job runs at most once per period (local day, or ISO week for the weekly
summary) and prints ``{"processed": n, "failed": [...]}`` as JSON. A second
invocation in the same period only retries the households that failed.
"""

import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from .db import session_scope
from .infra.job_lock import JobAlreadyRan, job_lock, record_failed, take_failed
from .services.digest import DigestRunResult, DigestService
from .services.notifications import NotificationService
from .services.reminders import ReminderService
from .settings import settings

logger = logging.getLogger("hearth.jobs")


def _daily_digest(db: Session, now: datetime, household_ids: Optional[list[str]]) -> DigestRunResult:
    return DigestService(db, NotificationService(db)).send_daily_digest(now, household_ids)


def _weekly_summary(db: Session, now: datetime, household_ids: Optional[list[str]]) -> DigestRunResult:
    return DigestService(db, NotificationService(db)).send_weekly_summary(now, household_ids)


def _maintenance(db: Session, now: datetime, household_ids: Optional[list[str]]) -> DigestRunResult:
    return ReminderService(db, NotificationService(db)).send_maintenance_reminders(now, household_ids)


def _overdue(db: Session, now: datetime, household_ids: Optional[list[str]]) -> DigestRunResult:
    return ReminderService(db, NotificationService(db)).check_overdue_tasks(now, household_ids)


JOBS: dict[str, Callable[[Session, datetime, Optional[list[str]]], DigestRunResult]] = {
    "daily-digest": _daily_digest,
    "weekly-summary": _weekly_summary,
    "maintenance": _maintenance,
    "overdue": _overdue,
}


def job_period(job: str, now: datetime) -> str:
    local = now.astimezone(ZoneInfo(settings.digest_timezone))
    if job == "weekly-summary":
        year, week, _ = local.isocalendar()
        return f"{year}-W{week:02d}"
    return local.date().isoformat()


def run_job(job: str, now: Optional[datetime] = None, force: bool = False) -> dict:
    """Run one job under its period lock. Returns the run result as a dict."""
    now = now or datetime.now(timezone.utc)
    runner = JOBS[job]

    if force:
        with session_scope() as db:
            return runner(db, now, None).as_dict()

    period = job_period(job, now)
    try:
        with job_lock(job, period):
            with session_scope() as db:
                result = runner(db, now, None)
    except JobAlreadyRan as e:
        pending = take_failed(job, period)
        if not pending:
            return {"processed": 0, "failed": [], "skipped": e.key}
        logger.info(f"{job}: retrying {len(pending)} failed household(s) for {period}")
        with session_scope() as db:
            result = runner(db, now, pending)

    if result.failed:
        logger.warning(f"{job}: {len(result.failed)} household(s) failed")
        record_failed(job, period, result.failed)
    return result.as_dict()


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="hearth.jobs", description="Run a scheduled notification job")
    parser.add_argument("job", choices=sorted(JOBS))
    parser.add_argument("--force", action="store_true", help="ignore the once-per-period lock")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stderr)]
    )

    result = run_job(args.job, force=args.force)
    print(json.dumps(result))
    return 0


if __name__ == "__main__":
    sys.exit(main())
