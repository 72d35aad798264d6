"""Daily digest and weekly summary.

Each run walks every household, aggregates its task counts for the period and
sends one push notification per household. A household whose aggregation or
delivery fails is logged and reported in ``failed``; the remaining households
are still processed.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models import FamilyMember, Household, Task, TaskStatus
from ..settings import settings
from .notifications import NotificationPayload, NotificationService

logger = logging.getLogger("hearth.digest")

DIGEST_URL = "/dashboard"
PREVIEW_LIMIT = 3


@dataclass
class DigestTask:
    id: str
    title: str
    priority: int = 0
    assigned_to_name: Optional[str] = None


@dataclass
class WeeklyStats:
    completed: int
    created: int
    pending: int
    overdue: int


@dataclass
class DigestRunResult:
    processed: int = 0
    failed: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {"processed": self.processed, "failed": self.failed}


def day_bounds(local_day: datetime) -> tuple[datetime, datetime]:
    """[start, end] of the local calendar day, as naive UTC."""
    start = local_day.replace(hour=0, minute=0, second=0, microsecond=0)
    end = start + timedelta(days=1) - timedelta(microseconds=1)
    return _to_naive_utc(start), _to_naive_utc(end)


def _to_naive_utc(value: datetime) -> datetime:
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def format_short_date(value: datetime) -> str:
    return f"{value:%b} {value.day}"


def build_daily_message(
    today: datetime,
    due_today: list[DigestTask],
    overdue_count: int,
    completed_yesterday: int,
) -> NotificationPayload:
    lines: list[str] = []

    if overdue_count > 0:
        lines.append(f"⚠️ {overdue_count} overdue task(s)")

    if due_today:
        lines.append(f"📋 {len(due_today)} task(s) due today")
        for task in due_today[:PREVIEW_LIMIT]:
            assignee = f" ({task.assigned_to_name})" if task.assigned_to_name else ""
            lines.append(f"  • {task.title}{assignee}")
        if len(due_today) > PREVIEW_LIMIT:
            lines.append(f"  ...and {len(due_today) - PREVIEW_LIMIT} more")
    else:
        lines.append("✨ No tasks due today!")

    if completed_yesterday > 0:
        lines.append(f"\n✅ {completed_yesterday} task(s) completed yesterday")

    return NotificationPayload(
        title=f"Daily Summary - {format_short_date(today)}",
        body="\n".join(lines),
        url=DIGEST_URL,
    )


def build_weekly_message(stats: WeeklyStats) -> NotificationPayload:
    lines = [
        "📊 Week in Review",
        "",
        f"✅ Completed: {stats.completed}",
        f"📋 Created: {stats.created}",
        f"⏳ Still pending: {stats.pending}",
    ]
    if stats.overdue > 0:
        lines.append(f"⚠️ Overdue: {stats.overdue}")

    return NotificationPayload(title="Weekly Summary", body="\n".join(lines), url=DIGEST_URL)


class DigestService:
    def __init__(self, db: Session, notifier: NotificationService, tz: Optional[str] = None):
        self.db = db
        self.notifier = notifier
        self.tz = ZoneInfo(tz or settings.digest_timezone)

    def _local_now(self, now: Optional[datetime]) -> datetime:
        if now is None:
            now = datetime.now(timezone.utc)
        elif now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now.astimezone(self.tz)

    def get_all_households(self) -> list[str]:
        return [row.id for row in self.db.query(Household.id).all()]

    def get_tasks_for_date(self, household_id: str, start: datetime, end: datetime) -> list[DigestTask]:
        rows = (
            self.db.query(Task.id, Task.title, Task.priority, FamilyMember.first_name)
            .outerjoin(FamilyMember, Task.assigned_to_id == FamilyMember.id)
            .filter(
                Task.household_id == household_id,
                Task.status == TaskStatus.TODO.value,
                Task.due_date >= start,
                Task.due_date <= end,
            )
            .order_by(Task.priority.asc(), Task.due_date.asc())
            .all()
        )
        return [
            DigestTask(id=r.id, title=r.title, priority=r.priority, assigned_to_name=r.first_name)
            for r in rows
        ]

    def get_overdue_tasks(self, household_id: str, before: datetime) -> list[DigestTask]:
        rows = (
            self.db.query(Task.id, Task.title, Task.priority)
            .filter(
                Task.household_id == household_id,
                Task.status == TaskStatus.TODO.value,
                Task.due_date.isnot(None),
                Task.due_date <= before,
            )
            .all()
        )
        return [DigestTask(id=r.id, title=r.title, priority=r.priority) for r in rows]

    def get_completed_tasks(self, household_id: str, start: datetime, end: datetime) -> list[DigestTask]:
        rows = (
            self.db.query(Task.id, Task.title)
            .filter(
                Task.household_id == household_id,
                Task.status == TaskStatus.DONE.value,
                Task.last_completed_at >= start,
                Task.last_completed_at <= end,
            )
            .all()
        )
        return [DigestTask(id=r.id, title=r.title) for r in rows]

    def get_weekly_stats(self, household_id: str, start: datetime, end: datetime) -> WeeklyStats:
        def count(*conditions) -> int:
            return (
                self.db.query(func.count(Task.id))
                .filter(Task.household_id == household_id, *conditions)
                .scalar()
            ) or 0

        return WeeklyStats(
            completed=count(Task.last_completed_at >= start, Task.last_completed_at <= end),
            created=count(Task.created_at >= start, Task.created_at <= end),
            pending=count(Task.status == TaskStatus.TODO.value),
            overdue=count(
                Task.status == TaskStatus.TODO.value,
                Task.due_date.isnot(None),
                Task.due_date <= start,
            ),
        )

    def _daily_for_household(self, household_id: str, local_now: datetime) -> None:
        start_today, end_today = day_bounds(local_now)
        start_yesterday, end_yesterday = day_bounds(local_now - timedelta(days=1))

        due_today = self.get_tasks_for_date(household_id, start_today, end_today)
        overdue = self.get_overdue_tasks(household_id, start_today)
        completed = self.get_completed_tasks(household_id, start_yesterday, end_yesterday)

        payload = build_daily_message(local_now, due_today, len(overdue), len(completed))
        self.notifier.send_household_notification(household_id, payload)

    def _weekly_for_household(self, household_id: str, local_now: datetime) -> None:
        start, _ = day_bounds(local_now - timedelta(days=7))
        _, end = day_bounds(local_now)
        stats = self.get_weekly_stats(household_id, start, end)
        self.notifier.send_household_notification(household_id, build_weekly_message(stats))

    def _run(self, name: str, step, now: Optional[datetime], household_ids: Optional[list[str]]) -> DigestRunResult:
        local_now = self._local_now(now)
        if household_ids is None:
            household_ids = self.get_all_households()
        result = DigestRunResult()
        for household_id in household_ids:
            try:
                step(household_id, local_now)
                result.processed += 1
            except Exception:
                logger.exception(f"{name} failed for household {household_id}")
                self.db.rollback()
                result.failed.append(household_id)
        logger.info(f"{name}: processed={result.processed} failed={len(result.failed)}")
        return result

    def send_daily_digest(
        self, now: Optional[datetime] = None, household_ids: Optional[list[str]] = None
    ) -> DigestRunResult:
        logger.info("Sending daily digests...")
        return self._run("Daily digest", self._daily_for_household, now, household_ids)

    def send_weekly_summary(
        self, now: Optional[datetime] = None, household_ids: Optional[list[str]] = None
    ) -> DigestRunResult:
        logger.info("Sending weekly summaries...")
        return self._run("Weekly summary", self._weekly_for_household, now, household_ids)
