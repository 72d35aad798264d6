"""Maintenance reminders, overdue checks and single-task reminders."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from ..models import Household, Task, TaskStatus
from ..settings import settings
from .digest import DigestRunResult, day_bounds, format_short_date
from .notifications import NotificationPayload, NotificationService

logger = logging.getLogger("hearth.reminders")

TASKS_URL = "/tasks?status=todo"


class ReminderService:
    def __init__(self, db: Session, notifier: NotificationService, tz: Optional[str] = None):
        self.db = db
        self.notifier = notifier
        self.tz = ZoneInfo(tz or settings.digest_timezone)

    def _open_tasks_due_by(self, household_id: str, before: datetime):
        return self.db.query(Task).filter(
            Task.household_id == household_id,
            Task.status == TaskStatus.TODO.value,
            Task.due_date.isnot(None),
            Task.due_date <= before,
        )

    def _for_each_household(self, name: str, step, household_ids: Optional[list[str]] = None) -> DigestRunResult:
        if household_ids is None:
            household_ids = [row.id for row in self.db.query(Household.id).all()]
        result = DigestRunResult()
        for household_id in household_ids:
            try:
                step(household_id)
                result.processed += 1
            except Exception:
                logger.exception(f"{name} failed for household {household_id}")
                self.db.rollback()
                result.failed.append(household_id)
        return result

    def send_maintenance_reminders(
        self, now: Optional[datetime] = None, household_ids: Optional[list[str]] = None
    ) -> DigestRunResult:
        logger.info("Running daily maintenance check...")
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        local_now = now.astimezone(self.tz)
        _, end_of_today = day_bounds(local_now)
        _, end_of_next_week = day_bounds(local_now + timedelta(days=7))

        def step(household_id: str) -> None:
            upcoming = self._open_tasks_due_by(household_id, end_of_next_week).order_by(Task.due_date).all()
            if not upcoming:
                return
            due_now = sum(1 for t in upcoming if t.due_date <= end_of_today)
            this_week = len(upcoming) - due_now

            parts = []
            if due_now:
                parts.append(f"{due_now} task(s) due today or overdue.")
            if this_week:
                parts.append(f"{this_week} task(s) coming up this week.")

            self.notifier.send_household_notification(household_id, NotificationPayload(
                title="Maintenance Reminders",
                body=" ".join(parts),
                url=TASKS_URL,
            ))

        return self._for_each_household("Maintenance reminders", step, household_ids)

    def check_overdue_tasks(
        self, now: Optional[datetime] = None, household_ids: Optional[list[str]] = None
    ) -> DigestRunResult:
        logger.info("Checking for overdue tasks...")
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is not None:
            now = now.astimezone(timezone.utc).replace(tzinfo=None)
        cutoff = now - timedelta(days=1)

        def step(household_id: str) -> None:
            overdue = (
                self._open_tasks_due_by(household_id, cutoff)
                .order_by(Task.priority, Task.due_date)
                .all()
            )
            if not overdue:
                return
            body = "\n".join(f"• {t.title}" for t in overdue[:3])
            if len(overdue) > 3:
                body += f"\n...and {len(overdue) - 3} more"

            self.notifier.send_household_notification(household_id, NotificationPayload(
                title=f"{len(overdue)} Overdue Task(s)",
                body=body,
                url=TASKS_URL,
            ))

        return self._for_each_household("Overdue check", step, household_ids)

    def send_task_reminder(self, task: Task) -> dict[str, int]:
        due = format_short_date(task.due_date) if task.due_date else "No due date"
        return self.notifier.send_household_notification(task.household_id, NotificationPayload(
            title="Task Reminder",
            body=f"{task.title} - Due: {due}",
            url=f"/tasks/{task.id}",
            data={"taskId": task.id},
        ))
