"""Task recurrence and completion rules."""

import calendar
from datetime import datetime, timedelta
from typing import Optional

from ..models import Task, TaskStatus, RecurrenceType, utcnow


def _add_months(value: datetime, months: int) -> datetime:
    # Clamp to the last day of the target month (Jan 31 + 1 month -> Feb 28/29)
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def calculate_next_due_date(current: datetime, recurrence_type: Optional[str], interval: int = 1) -> datetime:
    """Next occurrence of a recurring task.

    Unknown recurrence types advance by one day.
    """
    interval = interval or 1
    if recurrence_type in (RecurrenceType.DAILY.value, RecurrenceType.CUSTOM_DAYS.value):
        return current + timedelta(days=interval)
    if recurrence_type == RecurrenceType.WEEKLY.value:
        return current + timedelta(weeks=interval)
    if recurrence_type == RecurrenceType.MONTHLY.value:
        return _add_months(current, interval)
    if recurrence_type == RecurrenceType.YEARLY.value:
        return _add_months(current, 12 * interval)
    return current + timedelta(days=1)


def complete_task(task: Task, now: Optional[datetime] = None) -> Task:
    """Mark a task done. Recurring tasks roll forward to their next due date and stay open."""
    now = now or utcnow()
    task.status = TaskStatus.DONE.value
    task.last_completed_at = now
    task.updated_at = now

    if task.is_recurring and task.recurrence_type:
        next_due = calculate_next_due_date(
            task.due_date or now,
            task.recurrence_type,
            task.recurrence_interval or 1,
        )
        task.next_due_date = next_due
        task.due_date = next_due
        task.status = TaskStatus.TODO.value

    return task
