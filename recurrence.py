from datetime import date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from config import get_settings
from models import RecurrenceType, ScheduledTransaction


def local_today() -> date:
    settings = get_settings()
    tz = ZoneInfo(settings.timezone)
    return datetime.now(tz).date()


def days_in_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - date(year, month, 1)).days


def _add_months(base: date, months: int, *, desired_day: int) -> date:
    total_months = base.month - 1 + months
    year = base.year + total_months // 12
    month = total_months % 12 + 1
    # Days past the end of a short month snap to its last day.
    day = min(desired_day, days_in_month(year, month))
    return date(year, month, day)


def calculate_next_date(recurrence_type: RecurrenceType, from_date: date) -> date:
    if recurrence_type == RecurrenceType.daily:
        return from_date + timedelta(days=1)
    if recurrence_type == RecurrenceType.weekly:
        return from_date + timedelta(weeks=1)
    if recurrence_type == RecurrenceType.monthly:
        return _add_months(from_date, 1, desired_day=from_date.day)
    return _add_months(from_date, 12, desired_day=from_date.day)


def next_occurrence(scheduled: ScheduledTransaction) -> Optional[date]:
    """Date of the occurrence after ``scheduled``, or None when the record is
    one-off or the recurrence has ended."""
    if not scheduled.is_recurring or scheduled.recurrence_type is None:
        return None
    next_date = calculate_next_date(
        scheduled.recurrence_type, scheduled.scheduled_date
    )
    if scheduled.recurrence_end and next_date > scheduled.recurrence_end:
        return None
    return next_date
