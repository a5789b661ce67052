from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

from models import BudgetPeriod
from recurrence import local_today


@dataclass(frozen=True)
class Period:
    slug: str
    start: Optional[date]
    end: Optional[date]

    def contains(self, day: date) -> bool:
        if self.start and day < self.start:
            return False
        if self.end and day > self.end:
            return False
        return True


ALL_TIME = Period("all", None, None)


def _month_bounds(day: date) -> tuple[date, date]:
    first = day.replace(day=1)
    if first.month == 12:
        next_month = first.replace(year=first.year + 1, month=1)
    else:
        next_month = first.replace(month=first.month + 1)
    return first, next_month - date.resolution


def resolve_period(
    period: Optional[str],
    start: Optional[str],
    end: Optional[str],
    *,
    today: Optional[date] = None,
) -> Period:
    """Turn query parameters into a date window.

    ``start``/``end`` without a named period give an open or closed custom
    range, matching the ``startDate``/``endDate`` filters of the API.
    """
    today = today or local_today()
    if period in (None, "", "custom") and (start or end):
        start_date = date.fromisoformat(start) if start else None
        end_date = date.fromisoformat(end) if end else None
        if start_date and end_date and start_date > end_date:
            raise ValueError("Start date must be before end date")
        return Period("custom", start_date, end_date)
    if not period or period == "all":
        return ALL_TIME
    if period == "custom":
        raise ValueError("Custom period requires start or end date")
    if period == "this_month":
        first, last = _month_bounds(today)
        return Period("this_month", first, last)
    if period == "last_month":
        last_month_end = today.replace(day=1) - date.resolution
        return Period("last_month", last_month_end.replace(day=1), last_month_end)
    if period == "this_year":
        return Period("this_year", date(today.year, 1, 1), date(today.year, 12, 31))
    raise ValueError(f"Unknown period: {period}")


def budget_window(period: BudgetPeriod, today: date) -> Period:
    if period == BudgetPeriod.weekly:
        start = today - timedelta(days=today.weekday())
        return Period("weekly", start, start + timedelta(days=6))
    if period == BudgetPeriod.yearly:
        return Period("yearly", date(today.year, 1, 1), date(today.year, 12, 31))
    first, last = _month_bounds(today)
    return Period("monthly", first, last)
