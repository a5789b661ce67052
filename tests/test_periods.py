from datetime import date

import pytest

from models import BudgetPeriod
from periods import ALL_TIME, budget_window, resolve_period

TODAY = date(2025, 3, 12)


def test_named_periods() -> None:
    this_month = resolve_period("this_month", None, None, today=TODAY)
    assert (this_month.start, this_month.end) == (date(2025, 3, 1), date(2025, 3, 31))

    last_month = resolve_period("last_month", None, None, today=TODAY)
    assert (last_month.start, last_month.end) == (date(2025, 2, 1), date(2025, 2, 28))

    this_year = resolve_period("this_year", None, None, today=TODAY)
    assert (this_year.start, this_year.end) == (date(2025, 1, 1), date(2025, 12, 31))


def test_missing_period_is_all_time() -> None:
    assert resolve_period(None, None, None, today=TODAY) == ALL_TIME
    assert ALL_TIME.contains(date(1970, 1, 1))


def test_open_ended_custom_range() -> None:
    period = resolve_period(None, "2025-01-10", None, today=TODAY)
    assert period.start == date(2025, 1, 10)
    assert period.end is None
    assert period.contains(date(2030, 1, 1))
    assert not period.contains(date(2025, 1, 9))


def test_invalid_ranges_raise() -> None:
    with pytest.raises(ValueError):
        resolve_period(None, "2025-02-01", "2025-01-01", today=TODAY)
    with pytest.raises(ValueError):
        resolve_period("custom", None, None, today=TODAY)
    with pytest.raises(ValueError):
        resolve_period("fortnight", None, None, today=TODAY)
    with pytest.raises(ValueError):
        resolve_period(None, "not-a-date", None, today=TODAY)


def test_budget_windows() -> None:
    weekly = budget_window(BudgetPeriod.weekly, TODAY)
    assert (weekly.start, weekly.end) == (date(2025, 3, 10), date(2025, 3, 16))

    monthly = budget_window(BudgetPeriod.monthly, date(2024, 2, 10))
    assert (monthly.start, monthly.end) == (date(2024, 2, 1), date(2024, 2, 29))

    yearly = budget_window(BudgetPeriod.yearly, TODAY)
    assert (yearly.start, yearly.end) == (date(2025, 1, 1), date(2025, 12, 31))
