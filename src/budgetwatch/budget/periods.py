"""Period boundary calculation for fixed and recurring budgets.

Recurring budgets are anchored to calendar buckets: weeks start on Monday,
quarters start in January, April, July and October.  Fixed budgets use
their configured range verbatim.  All windows are inclusive on both ends.

Example
-------
>>> from datetime import datetime, timezone
>>> now = datetime(2024, 5, 17, 9, 30, tzinfo=timezone.utc)
>>> window = current_period(BudgetType.RECURRING, TimeInterval.QUARTER, None, None, now)
>>> window.start, window.end
(datetime.date(2024, 4, 1), datetime.date(2024, 6, 30))
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone

from budgetwatch.budget.models import Budget, BudgetType, TimeInterval


@dataclass(frozen=True)
class PeriodWindow:
    """An inclusive ``[start, end]`` range of calendar days."""

    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    @property
    def duration(self) -> timedelta:
        """Length of the window, counting the last day in full."""
        return timedelta(days=self.days)

    @property
    def start_datetime(self) -> datetime:
        return datetime.combine(self.start, time.min, tzinfo=timezone.utc)

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


# ---------------------------------------------------------------------------
# Calendar helpers
# ---------------------------------------------------------------------------


def first_day_of_month(day: date) -> date:
    return day.replace(day=1)


def last_day_of_month(day: date) -> date:
    return add_months(first_day_of_month(day), 1) - timedelta(days=1)


def add_months(day: date, months: int) -> date:
    """Shift a first-of-month (or any day that exists) by ``months`` months.

    The day of month is clamped to the length of the target month.
    """
    index = day.year * 12 + (day.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    target_last = (date(year + (month // 12), month % 12 + 1, 1) - timedelta(days=1)).day
    return date(year, month, min(day.day, target_last))


def _quarter_start(day: date) -> date:
    return date(day.year, day.month - (day.month - 1) % 3, 1)


def _bucket_start(interval: TimeInterval, day: date) -> date:
    match interval:
        case TimeInterval.DAY:
            return day
        case TimeInterval.WEEK:
            return day - timedelta(days=day.weekday())
        case TimeInterval.MONTH:
            return first_day_of_month(day)
        case TimeInterval.QUARTER:
            return _quarter_start(day)
        case TimeInterval.YEAR:
            return date(day.year, 1, 1)
    raise ValueError(f"Unsupported time interval: {interval!r}")


def _next_bucket_start(interval: TimeInterval, start: date) -> date:
    match interval:
        case TimeInterval.DAY:
            return start + timedelta(days=1)
        case TimeInterval.WEEK:
            return start + timedelta(days=7)
        case TimeInterval.MONTH:
            return add_months(start, 1)
        case TimeInterval.QUARTER:
            return add_months(start, 3)
        case TimeInterval.YEAR:
            return date(start.year + 1, 1, 1)
    raise ValueError(f"Unsupported time interval: {interval!r}")


def bucket_for(interval: TimeInterval, day: date) -> PeriodWindow:
    """Return the calendar bucket of ``interval`` granularity containing ``day``."""
    start = _bucket_start(interval, day)
    return PeriodWindow(start=start, end=_next_bucket_start(interval, start) - timedelta(days=1))


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def current_period(
    budget_type: BudgetType,
    interval: TimeInterval,
    start_period: date | None,
    end_period: date | None,
    now: datetime,
) -> PeriodWindow:
    """Return the period a budget is currently measured against.

    Raises
    ------
    ValueError:
        For a fixed budget without both start and end periods.
    """
    if budget_type == BudgetType.FIXED:
        if start_period is None or end_period is None:
            raise ValueError("Fixed budgets need both a start and an end period")
        return PeriodWindow(start=start_period, end=end_period)
    return bucket_for(interval, now.date())


def previous_period(
    budget_type: BudgetType,
    interval: TimeInterval,
    start_period: date | None,
    end_period: date | None,
    now: datetime,
) -> PeriodWindow:
    """Return the bucket immediately preceding :func:`current_period`.

    For fixed budgets this is a range of the same length ending the day
    before ``start_period``.
    """
    current = current_period(budget_type, interval, start_period, end_period, now)
    if budget_type == BudgetType.FIXED:
        end = current.start - timedelta(days=1)
        return PeriodWindow(start=end - (current.end - current.start), end=end)
    return bucket_for(interval, current.start - timedelta(days=1))


def elapsed_periods(interval: TimeInterval, start_period: date, now: datetime) -> int:
    """Count whole recurring buckets between ``start_period`` and ``now``.

    Uses calendar arithmetic per granularity, so month and quarter lengths
    do not skew the result.  Returns ``0`` when ``now`` precedes the start.
    """
    today = now.date()
    if today < start_period:
        return 0

    match interval:
        case TimeInterval.DAY:
            return (today - start_period).days
        case TimeInterval.WEEK:
            return (_bucket_start(interval, today) - _bucket_start(interval, start_period)).days // 7
        case TimeInterval.MONTH:
            return (today.year - start_period.year) * 12 + today.month - start_period.month
        case TimeInterval.QUARTER:
            now_quarter = today.year * 4 + (today.month - 1) // 3
            start_quarter = start_period.year * 4 + (start_period.month - 1) // 3
            return now_quarter - start_quarter
        case TimeInterval.YEAR:
            return today.year - start_period.year
    raise ValueError(f"Unsupported time interval: {interval!r}")


def period_duration(window: PeriodWindow) -> timedelta:
    """Return the inclusive length of ``window``."""
    return window.duration


def budget_windows(budget: Budget, now: datetime) -> tuple[PeriodWindow, PeriodWindow]:
    """Return ``(current, previous)`` windows for a budget with a config."""
    if budget.config is None:
        raise ValueError(f"Budget '{budget.id}' has no config")
    cfg = budget.config
    args = (cfg.type, cfg.time_interval, cfg.start_period, cfg.end_period, now)
    return current_period(*args), previous_period(*args)
