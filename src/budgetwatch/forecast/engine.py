"""Forecast engine: projected spend and threshold-crossing dates.

Both algorithms work on a :class:`ForecastSeries` whose values are
cumulative within each calendar month.  Spend over a range is therefore
assembled from a partial first month, whole middle months and a partial last
month.

Example
-------
>>> series = ForecastSeries.from_rows(rows)
>>> when, value = date_for_value(series, date(2024, 1, 1), 500.0)
>>> value_for_date_range(series, date(2024, 1, 1), when) == value
True
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from budgetwatch.budget.models import Budget
from budgetwatch.budget.periods import PeriodWindow, add_months, first_day_of_month, last_day_of_month
from budgetwatch.forecast.series import ForecastSeries

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ForecastPrediction:
    """A projected ``value`` reached on ``date`` (``None`` when unknown)."""

    date: date | None
    value: float


@dataclass
class BudgetForecast:
    """Result of forecasting one budget for its current period.

    Attributes
    ----------
    end_of_period_value:
        Projected spend from the period start through the period end.
    predictions:
        End-of-period projection first, then one per enabled alert slot.
    slot_dates:
        Projected crossing date for each of the alert slots, ``None`` for
        disabled or unreachable slots.
    total_amount_date:
        Projected date the full budget amount is reached.
    """

    end_of_period_value: float
    predictions: list[ForecastPrediction] = field(default_factory=list)
    slot_dates: tuple[date | None, ...] = ()
    total_amount_date: date | None = None


# ---------------------------------------------------------------------------
# Algorithms
# ---------------------------------------------------------------------------


def date_for_value(series: ForecastSeries, start: date, target: float) -> tuple[date | None, float]:
    """Return the first day on which spend since ``start`` reaches ``target``.

    Returns ``(None, 0.0)`` when the target is not positive or the series runs
    out before reaching it.
    """
    if target <= 0:
        return None, 0.0

    base = series.before(start)
    first_month = series.month_total(start) - base

    # Crossed inside the first, partial month.
    if first_month >= target:
        day = start
        month_end = last_day_of_month(start)
        while day <= month_end:
            delta = series.through(day) - base
            if delta >= target:
                return day, delta
            day += timedelta(days=1)
        return None, 0.0

    running = first_month
    month = add_months(first_day_of_month(start), 1)
    while True:
        month_total = series.month_total(month)
        if month_total <= 0:
            return None, 0.0
        if running + month_total >= target:
            break
        running += month_total
        month = add_months(month, 1)

    day = month
    month_end = last_day_of_month(month)
    while day <= month_end:
        value = running + series.through(day)
        if value >= target:
            return day, value
        day += timedelta(days=1)

    return None, 0.0


def value_for_date_range(series: ForecastSeries, start: date, end: date) -> float:
    """Return projected spend from ``start`` through ``end`` inclusive."""
    if end < start:
        return 0.0

    if (start.year, start.month) == (end.year, end.month):
        return series.through(end) - series.before(start)

    value = series.month_total(start) - series.before(start)
    month = add_months(first_day_of_month(start), 1)
    end_month = first_day_of_month(end)
    while month < end_month:
        value += series.month_total(month)
        month = add_months(month, 1)

    return value + series.through(end)


# ---------------------------------------------------------------------------
# Budget forecast
# ---------------------------------------------------------------------------


def forecast_budget(
    budget: Budget,
    series: ForecastSeries,
    window: PeriodWindow,
    now: datetime,
) -> BudgetForecast:
    """Project end-of-period spend and crossing dates for ``budget``.

    A fixed budget whose end has passed while the series stops earlier is
    projected only up to the last series day, and to ``0`` when that day
    precedes the start.
    """
    cfg = budget.config
    if cfg is None:
        raise ValueError(f"Budget '{budget.id}' has no config")

    if not series:
        logger.info("No forecast data for budget %s (customer %s)", budget.id, budget.customer_id)

    projection_end = window.end
    if (
        cfg.is_fixed
        and window.end < now.date()
        and series.last_date is not None
        and series.last_date < window.end
    ):
        projection_end = series.last_date

    end_value = value_for_date_range(series, window.start, projection_end)
    predictions = [ForecastPrediction(date=window.end, value=end_value)]

    slot_dates: list[date | None] = []
    for alert in cfg.alerts:
        if not alert.enabled:
            slot_dates.append(None)
            continue
        crossing, value = date_for_value(series, window.start, alert.amount_for(cfg.amount))
        predictions.append(ForecastPrediction(date=crossing, value=value))
        slot_dates.append(crossing)

    total_amount_date, _ = date_for_value(series, window.start, cfg.amount)

    return BudgetForecast(
        end_of_period_value=end_value,
        predictions=predictions,
        slot_dates=tuple(slot_dates),
        total_amount_date=total_amount_date,
    )


def apply_forecast(budget: Budget, forecast: BudgetForecast) -> None:
    """Copy the projected values onto the budget's engine-owned fields."""
    cfg = budget.config
    if cfg is None:
        raise ValueError(f"Budget '{budget.id}' has no config")

    budget.utilization.forecasted = forecast.end_of_period_value
    for alert, crossing in zip(cfg.alerts, forecast.slot_dates):
        alert.forecasted_date = crossing
