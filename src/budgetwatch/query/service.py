"""Analytics query collaborator contract.

The analytics engine returns daily usage rows as ``(year, month, day,
value)`` for a budget's scope, and a separate daily series that is
cumulative within each month for the forecast engine.  Requests always reach
back far enough to cover the previous period plus some history for the
forecasting model.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Sequence

from budgetwatch.budget.models import Budget, TimeInterval
from budgetwatch.budget.periods import PeriodWindow, add_months
from budgetwatch.budget.utilization import parse_usage_row

logger = logging.getLogger(__name__)

Row = Sequence[object]

# Months of history fetched before the current period for the forecast model.
_HISTORY_MONTHS: dict[TimeInterval, int] = {
    TimeInterval.DAY: 2,
    TimeInterval.WEEK: 2,
    TimeInterval.MONTH: 2,
    TimeInterval.QUARTER: 3,
    TimeInterval.YEAR: 12,
}


@dataclass(frozen=True)
class QueryRequest:
    """Scope and time range of one analytics query."""

    budget_id: str
    customer_id: str
    scope: tuple[str, ...]
    currency: str
    metric: str
    from_date: date
    to_date: date
    data_source: str | None = None
    interval: str = "day"


def build_query_request(
    budget: Budget,
    window: PeriodWindow,
    previous: PeriodWindow,
    now: datetime,
) -> QueryRequest:
    """Return the query covering the previous period, history and current period."""
    cfg = budget.config
    if cfg is None:
        raise ValueError(f"Budget '{budget.id}' has no config")

    if cfg.is_fixed:
        from_date = add_months(previous.start, -2)
        to_date = window.end
    else:
        from_date = min(previous.start, add_months(window.start, -_HISTORY_MONTHS[cfg.time_interval]))
        to_date = now.date()

    return QueryRequest(
        budget_id=budget.id,
        customer_id=budget.customer_id,
        scope=tuple(cfg.scope),
        currency=cfg.currency,
        metric=cfg.metric,
        from_date=from_date,
        to_date=to_date,
        data_source=cfg.data_source,
    )


class AnalyticsQueryService(ABC):
    """Abstract base for the analytics query engine."""

    @abstractmethod
    def get_usage_rows(self, request: QueryRequest) -> list[Row]:
        """Return daily ``(year, month, day, value)`` rows ordered by date."""

    @abstractmethod
    def get_forecast_rows(
        self,
        request: QueryRequest,
        max_fresh_time: datetime,
        forecast_to: date,
    ) -> list[Row]:
        """Return the daily cumulative forecast series through ``forecast_to``.

        Forecasts generated before ``max_fresh_time`` are stale and must not
        be returned.
        """


@dataclass
class StaticQueryService(AnalyticsQueryService):
    """Serves fixed row lists, filtered to each request's date range.

    Attributes
    ----------
    usage_rows:
        Daily actual spend rows.
    forecast_rows:
        Daily month-cumulative forecast rows.
    generated_at:
        When the forecast was produced; ``None`` means always fresh.
    requests:
        Every request received, for inspection in tests.
    """

    usage_rows: list[Row] = field(default_factory=list)
    forecast_rows: list[Row] = field(default_factory=list)
    generated_at: datetime | None = None
    requests: list[QueryRequest] = field(default_factory=list)

    def get_usage_rows(self, request: QueryRequest) -> list[Row]:
        self.requests.append(request)
        return _within(self.usage_rows, request.from_date, request.to_date)

    def get_forecast_rows(
        self,
        request: QueryRequest,
        max_fresh_time: datetime,
        forecast_to: date,
    ) -> list[Row]:
        if self.generated_at is not None and self.generated_at < max_fresh_time:
            logger.warning(
                "Forecast for budget %s generated at %s is older than %s; ignoring it",
                request.budget_id,
                self.generated_at.isoformat(),
                max_fresh_time.isoformat(),
            )
            return []
        return _within(self.forecast_rows, request.from_date, forecast_to)


def _within(rows: list[Row], from_date: date, to_date: date) -> list[Row]:
    selected: list[Row] = []
    for row in rows:
        parsed = parse_usage_row(row)
        # Malformed rows are passed through; the aggregator decides to skip them.
        if parsed is None or from_date <= parsed.day <= to_date:
            selected.append(row)
    return selected
