"""Budget refresh service.

Orchestrates one refresh cycle per budget:

validation (with growth compounding) → usage query → current and
last-period utilization → previous-spend target → forecast → forecast-date
alert decision → single write of the engine-owned fields.

A refresh is side-effect free until that final write, so many budgets can be
refreshed in parallel workers.  The only clock read happens at the entry
points when the caller does not pass ``now``; the same value is then threaded
through every step.  Naive datetimes are treated as UTC.

Example
-------
>>> service = BudgetService(store, StaticQueryService(usage_rows=rows))
>>> result = service.refresh_budget_usage("b1", now)
>>> result.utilization
512.0
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from budgetwatch.alerts.processor import AlertProcessor, AlertRunSummary
from budgetwatch.alerts.state import apply_forecast_alert
from budgetwatch.budget.growth import derive_target, speculate_last_period
from budgetwatch.budget.models import Budget, TimeInterval
from budgetwatch.budget.periods import budget_windows
from budgetwatch.budget.utilization import current_utilization, last_period_spend
from budgetwatch.budget.validation import validate_budget
from budgetwatch.config import EngineSettings
from budgetwatch.errors import BudgetError, ExpiredBudgetError
from budgetwatch.forecast.engine import ForecastPrediction, apply_forecast, forecast_budget
from budgetwatch.forecast.series import ForecastSeries
from budgetwatch.notifications.dispatcher import NotificationDispatcher
from budgetwatch.query.service import AnalyticsQueryService, build_query_request
from budgetwatch.store.base import BudgetStore, FieldUpdates

logger = logging.getLogger(__name__)


@dataclass
class BudgetUsageDataResult:
    """Ephemeral result of one budget refresh.

    Attributes
    ----------
    utilization:
        Spend in the current period.
    last_period:
        Spend in the previous period (or its estimate).
    forecast:
        End-of-period projection followed by one prediction per enabled
        alert slot.  Empty for daily budgets.
    """

    utilization: float
    last_period: float
    forecast: list[ForecastPrediction] = field(default_factory=list)


@dataclass
class RefreshSummary:
    """Per-budget outcome of :meth:`BudgetService.refresh_all`."""

    refreshed: list[str] = field(default_factory=list)
    expired: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)


@dataclass
class CycleReport:
    """Outcome of a full refresh-and-alert cycle."""

    refresh: RefreshSummary
    threshold: AlertRunSummary
    forecast: AlertRunSummary


def _as_utc(now: datetime | None) -> datetime:
    """Return ``now`` in UTC, reading the clock when it is ``None``.

    Naive datetimes are taken to be UTC already.
    """
    if now is None:
        return datetime.now(tz=timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


class BudgetService:
    """Refreshes budget utilization and runs the alert passes.

    Parameters
    ----------
    store:
        Document store holding budgets and notifications.
    query_service:
        Analytics query collaborator.
    dispatcher:
        Notification dispatcher; a logging-only one is created when omitted.
    settings:
        Engine settings.
    """

    def __init__(
        self,
        store: BudgetStore,
        query_service: AnalyticsQueryService,
        dispatcher: NotificationDispatcher | None = None,
        settings: EngineSettings | None = None,
    ) -> None:
        self._store = store
        self._query = query_service
        self._settings = settings or EngineSettings()
        self._dispatcher = dispatcher or NotificationDispatcher(store, settings=self._settings)
        self._alerts = AlertProcessor(store, self._dispatcher, self._settings)

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def get_budget_usage_data(self, budget: Budget, now: datetime) -> BudgetUsageDataResult:
        """Compute utilization and forecast for an already validated budget.

        Mutates the engine-owned fields of ``budget`` in memory only.
        """
        now = _as_utc(now)
        cfg = budget.config
        if cfg is None:
            raise ValueError(f"Budget '{budget.id}' has no config")

        window, previous = budget_windows(budget, now)
        request = build_query_request(budget, window, previous, now)
        rows = self._query.get_usage_rows(request)

        last_period = last_period_spend(rows, previous)
        utilization, counted_from = current_utilization(rows, budget, window, now)

        if cfg.use_prev_spend:
            if last_period == 0 and utilization != 0 and counted_from is not None:
                last_period = speculate_last_period(utilization, window, previous, now)
                logger.info("Budget %s has no previous spend; estimated %.2f", budget.id, last_period)
            derive_target(budget, last_period)

        budget.utilization.current = utilization
        budget.utilization.last_period = last_period

        predictions: list[ForecastPrediction] = []
        if cfg.is_fixed or cfg.time_interval != TimeInterval.DAY:
            max_fresh_time = now - timedelta(hours=self._settings.forecast_freshness_hours)
            series = ForecastSeries.from_rows(self._query.get_forecast_rows(request, max_fresh_time, window.end))
            forecast = forecast_budget(budget, series, window, now)
            apply_forecast(budget, forecast)
            apply_forecast_alert(
                budget,
                forecast.total_amount_date,
                window,
                now,
                self._settings.forecast_change_ratio,
            )
            predictions = forecast.predictions
        else:
            budget.utilization.should_send_forecast_alert = False

        return BudgetUsageDataResult(utilization=utilization, last_period=last_period, forecast=predictions)

    def refresh_budget_usage(self, budget_id: str, now: datetime | None = None) -> BudgetUsageDataResult | None:
        """Refresh one budget and persist the result.

        Returns ``None`` for an expired fixed budget, which is left untouched.

        Raises
        ------
        BudgetNotFoundError:
            When the budget does not exist.
        BudgetValidationError:
            When the budget config cannot be refreshed.
        BudgetPersistenceError:
            When the final write fails; nothing is persisted.
        """
        now = _as_utc(now)
        budget = self._store.get_budget(budget_id)

        try:
            validate_budget(budget, now, self._settings.expired_grace_hours)
        except ExpiredBudgetError:
            logger.info("Budget %s has expired; skipping refresh", budget_id)
            return None

        result = self.get_budget_usage_data(budget, now)
        self._update_budget_record(budget, result, now)
        return result

    def refresh_all(self, now: datetime | None = None, max_workers: int | None = None) -> RefreshSummary:
        """Refresh every budget that needs it, reporting failures per budget."""
        now = _as_utc(now)
        workers = max_workers or self._settings.max_workers
        budget_ids = [b.id for b in self._store.list_budgets_needing_refresh(now)]
        summary = RefreshSummary()

        if workers > 1 and len(budget_ids) > 1:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                outcomes = list(pool.map(lambda bid: self._refresh_one(bid, now), budget_ids))
        else:
            outcomes = [self._refresh_one(bid, now) for bid in budget_ids]

        for budget_id, status, error in outcomes:
            if status == "refreshed":
                summary.refreshed.append(budget_id)
            elif status == "expired":
                summary.expired.append(budget_id)
            else:
                summary.failed[budget_id] = error

        logger.info(
            "Refreshed %d budgets (%d expired, %d failed)",
            len(summary.refreshed),
            len(summary.expired),
            len(summary.failed),
        )
        return summary

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------

    def trigger_threshold_alerts(self, now: datetime | None = None) -> AlertRunSummary:
        now = _as_utc(now)
        return self._alerts.process_threshold_alerts(self._store.list_budgets_needing_refresh(now), now)

    def trigger_forecast_alerts(self, now: datetime | None = None) -> AlertRunSummary:
        now = _as_utc(now)
        return self._alerts.process_forecast_alerts(self._store.list_budgets_needing_refresh(now), now)

    def run_cycle(self, now: datetime | None = None) -> CycleReport:
        """Refresh all budgets, then run the threshold and forecast alert passes."""
        now = _as_utc(now)
        refresh = self.refresh_all(now)
        threshold = self.trigger_threshold_alerts(now)
        forecast = self.trigger_forecast_alerts(now)
        return CycleReport(refresh=refresh, threshold=threshold, forecast=forecast)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _refresh_one(self, budget_id: str, now: datetime) -> tuple[str, str, str]:
        try:
            result = self.refresh_budget_usage(budget_id, now)
        except BudgetError as exc:
            logger.warning("Refresh of budget %s failed: %s", budget_id, exc)
            return budget_id, "failed", str(exc)
        except Exception as exc:
            logger.exception("Unexpected error refreshing budget %s", budget_id)
            return budget_id, "failed", str(exc)
        return budget_id, "refreshed" if result is not None else "expired", ""

    def _update_budget_record(self, budget: Budget, result: BudgetUsageDataResult, now: datetime) -> None:
        cfg = budget.config
        if cfg is None:
            raise ValueError(f"Budget '{budget.id}' has no config")

        logger.info(
            "Budget %s amount is %.2f, current utilization is %.2f",
            budget.id,
            cfg.amount,
            result.utilization,
        )
        fields: FieldUpdates = {
            "utilization": budget.utilization,
            "config.alerts": cfg.alerts,
            "config.amount": cfg.amount,
            "time_refreshed": now,
        }
        if cfg.use_prev_spend or cfg.allow_growth:
            fields["config.original_amount"] = cfg.original_amount

        self._store.update_budget_fields(budget.id, fields)
        logger.info("Budget %s refreshed", budget.id)
