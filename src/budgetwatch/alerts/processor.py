"""Batch alert evaluation across many budgets.

Threshold alerts run in two strictly ordered passes:

1. Reset every slot that fell back below its amount, for every budget in the
   batch, and commit.
2. Mark newly reached slots on budgets with a pending alert, and commit.

Only after both commits succeed is any notification dispatched.  A commit
failure raises before dispatch, so nothing is sent for state that was never
persisted; a crash after commit is safe to retry because notification
records keep their original ``created`` time.

Example
-------
>>> processor = AlertProcessor(store, NotificationDispatcher(store))
>>> summary = processor.process_threshold_alerts(store.list_budgets_needing_refresh(now), now)
>>> summary.triggered
{'b1': [0]}
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from budgetwatch.alerts.state import has_pending_alert, reset_triggered_alerts, trigger_pending_alerts
from budgetwatch.budget.models import Budget
from budgetwatch.config import EngineSettings
from budgetwatch.errors import BudgetPersistenceError
from budgetwatch.notifications.dispatcher import DispatchResult, NotificationDispatcher
from budgetwatch.store.base import BudgetStore
from budgetwatch.store.batch import WriteBatch

logger = logging.getLogger(__name__)


@dataclass
class AlertRunSummary:
    """Outcome of one batch alert run.

    Attributes
    ----------
    reset:
        Budget id to slot indices cleared in pass 1.
    triggered:
        Budget id to slot indices newly triggered in pass 2.
    dispatched:
        One result per budget a notification was dispatched for.
    failed:
        Budget ids whose dispatch raised unexpectedly.
    """

    reset: dict[str, list[int]] = field(default_factory=dict)
    triggered: dict[str, list[int]] = field(default_factory=dict)
    dispatched: list[DispatchResult] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


class AlertProcessor:
    """Evaluates and persists alert state for a batch of budgets.

    Parameters
    ----------
    store:
        Store the alert state is committed to.
    dispatcher:
        Dispatcher used once state is committed.
    settings:
        Engine settings (write batch size).
    """

    def __init__(
        self,
        store: BudgetStore,
        dispatcher: NotificationDispatcher,
        settings: EngineSettings | None = None,
    ) -> None:
        self._store = store
        self._dispatcher = dispatcher
        self._settings = settings or EngineSettings()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def process_threshold_alerts(self, budgets: list[Budget], now: datetime) -> AlertRunSummary:
        """Run the reset pass, the trigger pass, then dispatch.

        Raises
        ------
        BudgetPersistenceError:
            When either pass fails to commit.  Nothing is dispatched.
        """
        summary = AlertRunSummary()

        batch = self._store.batch(self._settings.write_batch_size)
        for budget in budgets:
            reset = reset_triggered_alerts(budget)
            if reset and budget.config is not None:
                summary.reset[budget.id] = reset
                batch.update(budget.id, {"config.alerts": budget.config.alerts})
        self._commit(batch, "reset")

        pending = [b for b in budgets if has_pending_alert(b)]
        batch = self._store.batch(self._settings.write_batch_size)
        for budget in pending:
            summary.triggered[budget.id] = trigger_pending_alerts(budget)
            if budget.config is not None:
                batch.update(budget.id, {"config.alerts": budget.config.alerts})
        self._commit(batch, "trigger")

        logger.info(
            "Threshold alerts: %d budgets reset, %d budgets triggered",
            len(summary.reset),
            len(summary.triggered),
        )

        for budget in pending:
            self._dispatch(summary, budget, now, forecast=False)

        return summary

    def process_forecast_alerts(self, budgets: list[Budget], now: datetime) -> AlertRunSummary:
        """Clear the pending forecast-alert flags, commit, then dispatch.

        Raises
        ------
        BudgetPersistenceError:
            When the flags cannot be committed.  Nothing is dispatched.
        """
        summary = AlertRunSummary()

        pending = [b for b in budgets if b.utilization.should_send_forecast_alert]
        batch = self._store.batch(self._settings.write_batch_size)
        for budget in pending:
            budget.utilization.should_send_forecast_alert = False
            batch.update(budget.id, {"utilization.should_send_forecast_alert": False})
        self._commit(batch, "forecast")

        logger.info("Forecast alerts: %d budgets pending", len(pending))

        for budget in pending:
            self._dispatch(summary, budget, now, forecast=True)

        return summary

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _commit(self, batch: WriteBatch, stage: str) -> None:
        if not len(batch):
            return
        try:
            batch.commit()
        except BudgetPersistenceError:
            logger.error("Failed to commit %s alert state; no notifications sent", stage)
            raise

    def _dispatch(self, summary: AlertRunSummary, budget: Budget, now: datetime, forecast: bool) -> None:
        try:
            if forecast:
                result = self._dispatcher.dispatch_forecast(budget, now)
            else:
                result = self._dispatcher.dispatch_threshold(budget, now)
        except Exception:
            logger.exception("Dispatch failed for budget %s", budget.id)
            summary.failed.append(budget.id)
            return
        summary.dispatched.append(result)
