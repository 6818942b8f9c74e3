"""Tests for the budget refresh service."""
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from budgetwatch.budget.models import Budget, NotificationType
from budgetwatch.config import EngineSettings
from budgetwatch.errors import BudgetNotFoundError, MissingBudgetScopeError
from budgetwatch.query.service import StaticQueryService
from budgetwatch.service import BudgetService
from budgetwatch.store.memory import InMemoryBudgetStore


def _daily_rows(first: date, last: date, value: float) -> list[tuple[int, int, int, float]]:
    rows: list[tuple[int, int, int, float]] = []
    day = first
    while day <= last:
        rows.append((day.year, day.month, day.day, value))
        day += timedelta(days=1)
    return rows


def _cumulative_rows(first: date, last: date, daily: float) -> list[tuple[int, int, int, float]]:
    rows: list[tuple[int, int, int, float]] = []
    running = 0.0
    day = first
    while day <= last:
        if day.day == 1:
            running = 0.0
        running += daily
        rows.append((day.year, day.month, day.day, running))
        day += timedelta(days=1)
    return rows


@pytest.fixture()
def january_budget() -> Budget:
    return Budget.model_validate(
        {
            "id": "jan",
            "name": "January launch",
            "customer_id": "cust-1",
            "recipients": ["ops@example.com"],
            "config": {
                "amount": 1000,
                "type": "fixed",
                "start_period": "2024-01-01",
                "end_period": "2024-01-31",
                "alerts": [{"percentage": 50}],
                "scope": ["attr-1"],
            },
        }
    )


# ---------------------------------------------------------------------------
# End-to-end fixed budget
# ---------------------------------------------------------------------------


class TestFixedBudgetEndToEnd:
    def test_january_threshold_triggers_on_sixteenth(self, january_budget: Budget) -> None:
        now = datetime(2024, 1, 16, 12, tzinfo=timezone.utc)
        store = InMemoryBudgetStore([january_budget])
        query = StaticQueryService(
            usage_rows=_daily_rows(date(2024, 1, 1), date(2024, 1, 16), 32.5),
            forecast_rows=_cumulative_rows(date(2024, 1, 1), date(2024, 1, 31), 32.5),
        )
        service = BudgetService(store, query)

        result = service.refresh_budget_usage("jan", now)
        assert result is not None
        assert result.utilization == pytest.approx(520.0)
        assert result.forecast[1].date == date(2024, 1, 16)
        assert result.forecast[1].value >= 500

        summary = service.trigger_threshold_alerts(now)
        stored = store.get_budget("jan")
        assert summary.triggered == {"jan": [0]}
        assert stored.config is not None
        assert stored.config.alerts[0].triggered is True
        assert stored.config.alerts[0].forecasted_date == date(2024, 1, 16)
        assert stored.utilization.current == pytest.approx(520.0)
        assert stored.utilization.forecasted_total_amount_date == date(2024, 1, 31)
        assert stored.time_refreshed == now
        assert store.get_notification("jan", NotificationType.THRESHOLD) is not None

    def test_below_threshold_does_not_trigger(self, january_budget: Budget) -> None:
        now = datetime(2024, 1, 10, 12, tzinfo=timezone.utc)
        store = InMemoryBudgetStore([january_budget])
        query = StaticQueryService(usage_rows=_daily_rows(date(2024, 1, 1), date(2024, 1, 10), 32.5))
        service = BudgetService(store, query)

        service.refresh_budget_usage("jan", now)
        assert service.trigger_threshold_alerts(now).triggered == {}

    def test_mid_month_end_keeps_forecast_dates(self, january_budget: Budget) -> None:
        assert january_budget.config is not None
        january_budget.config.end_period = date(2024, 1, 20)
        store = InMemoryBudgetStore([january_budget])
        # The query service cuts these rows off at Jan 20.
        query = StaticQueryService(forecast_rows=_cumulative_rows(date(2024, 1, 1), date(2024, 1, 31), 32.5))
        service = BudgetService(store, query)

        result = service.refresh_budget_usage("jan", datetime(2024, 1, 5, tzinfo=timezone.utc))

        assert result is not None
        assert result.forecast[0].value == pytest.approx(650.0)
        stored = store.get_budget("jan")
        assert stored.config is not None
        assert stored.config.alerts[0].forecasted_date == date(2024, 1, 16)
        assert stored.utilization.forecasted_total_amount_date is None

    def test_query_covers_history(self, january_budget: Budget) -> None:
        query = StaticQueryService()
        service = BudgetService(InMemoryBudgetStore([january_budget]), query)
        service.refresh_budget_usage("jan", datetime(2024, 1, 5, tzinfo=timezone.utc))

        request = query.requests[0]
        assert request.from_date == date(2023, 10, 1)
        assert request.to_date == date(2024, 1, 31)
        assert request.scope == ("attr-1",)

    def test_expired_budget_is_skipped(self, january_budget: Budget) -> None:
        store = InMemoryBudgetStore([january_budget])
        service = BudgetService(store, StaticQueryService())
        assert service.refresh_budget_usage("jan", datetime(2024, 3, 1, tzinfo=timezone.utc)) is None
        assert store.get_budget("jan").time_refreshed is None


# ---------------------------------------------------------------------------
# Recurring budgets
# ---------------------------------------------------------------------------


class TestRecurringRefresh:
    def test_previous_spend_target(self) -> None:
        budget = Budget.model_validate(
            {
                "id": "prev",
                "config": {
                    "amount": 1,
                    "type": "recurring",
                    "time_interval": "month",
                    "start_period": "2024-01-01",
                    "use_prev_spend": True,
                    "allow_growth": True,
                    "growth_per_period": 10,
                    "scope": ["attr-1"],
                },
            }
        )
        rows = _daily_rows(date(2024, 4, 1), date(2024, 4, 30), 10.0) + _daily_rows(
            date(2024, 5, 1), date(2024, 5, 10), 5.0
        )
        store = InMemoryBudgetStore([budget])
        service = BudgetService(store, StaticQueryService(usage_rows=rows))

        result = service.refresh_budget_usage("prev", datetime(2024, 5, 10, 12, tzinfo=timezone.utc))

        assert result is not None
        assert result.last_period == pytest.approx(300.0)
        assert result.utilization == pytest.approx(50.0)
        stored = store.get_budget("prev")
        assert stored.config is not None
        assert stored.config.original_amount == pytest.approx(300.0)
        assert stored.config.amount == pytest.approx(330.0)

    def test_speculates_without_history(self) -> None:
        budget = Budget.model_validate(
            {
                "id": "new",
                "config": {
                    "amount": 1,
                    "type": "recurring",
                    "time_interval": "month",
                    "start_period": "2024-05-01",
                    "use_prev_spend": True,
                    "scope": ["attr-1"],
                },
            }
        )
        rows = _daily_rows(date(2024, 5, 1), date(2024, 5, 10), 10.0)
        service = BudgetService(InMemoryBudgetStore([budget]), StaticQueryService(usage_rows=rows))

        result = service.refresh_budget_usage("new", datetime(2024, 5, 11, tzinfo=timezone.utc))

        # 100 spent over 240 hours, extrapolated to April's 720 hours.
        assert result is not None
        assert result.last_period == pytest.approx(300.0)

    def test_growth_is_compounded_once(self) -> None:
        budget = Budget.model_validate(
            {
                "id": "grow",
                "config": {
                    "amount": 1000,
                    "type": "recurring",
                    "time_interval": "month",
                    "start_period": "2024-01-01",
                    "allow_growth": True,
                    "growth_per_period": 10,
                    "scope": ["attr-1"],
                },
            }
        )
        store = InMemoryBudgetStore([budget])
        service = BudgetService(store, StaticQueryService())
        now = datetime(2024, 3, 15, tzinfo=timezone.utc)

        service.refresh_budget_usage("grow", now)
        service.refresh_budget_usage("grow", now)

        stored = store.get_budget("grow")
        assert stored.config is not None
        assert stored.config.original_amount == 1000
        assert stored.config.amount == pytest.approx(1210.0)

    def test_daily_budget_skips_forecast(self) -> None:
        budget = Budget.model_validate(
            {
                "id": "daily",
                "config": {
                    "amount": 100,
                    "type": "recurring",
                    "time_interval": "day",
                    "start_period": "2024-01-01",
                    "scope": ["attr-1"],
                },
            }
        )
        query = StaticQueryService(usage_rows=[(2024, 5, 17, 40.0), (2024, 5, 16, 70.0)])
        service = BudgetService(InMemoryBudgetStore([budget]), query)

        result = service.refresh_budget_usage("daily", datetime(2024, 5, 17, 9, tzinfo=timezone.utc))

        assert result is not None
        assert result.utilization == pytest.approx(40.0)
        assert result.last_period == pytest.approx(70.0)
        assert result.forecast == []

    def test_weekly_forecast_dates(self) -> None:
        budget = Budget.model_validate(
            {
                "id": "wk",
                "config": {
                    "amount": 200,
                    "type": "recurring",
                    "time_interval": "week",
                    "start_period": "2024-01-01",
                    "alerts": [{"percentage": 50}],
                    "scope": ["attr-1"],
                },
            }
        )
        store = InMemoryBudgetStore([budget])
        query = StaticQueryService(forecast_rows=_cumulative_rows(date(2024, 1, 1), date(2024, 1, 31), 32.5))
        service = BudgetService(store, query)

        result = service.refresh_budget_usage("wk", datetime(2024, 1, 15, 9, tzinfo=timezone.utc))

        assert result is not None
        assert result.forecast[1].date == date(2024, 1, 18)
        stored = store.get_budget("wk")
        assert stored.config is not None
        assert stored.config.alerts[0].forecasted_date == date(2024, 1, 18)
        assert stored.utilization.forecasted_total_amount_date == date(2024, 1, 21)
        assert stored.utilization.should_send_forecast_alert is False

    def test_naive_now_is_treated_as_utc(self) -> None:
        budget = Budget.model_validate(
            {
                "id": "naive",
                "config": {
                    "amount": 1,
                    "type": "recurring",
                    "time_interval": "month",
                    "start_period": "2024-05-01",
                    "use_prev_spend": True,
                    "scope": ["attr-1"],
                },
            }
        )
        rows = _daily_rows(date(2024, 5, 1), date(2024, 5, 10), 10.0)
        store = InMemoryBudgetStore([budget])
        service = BudgetService(store, StaticQueryService(usage_rows=rows))

        result = service.refresh_budget_usage("naive", datetime(2024, 5, 11))

        assert result is not None
        assert result.last_period == pytest.approx(300.0)
        assert store.get_budget("naive").time_refreshed == datetime(2024, 5, 11, tzinfo=timezone.utc)

    def test_stale_forecast_is_ignored(self) -> None:
        budget = Budget.model_validate(
            {
                "id": "stale",
                "config": {
                    "amount": 1000,
                    "type": "recurring",
                    "time_interval": "month",
                    "start_period": "2024-01-01",
                    "alerts": [{"percentage": 50}],
                    "scope": ["attr-1"],
                },
            }
        )
        now = datetime(2024, 5, 17, tzinfo=timezone.utc)
        query = StaticQueryService(
            forecast_rows=_cumulative_rows(date(2024, 5, 1), date(2024, 5, 31), 100.0),
            generated_at=now - timedelta(hours=37),
        )
        service = BudgetService(InMemoryBudgetStore([budget]), query)

        result = service.refresh_budget_usage("stale", now)

        assert result is not None
        assert result.forecast[0].value == 0.0
        assert result.forecast[1].date is None


# ---------------------------------------------------------------------------
# Forecast-date alert through a refresh
# ---------------------------------------------------------------------------


class TestForecastAlertFlow:
    def test_moved_forecast_date_sends_once(self) -> None:
        budget = Budget.model_validate(
            {
                "id": "fc",
                "recipients": ["ops@example.com"],
                "config": {
                    "amount": 3000,
                    "type": "recurring",
                    "time_interval": "month",
                    "start_period": "2024-01-01",
                    "alerts": [{"percentage": 50}],
                    "scope": ["attr-1"],
                },
                "utilization": {"forecasted_total_amount_date": "2024-04-29"},
            }
        )
        now = datetime(2024, 4, 1, 6, tzinfo=timezone.utc)
        # 150 a day reaches 3000 on April 20.
        query = StaticQueryService(forecast_rows=_cumulative_rows(date(2024, 4, 1), date(2024, 4, 30), 150.0))
        store = InMemoryBudgetStore([budget])
        service = BudgetService(store, query)

        service.refresh_budget_usage("fc", now)
        refreshed = store.get_budget("fc")
        assert refreshed.utilization.should_send_forecast_alert is True
        assert refreshed.utilization.previous_forecasted_date == date(2024, 4, 29)
        assert refreshed.utilization.forecasted_total_amount_date == date(2024, 4, 20)

        summary = service.trigger_forecast_alerts(now)
        assert [r.budget_id for r in summary.dispatched] == ["fc"]
        assert summary.dispatched[0].emails[0].to == ["ops@example.com"]
        assert store.get_budget("fc").utilization.should_send_forecast_alert is False

        # The same projection on the next refresh is not a change.
        service.refresh_budget_usage("fc", now)
        assert store.get_budget("fc").utilization.should_send_forecast_alert is False


# ---------------------------------------------------------------------------
# Batch refresh
# ---------------------------------------------------------------------------


class TestRefreshAll:
    @pytest.mark.parametrize("workers", [1, 4])
    def test_failures_reported_per_budget(self, january_budget: Budget, workers: int) -> None:
        broken = Budget.model_validate(
            {
                "id": "broken",
                "config": {"amount": 10, "type": "recurring", "start_period": "2024-01-01", "scope": []},
            }
        )
        store = InMemoryBudgetStore([january_budget, broken])
        service = BudgetService(store, StaticQueryService(), settings=EngineSettings(max_workers=workers))

        summary = service.refresh_all(datetime(2024, 1, 20, tzinfo=timezone.utc))

        assert summary.refreshed == ["jan"]
        assert list(summary.failed) == ["broken"]
        assert MissingBudgetScopeError.reason in summary.failed["broken"]

    def test_run_cycle(self, january_budget: Budget) -> None:
        now = datetime(2024, 1, 16, 12, tzinfo=timezone.utc)
        store = InMemoryBudgetStore([january_budget])
        query = StaticQueryService(usage_rows=_daily_rows(date(2024, 1, 1), date(2024, 1, 16), 32.5))
        report = BudgetService(store, query).run_cycle(now)

        assert report.refresh.refreshed == ["jan"]
        assert report.threshold.triggered == {"jan": [0]}
        assert report.forecast.dispatched == []

    def test_unknown_budget_raises(self) -> None:
        service = BudgetService(InMemoryBudgetStore(), StaticQueryService())
        with pytest.raises(BudgetNotFoundError):
            service.refresh_budget_usage("ghost", datetime(2024, 1, 1, tzinfo=timezone.utc))
