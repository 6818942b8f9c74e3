"""Tests for threshold hysteresis and forecast-date alert decisions."""
from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from budgetwatch.alerts.state import (
    apply_forecast_alert,
    has_pending_alert,
    reset_triggered_alerts,
    select_alert,
    should_send_forecast_alert,
    should_trigger,
    trigger_pending_alerts,
)
from budgetwatch.budget.models import Budget, BudgetAlert
from budgetwatch.budget.periods import PeriodWindow

APRIL = PeriodWindow(start=date(2024, 4, 1), end=date(2024, 4, 30))
APRIL_FIRST = datetime(2024, 4, 1, 6, tzinfo=timezone.utc)


def _budget(alerts: list[dict[str, object]], interval: str = "month", current: float = 0.0) -> Budget:
    return Budget.model_validate(
        {
            "id": "b1",
            "name": "Platform",
            "config": {
                "amount": 1000,
                "type": "recurring",
                "time_interval": interval,
                "start_period": "2024-01-01",
                "alerts": alerts,
                "scope": ["attr-1"],
            },
            "utilization": {"current": current},
        }
    )


# ---------------------------------------------------------------------------
# Threshold slots
# ---------------------------------------------------------------------------


class TestShouldTrigger:
    def test_at_threshold_triggers(self) -> None:
        assert should_trigger(BudgetAlert(percentage=50), 1000, 500)

    def test_below_threshold(self) -> None:
        assert not should_trigger(BudgetAlert(percentage=50), 1000, 499.99)

    def test_disabled_slot_never_triggers(self) -> None:
        assert not should_trigger(BudgetAlert(percentage=0), 1000, 5000)

    def test_zero_amount_never_triggers(self) -> None:
        assert not should_trigger(BudgetAlert(percentage=50), 0, 5000)

    def test_already_triggered(self) -> None:
        assert not should_trigger(BudgetAlert(percentage=50, triggered=True), 1000, 800)


class TestThresholdHysteresis:
    def _evaluate(self, budget: Budget, current: float) -> list[int]:
        budget.utilization.current = current
        reset_triggered_alerts(budget)
        if has_pending_alert(budget):
            return trigger_pending_alerts(budget)
        return []

    def test_monotone_across_cycles(self) -> None:
        budget = _budget([{"percentage": 50}])
        assert budget.config is not None
        observed: list[bool] = []
        fired: list[list[int]] = []
        for current in (400, 500, 650, 500, 499, 700):
            fired.append(self._evaluate(budget, current))
            observed.append(budget.config.alerts[0].triggered)

        assert observed == [False, True, True, True, False, True]
        assert fired == [[], [0], [], [], [], [0]]

    def test_slots_are_independent(self) -> None:
        budget = _budget([{"percentage": 50}, {"percentage": 80}, {"percentage": 100}])
        assert budget.config is not None
        assert self._evaluate(budget, 850) == [0, 1]
        assert self._evaluate(budget, 1000) == [2]
        assert self._evaluate(budget, 600) == []
        assert [a.triggered for a in budget.config.alerts] == [True, False, False]

    def test_reset_returns_indices(self) -> None:
        budget = _budget([{"percentage": 50, "triggered": True}, {"percentage": 80, "triggered": True}], current=600)
        assert reset_triggered_alerts(budget) == [1]


class TestSelectAlert:
    def test_highest_triggered_slot(self) -> None:
        budget = _budget(
            [
                {"percentage": 50, "triggered": True},
                {"percentage": 100, "triggered": False},
                {"percentage": 80, "triggered": True},
            ]
        )
        assert select_alert(budget).percentage == 80

    def test_slot_zero_when_none_triggered(self) -> None:
        budget = _budget([{"percentage": 50}, {"percentage": 80}])
        assert select_alert(budget).percentage == 50


# ---------------------------------------------------------------------------
# Forecast-date alert
# ---------------------------------------------------------------------------


@pytest.fixture()
def forecasting_budget() -> Budget:
    budget = _budget([{"percentage": 50}], current=200)
    budget.utilization.forecasted_total_amount_date = date(2024, 4, 16)
    return budget


class TestShouldSendForecastAlert:
    def test_one_day_shift_on_thirty_day_month_is_suppressed(self, forecasting_budget: Budget) -> None:
        assert not should_send_forecast_alert(forecasting_budget, date(2024, 4, 17), APRIL, APRIL_FIRST)

    def test_large_shift_re_alerts(self, forecasting_budget: Budget) -> None:
        assert should_send_forecast_alert(forecasting_budget, date(2024, 4, 25), APRIL, APRIL_FIRST)

    def test_shift_equal_to_ratio_is_suppressed(self, forecasting_budget: Budget) -> None:
        # 10% of 30 days is exactly 3 days.
        assert not should_send_forecast_alert(forecasting_budget, date(2024, 4, 19), APRIL, APRIL_FIRST)

    def test_custom_ratio(self, forecasting_budget: Budget) -> None:
        assert should_send_forecast_alert(
            forecasting_budget, date(2024, 4, 17), APRIL, APRIL_FIRST, change_ratio=0.01
        )

    @pytest.mark.parametrize("interval", ["day", "week"])
    def test_short_intervals_never_alert(self, interval: str) -> None:
        budget = _budget([{"percentage": 50}], interval=interval)
        budget.utilization.forecasted_total_amount_date = date(2024, 4, 16)
        assert not should_send_forecast_alert(budget, date(2024, 4, 28), APRIL, APRIL_FIRST)

    def test_no_previous_date(self) -> None:
        budget = _budget([{"percentage": 50}])
        assert not should_send_forecast_alert(budget, date(2024, 4, 28), APRIL, APRIL_FIRST)

    def test_no_new_date(self, forecasting_budget: Budget) -> None:
        assert not should_send_forecast_alert(forecasting_budget, None, APRIL, APRIL_FIRST)

    def test_already_over_amount(self, forecasting_budget: Budget) -> None:
        forecasting_budget.utilization.current = 1200
        assert not should_send_forecast_alert(forecasting_budget, date(2024, 4, 28), APRIL, APRIL_FIRST)

    def test_new_date_in_past(self, forecasting_budget: Budget) -> None:
        now = datetime(2024, 4, 10, tzinfo=timezone.utc)
        assert not should_send_forecast_alert(forecasting_budget, date(2024, 4, 2), APRIL, now)

    def test_old_date_in_past(self, forecasting_budget: Budget) -> None:
        now = datetime(2024, 4, 20, tzinfo=timezone.utc)
        assert not should_send_forecast_alert(forecasting_budget, date(2024, 4, 29), APRIL, now)

    def test_new_date_after_period_end(self, forecasting_budget: Budget) -> None:
        assert not should_send_forecast_alert(forecasting_budget, date(2024, 5, 3), APRIL, APRIL_FIRST)

    def test_invalid_budget(self, forecasting_budget: Budget) -> None:
        forecasting_budget.is_valid = False
        assert not should_send_forecast_alert(forecasting_budget, date(2024, 4, 28), APRIL, APRIL_FIRST)


class TestApplyForecastAlert:
    def test_fires_and_keeps_previous_date(self, forecasting_budget: Budget) -> None:
        assert apply_forecast_alert(forecasting_budget, date(2024, 4, 25), APRIL, APRIL_FIRST)
        utilization = forecasting_budget.utilization
        assert utilization.should_send_forecast_alert is True
        assert utilization.previous_forecasted_date == date(2024, 4, 16)
        assert utilization.forecasted_total_amount_date == date(2024, 4, 25)

    def test_suppressed_still_records_new_date(self, forecasting_budget: Budget) -> None:
        assert not apply_forecast_alert(forecasting_budget, date(2024, 4, 17), APRIL, APRIL_FIRST)
        utilization = forecasting_budget.utilization
        assert utilization.should_send_forecast_alert is False
        assert utilization.previous_forecasted_date is None
        assert utilization.forecasted_total_amount_date == date(2024, 4, 17)
