"""Per-budget alert state transitions.

Threshold slots move between *untriggered* and *triggered* with hysteresis:
a slot triggers when utilization reaches its amount and resets only once
utilization drops back below it.  Each of the three slots is independent.

The forecast-date alert re-fires only when the projected date the full
amount is reached moves by more than a fraction of the budget duration.
"""
from __future__ import annotations

import logging
from datetime import date, datetime

from budgetwatch.budget.models import Budget, BudgetAlert, TimeInterval
from budgetwatch.budget.periods import PeriodWindow, period_duration
from budgetwatch.config import DEFAULT_FORECAST_CHANGE_RATIO

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Threshold slots
# ---------------------------------------------------------------------------


def threshold_amount(alert: BudgetAlert, budget_amount: float) -> float:
    return alert.amount_for(budget_amount)


def should_trigger(alert: BudgetAlert, budget_amount: float, current: float) -> bool:
    """An untriggered, enabled slot whose amount has been reached."""
    return (
        not alert.triggered
        and budget_amount > 0
        and alert.percentage > 0
        and current >= threshold_amount(alert, budget_amount)
    )


def should_reset(alert: BudgetAlert, budget_amount: float, current: float) -> bool:
    """A triggered, enabled slot whose utilization fell back below its amount."""
    return (
        alert.triggered
        and budget_amount > 0
        and alert.percentage > 0
        and current < threshold_amount(alert, budget_amount)
    )


def has_pending_alert(budget: Budget) -> bool:
    """Return ``True`` when at least one slot would newly trigger."""
    if budget.config is None:
        return False
    amount = budget.config.amount
    current = budget.utilization.current
    return any(should_trigger(alert, amount, current) for alert in budget.config.alerts)


def reset_triggered_alerts(budget: Budget) -> list[int]:
    """Clear slots that fell back below their amount; return their indices."""
    if budget.config is None:
        return []
    amount = budget.config.amount
    current = budget.utilization.current
    reset: list[int] = []
    for index, alert in enumerate(budget.config.alerts):
        if should_reset(alert, amount, current):
            alert.triggered = False
            reset.append(index)
    return reset


def trigger_pending_alerts(budget: Budget) -> list[int]:
    """Mark every slot whose amount was reached; return newly triggered indices."""
    if budget.config is None:
        return []
    amount = budget.config.amount
    current = budget.utilization.current
    triggered: list[int] = []
    for index, alert in enumerate(budget.config.alerts):
        if should_trigger(alert, amount, current):
            alert.triggered = True
            triggered.append(index)
    return triggered


def select_alert(budget: Budget) -> BudgetAlert:
    """Return the highest-percentage triggered slot, or slot 0 when none is."""
    if budget.config is None:
        raise ValueError(f"Budget '{budget.id}' has no config")
    selected = budget.config.alerts[0]
    for alert in budget.config.alerts:
        if alert.triggered and alert.percentage > selected.percentage:
            selected = alert
    return selected


# ---------------------------------------------------------------------------
# Forecast-date alert
# ---------------------------------------------------------------------------


def should_send_forecast_alert(
    budget: Budget,
    new_date: date | None,
    window: PeriodWindow,
    now: datetime,
    change_ratio: float = DEFAULT_FORECAST_CHANGE_RATIO,
) -> bool:
    """Decide whether a moved full-amount forecast date warrants a re-alert.

    ``window`` is the budget's current period; its end bounds the new date and
    its duration scales the minimum change.
    """
    cfg = budget.config
    old_date = budget.utilization.forecasted_total_amount_date
    today = now.date()

    if (
        cfg is None
        or new_date is None
        or cfg.time_interval in (TimeInterval.DAY, TimeInterval.WEEK)
        or old_date is None
        or budget.utilization.current > cfg.amount
        or old_date < today
        or new_date < today
        or new_date > window.end
        or not budget.is_valid
    ):
        return False

    change = abs(old_date - new_date)
    return change > period_duration(window) * change_ratio


def apply_forecast_alert(
    budget: Budget,
    new_date: date | None,
    window: PeriodWindow,
    now: datetime,
    change_ratio: float = DEFAULT_FORECAST_CHANGE_RATIO,
) -> bool:
    """Record ``new_date`` as the full-amount forecast and set the alert flag.

    When the alert fires, the old date is kept as ``previous_forecasted_date``
    so the notification can show how far the projection moved.
    """
    utilization = budget.utilization
    send = should_send_forecast_alert(budget, new_date, window, now, change_ratio)
    if send:
        utilization.previous_forecasted_date = utilization.forecasted_total_amount_date
        logger.info(
            "Budget %s forecast date moved from %s to %s",
            budget.id,
            utilization.forecasted_total_amount_date,
            new_date,
        )
    utilization.should_send_forecast_alert = send
    utilization.forecasted_total_amount_date = new_date
    return send
