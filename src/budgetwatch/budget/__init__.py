"""Budget documents, period boundaries, utilization and growth."""
from __future__ import annotations

from budgetwatch.budget.growth import apply_growth, compound_amount, derive_target, speculate_last_period
from budgetwatch.budget.models import (
    Budget,
    BudgetAlert,
    BudgetConfig,
    BudgetNotification,
    BudgetType,
    NotificationType,
    TimeInterval,
    Utilization,
)
from budgetwatch.budget.periods import (
    PeriodWindow,
    budget_windows,
    current_period,
    elapsed_periods,
    period_duration,
    previous_period,
)
from budgetwatch.budget.utilization import UsageRow, current_utilization, last_period_spend, total_between
from budgetwatch.budget.validation import validate_budget

__all__ = [
    "Budget",
    "BudgetAlert",
    "BudgetConfig",
    "BudgetNotification",
    "BudgetType",
    "NotificationType",
    "PeriodWindow",
    "TimeInterval",
    "UsageRow",
    "Utilization",
    "apply_growth",
    "budget_windows",
    "compound_amount",
    "current_period",
    "current_utilization",
    "derive_target",
    "elapsed_periods",
    "last_period_spend",
    "period_duration",
    "previous_period",
    "speculate_last_period",
    "total_between",
    "validate_budget",
]
