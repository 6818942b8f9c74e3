"""Budget validation run at the start of every refresh."""
from __future__ import annotations

from datetime import datetime, timedelta

from budgetwatch.budget.growth import apply_growth
from budgetwatch.budget.models import Budget
from budgetwatch.config import DEFAULT_EXPIRED_GRACE_HOURS
from budgetwatch.errors import (
    ExpiredBudgetError,
    InvalidEndPeriodError,
    MissingBudgetConfigError,
    MissingBudgetScopeError,
    MissingStartPeriodError,
)


def validate_budget(
    budget: Budget,
    now: datetime,
    expired_grace_hours: int = DEFAULT_EXPIRED_GRACE_HOURS,
) -> None:
    """Check that ``budget`` can be refreshed at ``now``.

    Recurring budgets that allow growth (and do not derive their target from
    previous spend) have their amount compounded as a side effect.

    Raises
    ------
    MissingBudgetConfigError, MissingBudgetScopeError, MissingStartPeriodError:
        When required config is absent.
    InvalidEndPeriodError:
        When a fixed budget has no end period or it precedes the start.
    ExpiredBudgetError:
        When a fixed budget ended more than ``expired_grace_hours`` ago.
    """
    cfg = budget.config
    if cfg is None:
        raise MissingBudgetConfigError(budget.id)

    if not cfg.scope:
        raise MissingBudgetScopeError(budget.id)

    if cfg.start_period is None:
        raise MissingStartPeriodError(budget.id)

    if cfg.is_fixed:
        if cfg.end_period is None:
            raise InvalidEndPeriodError(budget.id, "fixed budgets need an end period")
        if cfg.end_period < cfg.start_period:
            raise InvalidEndPeriodError(
                budget.id, f"end {cfg.end_period} is before start {cfg.start_period}"
            )
        since_end = now.date() - cfg.end_period
        if since_end > timedelta(hours=expired_grace_hours):
            raise ExpiredBudgetError(budget.id, f"ended on {cfg.end_period}")
    elif cfg.allow_growth and not cfg.use_prev_spend:
        apply_growth(budget, now)
