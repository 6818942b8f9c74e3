"""Growth projection for recurring budgets.

Two independent behaviours:

- **Amount compounding** — a recurring budget that allows growth has its
  amount compounded by ``growth_per_period`` percent for every elapsed
  period.  The computation always starts from ``original_amount`` so running
  it twice for the same ``now`` yields the same amount.
- **Target derivation** — a previous-spend budget takes last period's spend
  as its target, extrapolating the partial current period when there is no
  history yet.
"""
from __future__ import annotations

import logging
from datetime import datetime

from budgetwatch.budget.models import Budget
from budgetwatch.budget.periods import PeriodWindow, elapsed_periods

logger = logging.getLogger(__name__)


def compound_amount(original_amount: float, growth_per_period: float, elapsed: int) -> float:
    """Return ``original_amount`` grown by ``growth_per_period`` % for ``elapsed`` periods."""
    if elapsed <= 0:
        return original_amount
    return original_amount * (1 + growth_per_period / 100) ** elapsed


def apply_growth(budget: Budget, now: datetime) -> float:
    """Set ``config.amount`` to the compounded amount and return it.

    ``original_amount`` is initialised from ``amount`` the first time a
    budget is compounded.
    """
    cfg = budget.config
    if cfg is None or cfg.start_period is None:
        raise ValueError(f"Budget '{budget.id}' has no start period to compound from")

    if cfg.original_amount is None:
        cfg.original_amount = cfg.amount

    elapsed = elapsed_periods(cfg.time_interval, cfg.start_period, now)
    cfg.amount = compound_amount(cfg.original_amount, cfg.growth_per_period, elapsed)
    logger.debug(
        "Budget %s compounded over %d periods: %.2f -> %.2f",
        budget.id,
        elapsed,
        cfg.original_amount,
        cfg.amount,
    )
    return cfg.amount


def speculate_last_period(
    utilization: float,
    window: PeriodWindow,
    previous: PeriodWindow,
    now: datetime,
) -> float:
    """Estimate a full period's spend from the partial current period.

    ``estimate = utilization / hours_elapsed * hours_in_full_period`` where the
    full period is the length of the previous window.  Returns ``0`` when no
    time has elapsed yet.
    """
    hours_elapsed = (now - window.start_datetime).total_seconds() / 3600
    if hours_elapsed <= 0:
        return 0.0
    hours_in_period = previous.duration.total_seconds() / 3600
    return utilization / hours_elapsed * hours_in_period


def derive_target(budget: Budget, last_period_spend: float) -> float:
    """Use ``last_period_spend`` as the budget target and return the new amount."""
    cfg = budget.config
    if cfg is None:
        raise ValueError(f"Budget '{budget.id}' has no config")

    cfg.original_amount = last_period_spend
    if cfg.allow_growth:
        cfg.amount = last_period_spend * (1 + cfg.growth_per_period / 100)
    else:
        cfg.amount = last_period_spend
    return cfg.amount
