"""Exception hierarchy for budgetwatch.

Validation errors short-circuit a single budget's refresh and are reported
per budget.  ``ExpiredBudgetError`` is benign: callers treat it as a no-op.
Delivery errors are raised by sinks and always caught by the dispatcher.
"""
from __future__ import annotations


class BudgetError(Exception):
    """Base class for all budgetwatch errors."""


class BudgetValidationError(BudgetError):
    """Raised when a budget cannot be refreshed because its config is invalid.

    Attributes
    ----------
    budget_id:
        Identifier of the offending budget.
    """

    reason: str = "invalid budget"

    def __init__(self, budget_id: str, detail: str | None = None) -> None:
        self.budget_id = budget_id
        message = f"Budget '{budget_id}': {self.reason}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class MissingBudgetConfigError(BudgetValidationError):
    reason = "missing budget config"


class MissingBudgetScopeError(BudgetValidationError):
    reason = "missing budget scope"


class MissingStartPeriodError(BudgetValidationError):
    reason = "missing budget start period"


class InvalidEndPeriodError(BudgetValidationError):
    reason = "invalid budget end period"


class ExpiredBudgetError(BudgetValidationError):
    reason = "fixed budget has expired"


class BudgetNotFoundError(BudgetError):
    """Raised when the store has no budget with the requested identifier."""

    def __init__(self, budget_id: str) -> None:
        self.budget_id = budget_id
        super().__init__(f"Budget '{budget_id}' not found")


class BudgetPersistenceError(BudgetError):
    """Raised when a write or batch commit fails.

    No notification may be dispatched after this error for the affected
    batch.
    """


class DeliveryError(BudgetError):
    """Raised by a delivery sink when it cannot hand a payload over."""
