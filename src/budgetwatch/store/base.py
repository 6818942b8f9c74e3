"""Document store contract.

The store persists budget records and notification records.  The engine
only ever updates the fields it owns, through
:meth:`BudgetStore.update_budget_fields` or a :class:`WriteBatch`.

Field paths are dotted strings relative to the budget document, e.g.
``"utilization"``, ``"config.alerts"``, ``"config.amount"`` or
``"time_refreshed"``.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING

from budgetwatch.budget.models import Budget, BudgetNotification, NotificationType
from budgetwatch.config import DEFAULT_WRITE_BATCH_SIZE

if TYPE_CHECKING:
    from budgetwatch.store.batch import WriteBatch

FieldUpdates = dict[str, object]


class BudgetStore(ABC):
    """Abstract base for budget persistence."""

    @abstractmethod
    def get_budget(self, budget_id: str) -> Budget:
        """Return the budget with ``budget_id``.

        Raises
        ------
        BudgetNotFoundError:
            When no such budget exists.
        """

    @abstractmethod
    def update_budget_fields(self, budget_id: str, fields: FieldUpdates) -> None:
        """Atomically overwrite the given field paths of one budget.

        Raises
        ------
        BudgetPersistenceError:
            When the write fails.
        """

    @abstractmethod
    def commit_updates(self, updates: list[tuple[str, FieldUpdates]]) -> None:
        """Atomically apply a group of updates: all of them or none.

        Raises
        ------
        BudgetPersistenceError:
            When the group cannot be written.
        """

    @abstractmethod
    def get_notification(
        self, budget_id: str, notification_type: NotificationType
    ) -> BudgetNotification | None:
        """Return the stored notification for the key, or ``None``."""

    @abstractmethod
    def set_notification(self, notification: BudgetNotification) -> None:
        """Overwrite the notification stored under ``notification.key``."""

    @abstractmethod
    def list_budgets_needing_refresh(self, now: datetime) -> list[Budget]:
        """Return valid recurring budgets and valid fixed budgets not yet ended."""

    def batch(self, max_size: int = DEFAULT_WRITE_BATCH_SIZE) -> "WriteBatch":
        """Return a bounded write batch bound to this store."""
        from budgetwatch.store.batch import WriteBatch

        return WriteBatch(self, max_size=max_size)
