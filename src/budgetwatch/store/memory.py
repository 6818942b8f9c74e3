"""Thread-safe in-memory document store.

Holds budgets and notification records in dictionaries guarded by a
``threading.Lock``.  Every read returns a deep copy so callers can mutate
budgets freely without touching stored state until they write back.

Example
-------
>>> store = InMemoryBudgetStore([budget])
>>> store.update_budget_fields(budget.id, {"config.amount": 1200.0})
>>> store.get_budget(budget.id).config.amount
1200.0
"""
from __future__ import annotations

import copy
import threading
from datetime import datetime
from typing import Iterable

from pydantic import BaseModel

from budgetwatch.budget.models import Budget, BudgetNotification, NotificationType
from budgetwatch.errors import BudgetNotFoundError, BudgetPersistenceError
from budgetwatch.store.base import BudgetStore, FieldUpdates


def _set_path(document: BaseModel, path: str, value: object) -> None:
    """Assign ``value`` to a dotted attribute path on a model."""
    *parents, leaf = path.split(".")
    target: object = document
    for part in parents:
        target = getattr(target, part, None)
        if target is None:
            raise BudgetPersistenceError(f"Cannot update '{path}': '{part}' is not set")
    if not hasattr(target, leaf):
        raise BudgetPersistenceError(f"Unknown field path '{path}'")
    setattr(target, leaf, copy.deepcopy(value))


class InMemoryBudgetStore(BudgetStore):
    """Dictionary-backed :class:`BudgetStore`.

    Parameters
    ----------
    budgets:
        Initial budget records.
    """

    def __init__(self, budgets: Iterable[Budget] = ()) -> None:
        self._budgets: dict[str, Budget] = {b.id: b.model_copy(deep=True) for b in budgets}
        self._notifications: dict[tuple[str, NotificationType], BudgetNotification] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Budgets
    # ------------------------------------------------------------------

    def add_budget(self, budget: Budget) -> None:
        with self._lock:
            self._budgets[budget.id] = budget.model_copy(deep=True)

    def get_budget(self, budget_id: str) -> Budget:
        with self._lock:
            budget = self._budgets.get(budget_id)
            if budget is None:
                raise BudgetNotFoundError(budget_id)
            return budget.model_copy(deep=True)

    def all_budgets(self) -> list[Budget]:
        with self._lock:
            return [b.model_copy(deep=True) for b in self._budgets.values()]

    def update_budget_fields(self, budget_id: str, fields: FieldUpdates) -> None:
        self.commit_updates([(budget_id, fields)])

    def commit_updates(self, updates: list[tuple[str, FieldUpdates]]) -> None:
        with self._lock:
            staged: dict[str, Budget] = {}
            for budget_id, fields in updates:
                if budget_id not in staged:
                    current = self._budgets.get(budget_id)
                    if current is None:
                        raise BudgetPersistenceError(f"Budget '{budget_id}' does not exist")
                    staged[budget_id] = current.model_copy(deep=True)
                for path, value in fields.items():
                    _set_path(staged[budget_id], path, value)
            self._budgets.update(staged)

    def list_budgets_needing_refresh(self, now: datetime) -> list[Budget]:
        today = now.date()
        selected: list[Budget] = []
        for budget in self.all_budgets():
            if not budget.is_valid or budget.config is None:
                continue
            cfg = budget.config
            if cfg.is_fixed and (cfg.end_period is None or cfg.end_period < today):
                continue
            selected.append(budget)
        return selected

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def get_notification(
        self, budget_id: str, notification_type: NotificationType
    ) -> BudgetNotification | None:
        with self._lock:
            stored = self._notifications.get((budget_id, notification_type))
            return stored.model_copy(deep=True) if stored is not None else None

    def set_notification(self, notification: BudgetNotification) -> None:
        with self._lock:
            self._notifications[notification.key] = notification.model_copy(deep=True)

    def all_notifications(self) -> list[BudgetNotification]:
        with self._lock:
            return [n.model_copy(deep=True) for n in self._notifications.values()]
