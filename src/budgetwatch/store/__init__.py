"""Budget and notification persistence."""
from __future__ import annotations

from budgetwatch.store.base import BudgetStore, FieldUpdates
from budgetwatch.store.batch import WriteBatch
from budgetwatch.store.memory import InMemoryBudgetStore

__all__ = ["BudgetStore", "FieldUpdates", "InMemoryBudgetStore", "WriteBatch"]
