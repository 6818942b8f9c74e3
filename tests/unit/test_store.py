"""Tests for the in-memory store and bounded write batches."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from budgetwatch.budget.models import Budget, BudgetAlert, BudgetNotification, NotificationType
from budgetwatch.errors import BudgetNotFoundError, BudgetPersistenceError
from budgetwatch.store.batch import WriteBatch
from budgetwatch.store.memory import InMemoryBudgetStore

NOW = datetime(2024, 5, 17, tzinfo=timezone.utc)


def _budget(budget_id: str, **config: object) -> Budget:
    base: dict[str, object] = {"amount": 100, "start_period": "2024-01-01", "scope": ["a"]}
    base.update(config)
    return Budget.model_validate({"id": budget_id, "config": base})


@pytest.fixture()
def store() -> InMemoryBudgetStore:
    return InMemoryBudgetStore([_budget("b1"), _budget("b2")])


class _CountingStore(InMemoryBudgetStore):
    def __init__(self, budgets: list[Budget]) -> None:
        super().__init__(budgets)
        self.chunks: list[int] = []

    def commit_updates(self, updates: list[tuple[str, dict[str, object]]]) -> None:
        self.chunks.append(len(updates))
        super().commit_updates(updates)


# ---------------------------------------------------------------------------
# Budgets
# ---------------------------------------------------------------------------


class TestInMemoryBudgets:
    def test_get_returns_copy(self, store: InMemoryBudgetStore) -> None:
        budget = store.get_budget("b1")
        assert budget.config is not None
        budget.config.amount = 999
        assert store.get_budget("b1").config.amount == 100  # type: ignore[union-attr]

    def test_get_missing_raises(self, store: InMemoryBudgetStore) -> None:
        with pytest.raises(BudgetNotFoundError):
            store.get_budget("nope")

    def test_update_dotted_paths(self, store: InMemoryBudgetStore) -> None:
        alerts = [BudgetAlert(percentage=50, triggered=True), BudgetAlert(), BudgetAlert()]
        store.update_budget_fields("b1", {"config.amount": 250.0, "config.alerts": alerts, "time_refreshed": NOW})
        budget = store.get_budget("b1")
        assert budget.config is not None
        assert budget.config.amount == 250.0
        assert budget.config.alerts[0].triggered is True
        assert budget.time_refreshed == NOW

    def test_update_unknown_path_raises(self, store: InMemoryBudgetStore) -> None:
        with pytest.raises(BudgetPersistenceError):
            store.update_budget_fields("b1", {"config.nonexistent": 1})

    def test_commit_is_all_or_nothing(self, store: InMemoryBudgetStore) -> None:
        with pytest.raises(BudgetPersistenceError):
            store.commit_updates([("b1", {"config.amount": 5.0}), ("missing", {"config.amount": 6.0})])
        assert store.get_budget("b1").config.amount == 100  # type: ignore[union-attr]

    def test_needing_refresh_filters(self) -> None:
        store = InMemoryBudgetStore(
            [
                _budget("recurring"),
                _budget("fixed-live", type="fixed", end_period="2024-05-31"),
                _budget("fixed-ended", type="fixed", end_period="2024-05-16"),
                Budget(id="no-config"),
                Budget.model_validate({**_budget("invalid").model_dump(), "is_valid": False}),
            ]
        )
        ids = sorted(b.id for b in store.list_budgets_needing_refresh(NOW))
        assert ids == ["fixed-live", "recurring"]


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


class TestInMemoryNotifications:
    def test_round_trip_by_key(self, store: InMemoryBudgetStore) -> None:
        notification = BudgetNotification(
            budget_id="b1",
            type=NotificationType.THRESHOLD,
            alert_date=NOW,
            created=NOW,
            expire_by=NOW + timedelta(days=31),
        )
        store.set_notification(notification)
        assert store.get_notification("b1", NotificationType.THRESHOLD) == notification
        assert store.get_notification("b1", NotificationType.FORECAST) is None


# ---------------------------------------------------------------------------
# WriteBatch
# ---------------------------------------------------------------------------


class TestWriteBatch:
    def test_commits_in_bounded_chunks(self) -> None:
        budgets = [_budget(f"b{i}") for i in range(5)]
        store = _CountingStore(budgets)
        batch = store.batch(max_size=2)
        for budget in budgets:
            batch.update(budget.id, {"config.amount": 1.0})

        assert len(batch) == 5
        assert batch.commit() == 5
        assert store.chunks == [2, 2, 1]
        assert len(batch) == 0
        assert all(b.config.amount == 1.0 for b in store.all_budgets())  # type: ignore[union-attr]

    def test_empty_commit(self, store: InMemoryBudgetStore) -> None:
        assert store.batch().commit() == 0

    def test_invalid_size(self, store: InMemoryBudgetStore) -> None:
        with pytest.raises(ValueError):
            WriteBatch(store, max_size=0)

    def test_failing_chunk_raises(self, store: InMemoryBudgetStore) -> None:
        batch = store.batch(max_size=1)
        batch.update("b1", {"config.amount": 7.0})
        batch.update("missing", {"config.amount": 7.0})
        with pytest.raises(BudgetPersistenceError):
            batch.commit()
        # Earlier chunks stay committed.
        assert store.get_budget("b1").config.amount == 7.0  # type: ignore[union-attr]
