"""Bounded write batches.

Updates are queued in memory and committed in chunks of at most
``max_size`` updates.  Each chunk is atomic; a failing chunk stops the
commit and raises, leaving earlier chunks committed.

Example
-------
>>> batch = store.batch(max_size=250)
>>> batch.update("b1", {"config.alerts": alerts})
>>> batch.commit()
1
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from budgetwatch.config import DEFAULT_WRITE_BATCH_SIZE

if TYPE_CHECKING:
    from budgetwatch.store.base import BudgetStore, FieldUpdates

logger = logging.getLogger(__name__)


class WriteBatch:
    """Collects field updates and commits them in bounded atomic chunks.

    Parameters
    ----------
    store:
        The store the updates are written to.
    max_size:
        Maximum number of updates per atomic chunk.
    """

    def __init__(self, store: "BudgetStore", max_size: int = DEFAULT_WRITE_BATCH_SIZE) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._store = store
        self._max_size = max_size
        self._pending: list[tuple[str, FieldUpdates]] = []

    def update(self, budget_id: str, fields: "FieldUpdates") -> None:
        """Queue an update of ``fields`` on ``budget_id``."""
        self._pending.append((budget_id, dict(fields)))

    def commit(self) -> int:
        """Write all queued updates and return how many were committed.

        Raises
        ------
        BudgetPersistenceError:
            When a chunk fails; the failing chunk and the rest are dropped.
        """
        committed = 0
        pending, self._pending = self._pending, []
        for offset in range(0, len(pending), self._max_size):
            chunk = pending[offset : offset + self._max_size]
            self._store.commit_updates(chunk)
            committed += len(chunk)
            logger.debug("Committed write batch chunk of %d updates", len(chunk))
        return committed

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def max_size(self) -> int:
        return self._max_size
