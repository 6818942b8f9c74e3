"""Utilization aggregation over daily usage rows.

Rows come from the analytics query collaborator as ``(year, month, day,
value)`` sequences ordered by date.  Date parts may be integers or strings
(``"07"`` or ``"07 00:00:00"``).  A row that cannot be parsed is skipped
rather than failing the whole aggregation: partial utilization is more
useful than none.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Sequence

from budgetwatch.budget.models import Budget
from budgetwatch.budget.periods import PeriodWindow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UsageRow:
    """A single parsed daily usage value."""

    day: date
    value: float


def _date_part(raw: object) -> int:
    if isinstance(raw, bool):
        raise TypeError("boolean is not a date part")
    if isinstance(raw, int):
        return raw
    return int(str(raw).strip().split(" ")[0])


def parse_usage_row(row: Sequence[object]) -> UsageRow | None:
    """Parse a raw ``(year, month, day, value)`` row.

    Returns ``None`` for rows with a malformed date or a non-numeric value.
    """
    try:
        day = date(_date_part(row[0]), _date_part(row[1]), _date_part(row[2]))
        raw_value = row[3]
    except (IndexError, TypeError, ValueError):
        logger.debug("Skipping unparseable usage row: %r", row)
        return None

    if isinstance(raw_value, bool) or not isinstance(raw_value, (int, float)):
        logger.debug("Skipping usage row with non-numeric value: %r", row)
        return None

    return UsageRow(day=day, value=float(raw_value))


def total_between(
    rows: Iterable[Sequence[object]],
    from_date: date,
    to_date: date | None = None,
) -> float:
    """Sum row values dated within ``[from_date, to_date]``.

    ``to_date=None`` means no upper bound.
    """
    total = 0.0
    for raw in rows:
        row = parse_usage_row(raw)
        if row is None:
            continue
        if row.day < from_date:
            continue
        if to_date is not None and row.day > to_date:
            continue
        total += row.value
    return total


def current_utilization(
    rows: Sequence[Sequence[object]],
    budget: Budget,
    window: PeriodWindow,
    now: datetime,
) -> tuple[float, date | None]:
    """Return the spend inside ``window`` and the date it was counted from.

    When ``now`` precedes the budget's start period the utilization is ``0``
    and no start date is returned.
    """
    cfg = budget.config
    if cfg is not None and cfg.start_period is not None and now.date() < cfg.start_period:
        return 0.0, None

    return total_between(rows, window.start, window.end), window.start


def last_period_spend(rows: Sequence[Sequence[object]], previous: PeriodWindow) -> float:
    """Return the spend inside the previous period window."""
    return total_between(rows, previous.start, previous.end)
