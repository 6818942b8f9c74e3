"""Daily cumulative forecast series.

The forecasting model external to this package returns one value per
calendar day, cumulative within each month and reset on the first of the
next month.  :class:`ForecastSeries` indexes those rows by date and answers
the three lookups the forecast algorithms need.

Example
-------
>>> series = ForecastSeries.from_rows([(2024, 1, 1, 10.0), (2024, 1, 2, 25.0)])
>>> series.through(date(2024, 1, 2))
25.0
>>> series.before(date(2024, 1, 2))
10.0
"""
from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Iterable, Sequence

from budgetwatch.budget.utilization import parse_usage_row

logger = logging.getLogger(__name__)


class ForecastSeries:
    """Read-only index over a per-month cumulative daily series.

    Days missing from the series read as ``0``.

    Parameters
    ----------
    values:
        Mapping of calendar day to cumulative month-to-date value.
    """

    def __init__(self, values: dict[date, float] | None = None) -> None:
        self._values: dict[date, float] = dict(values or {})
        self._last_date: date | None = max(self._values) if self._values else None
        # Latest day present per month; the series may stop before month end.
        self._month_last: dict[tuple[int, int], date] = {}
        for day in self._values:
            key = (day.year, day.month)
            if key not in self._month_last or day > self._month_last[key]:
                self._month_last[key] = day

    @classmethod
    def from_rows(cls, rows: Iterable[Sequence[object]]) -> "ForecastSeries":
        """Build a series from ``(year, month, day, cumulative_value)`` rows.

        Malformed rows are skipped.
        """
        values: dict[date, float] = {}
        skipped = 0
        for raw in rows:
            row = parse_usage_row(raw)
            if row is None:
                skipped += 1
                continue
            values[row.day] = row.value
        if skipped:
            logger.debug("Skipped %d malformed forecast rows", skipped)
        return cls(values)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def through(self, day: date) -> float:
        """Cumulative value for ``day``'s month up to and including ``day``."""
        return self._values.get(day, 0.0)

    def before(self, day: date) -> float:
        """Cumulative value for ``day``'s month strictly before ``day``."""
        if day.day == 1:
            return 0.0
        return self._values.get(day - timedelta(days=1), 0.0)

    def month_total(self, day: date) -> float:
        """Total for the month containing ``day``.

        Read from the latest day the series holds in that month, so a series
        cut off before month end still reports what it covers.
        """
        latest = self._month_last.get((day.year, day.month))
        if latest is None:
            return 0.0
        return self._values[latest]

    @property
    def last_date(self) -> date | None:
        return self._last_date

    def __len__(self) -> int:
        return len(self._values)

    def __bool__(self) -> bool:
        return bool(self._values)
