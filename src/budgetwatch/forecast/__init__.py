"""Forecast series lookups and threshold-crossing projection."""
from __future__ import annotations

from budgetwatch.forecast.engine import (
    BudgetForecast,
    ForecastPrediction,
    apply_forecast,
    date_for_value,
    forecast_budget,
    value_for_date_range,
)
from budgetwatch.forecast.series import ForecastSeries

__all__ = [
    "BudgetForecast",
    "ForecastPrediction",
    "ForecastSeries",
    "apply_forecast",
    "date_for_value",
    "forecast_budget",
    "value_for_date_range",
]
