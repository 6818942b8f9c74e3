"""Threshold and forecast-date alert state.

:mod:`budgetwatch.alerts.processor` holds the batch runner; import it from
there, it depends on the notification layer.
"""
from __future__ import annotations

from budgetwatch.alerts.state import (
    apply_forecast_alert,
    has_pending_alert,
    reset_triggered_alerts,
    select_alert,
    should_reset,
    should_send_forecast_alert,
    should_trigger,
    threshold_amount,
    trigger_pending_alerts,
)

__all__ = [
    "apply_forecast_alert",
    "has_pending_alert",
    "reset_triggered_alerts",
    "select_alert",
    "should_reset",
    "should_send_forecast_alert",
    "should_trigger",
    "threshold_amount",
    "trigger_pending_alerts",
]
