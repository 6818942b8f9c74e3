"""budgetwatch — Budget utilization, forecast and alerting engine.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import budgetwatch as bw
>>> bw.__version__
'0.1.0'
>>> store = bw.InMemoryBudgetStore()
>>> service = bw.BudgetService(store, bw.StaticQueryService())
>>> service.refresh_all().refreshed
[]
"""
from __future__ import annotations

__version__: str = "0.1.0"

# ---------------------------------------------------------------------------
# Budget model and periods
# ---------------------------------------------------------------------------
from budgetwatch.budget.models import (
    Budget,
    BudgetAlert,
    BudgetConfig,
    BudgetNotification,
    BudgetType,
    NotificationType,
    TimeInterval,
    Utilization,
)
from budgetwatch.budget.periods import PeriodWindow, budget_windows, current_period, previous_period
from budgetwatch.budget.validation import validate_budget

# ---------------------------------------------------------------------------
# Forecast
# ---------------------------------------------------------------------------
from budgetwatch.forecast.engine import BudgetForecast, ForecastPrediction, date_for_value, value_for_date_range
from budgetwatch.forecast.series import ForecastSeries

# ---------------------------------------------------------------------------
# Alerts and notifications
# ---------------------------------------------------------------------------
from budgetwatch.alerts.processor import AlertProcessor, AlertRunSummary
from budgetwatch.notifications.dispatcher import DispatchResult, NotificationDispatcher
from budgetwatch.notifications.sinks import ChatSink, EmailSink, EventSink, LoggingSink, WebhookChatSink

# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------
from budgetwatch.query.service import AnalyticsQueryService, QueryRequest, StaticQueryService
from budgetwatch.store.base import BudgetStore
from budgetwatch.store.memory import InMemoryBudgetStore

# ---------------------------------------------------------------------------
# Service, settings and errors
# ---------------------------------------------------------------------------
from budgetwatch.config import EngineSettings, SettingsLoader
from budgetwatch.errors import (
    BudgetError,
    BudgetNotFoundError,
    BudgetPersistenceError,
    BudgetValidationError,
    DeliveryError,
    ExpiredBudgetError,
)
from budgetwatch.service import BudgetService, BudgetUsageDataResult, CycleReport, RefreshSummary

__all__ = [
    "__version__",
    # Budget model and periods
    "Budget",
    "BudgetAlert",
    "BudgetConfig",
    "BudgetNotification",
    "BudgetType",
    "NotificationType",
    "PeriodWindow",
    "TimeInterval",
    "Utilization",
    "budget_windows",
    "current_period",
    "previous_period",
    "validate_budget",
    # Forecast
    "BudgetForecast",
    "ForecastPrediction",
    "ForecastSeries",
    "date_for_value",
    "value_for_date_range",
    # Alerts and notifications
    "AlertProcessor",
    "AlertRunSummary",
    "ChatSink",
    "DispatchResult",
    "EmailSink",
    "EventSink",
    "LoggingSink",
    "NotificationDispatcher",
    "WebhookChatSink",
    # Collaborators
    "AnalyticsQueryService",
    "BudgetStore",
    "InMemoryBudgetStore",
    "QueryRequest",
    "StaticQueryService",
    # Service, settings and errors
    "BudgetError",
    "BudgetNotFoundError",
    "BudgetPersistenceError",
    "BudgetService",
    "BudgetUsageDataResult",
    "BudgetValidationError",
    "CycleReport",
    "DeliveryError",
    "EngineSettings",
    "ExpiredBudgetError",
    "RefreshSummary",
    "SettingsLoader",
]
