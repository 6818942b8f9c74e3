"""Budget document models — Pydantic v2.

A :class:`Budget` is the persisted record that every refresh cycle mutates
in place.  The engine owns ``utilization``, the ``triggered`` and
``forecasted_date`` fields of each alert slot, and ``config.amount`` /
``config.original_amount``; the rest of the config is user input.

Example
-------
>>> budget = Budget.model_validate({
...     "id": "b1",
...     "name": "Team spend",
...     "config": {
...         "amount": 1000,
...         "type": "fixed",
...         "start_period": "2024-01-01",
...         "end_period": "2024-01-31",
...         "alerts": [{"percentage": 50}],
...         "scope": ["attr-1"],
...     },
... })
>>> len(budget.config.alerts)
3
"""
from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator

ALERT_SLOTS = 3

_CURRENCY_SYMBOLS: dict[str, str] = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "ILS": "₪",
    "AUD": "A$",
    "CAD": "C$",
    "JPY": "¥",
    "DKK": "kr",
    "NOK": "kr",
    "SEK": "kr",
    "BRL": "R$",
    "SGD": "S$",
    "MXN": "MX$",
    "CHF": "CHF",
    "INR": "₹",
}


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class BudgetType(str, Enum):
    """Whether a budget covers one fixed range or resets every period."""

    FIXED = "fixed"
    RECURRING = "recurring"


class TimeInterval(str, Enum):
    """Granularity of a recurring budget period."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"


class NotificationType(str, Enum):
    """Kinds of budget notification records."""

    THRESHOLD = "threshold"
    FORECAST = "forecast"


# ---------------------------------------------------------------------------
# Sharing and recipients
# ---------------------------------------------------------------------------


class Collaborator(BaseModel):
    email: str
    role: str = "viewer"


class SlackChannel(BaseModel):
    """A chat channel a budget posts alerts to."""

    id: str
    name: str = ""
    workspace: str = ""
    customer_id: str = ""


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------


class BudgetAlert(BaseModel):
    """One of the three independent alert threshold slots.

    Attributes
    ----------
    percentage:
        Percentage of the budget amount.  ``0`` disables the slot.
    triggered:
        ``True`` once utilization reached the slot amount; cleared only when
        utilization drops back below it.
    forecasted_date:
        Projected date the slot amount will be reached, if any.
    """

    percentage: float = Field(default=0.0, ge=0)
    triggered: bool = False
    forecasted_date: date | None = None

    @property
    def enabled(self) -> bool:
        return self.percentage > 0

    def amount_for(self, budget_amount: float) -> float:
        """Return the absolute spend at which this slot triggers."""
        return self.percentage * budget_amount / 100


class BudgetConfig(BaseModel):
    """User-supplied budget configuration.

    Attributes
    ----------
    amount:
        Target amount for the current period.  Recomputed by the engine for
        growth and previous-spend budgets.
    original_amount:
        Amount before growth compounding, or last period's spend for
        previous-spend budgets.
    alerts:
        Exactly three threshold slots.  Shorter input is padded with disabled
        slots.
    scope:
        Attribution identifiers that select which costs count.
    """

    amount: float = Field(default=0.0, ge=0)
    original_amount: float | None = Field(default=None, ge=0)
    currency: str = "USD"
    metric: str = "cost"
    time_interval: TimeInterval = TimeInterval.MONTH
    type: BudgetType = BudgetType.RECURRING
    start_period: date | None = None
    end_period: date | None = None
    allow_growth: bool = False
    growth_per_period: float = 0.0
    use_prev_spend: bool = False
    alerts: list[BudgetAlert] = Field(default_factory=list)
    scope: list[str] = Field(default_factory=list)
    data_source: str | None = None

    @field_validator("alerts")
    @classmethod
    def exactly_three_slots(cls, values: list[BudgetAlert]) -> list[BudgetAlert]:
        if len(values) > ALERT_SLOTS:
            raise ValueError(f"A budget supports at most {ALERT_SLOTS} alerts, got {len(values)}")
        return values + [BudgetAlert() for _ in range(ALERT_SLOTS - len(values))]

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, value: str) -> str:
        return value.upper()

    @property
    def currency_symbol(self) -> str:
        return _CURRENCY_SYMBOLS.get(self.currency, self.currency)

    @property
    def is_fixed(self) -> bool:
        return self.type == BudgetType.FIXED


class Utilization(BaseModel):
    """Engine-owned utilization and forecast state."""

    current: float = 0.0
    forecasted: float = 0.0
    forecasted_total_amount_date: date | None = None
    previous_forecasted_date: date | None = None
    should_send_forecast_alert: bool = False
    last_period: float = 0.0


class Budget(BaseModel):
    """A persisted budget record."""

    id: str
    name: str = ""
    description: str = ""
    customer_id: str = ""
    collaborators: list[Collaborator] = Field(default_factory=list)
    recipients: list[str] = Field(default_factory=list)
    recipients_slack_channels: list[SlackChannel] = Field(default_factory=list)
    is_valid: bool = True
    config: BudgetConfig | None = None
    utilization: Utilization = Field(default_factory=Utilization)
    time_created: datetime | None = None
    time_modified: datetime | None = None
    time_refreshed: datetime | None = None

    @property
    def owner(self) -> str:
        """Email of the collaborator with the ``owner`` role, or ``""``."""
        for collaborator in self.collaborators:
            if collaborator.role == "owner":
                return collaborator.email
        return ""

    @property
    def utilization_percentage(self) -> float:
        """Current utilization as a percentage of the amount, rounded to 2dp."""
        if self.config is None or self.config.amount == 0:
            return 0.0
        return round(self.utilization.current / self.config.amount * 10000) / 100


class BudgetNotification(BaseModel):
    """Notification record stored once per ``(budget_id, type)``.

    ``created`` is set on first write and preserved on every overwrite;
    ``expire_by`` is derived from it.
    """

    budget_id: str
    type: NotificationType
    name: str = ""
    customer_id: str = ""
    alert_date: datetime
    created: datetime
    expire_by: datetime
    alert_amount: str = "0.00"
    alert_percentage: float = 0.0
    currency_symbol: str = "$"
    current_amount: str = "0.00"
    current_percentage: float = 0.0
    forecasted_date: date | None = None
    recipients: list[str] = Field(default_factory=list)

    @property
    def key(self) -> tuple[str, NotificationType]:
        return (self.budget_id, self.type)
