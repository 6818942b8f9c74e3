"""Recipient-shaped payloads for the delivery sinks.

Rendering of the final message bodies belongs to the sinks; this module only
assembles the template data each channel needs.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

from budgetwatch.alerts.state import select_alert
from budgetwatch.budget.models import Budget, BudgetConfig, BudgetType, SlackChannel, TimeInterval
from budgetwatch.config import EngineSettings

logger = logging.getLogger(__name__)

THRESHOLD_TEMPLATE = "budget-threshold-alert"
FORECAST_TEMPLATE = "budget-forecast-alert"

_EMAIL_DATE_FORMAT = "%a, %d %b %Y"
_CHAT_DATE_FORMAT = "%b %d, %Y"


@dataclass
class EmailPersonalization:
    """Recipients plus dynamic template data for one email."""

    to: list[str]
    template: str
    data: dict[str, object] = field(default_factory=dict)


@dataclass
class ChatMessage:
    """A chat alert and the channels it should be posted to."""

    budget_id: str
    text: str
    channels: list[SlackChannel]
    blocks: list[dict[str, object]] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def format_number(value: float, decimals: int = 2) -> str:
    """Format ``value`` with thousands separators, e.g. ``1,234.50``."""
    return f"{value:,.{decimals}f}"


def threshold_subject(percentage: float, budget_name: str, chat: bool = False) -> str:
    p = f"{percentage:.2f}"
    if chat:
        return f"*Budget Alert*: You've exceeded *{p}%* of your *{budget_name}* budget"
    return f"Budget Alert: You've exceeded {p}% of your {budget_name} budget"


def budget_url(settings: EngineSettings, budget: Budget) -> str:
    return f"https://{settings.console_domain}/customers/{budget.customer_id}/analytics/budgets/{budget.id}"


def filter_recipients(recipients: list[str], settings: EngineSettings) -> list[str]:
    """Drop recipients outside ``internal_domains`` when not in production."""
    if settings.production:
        return list(recipients)
    allowed: list[str] = []
    for recipient in recipients:
        domain = recipient.rsplit("@", 1)[-1].lower()
        if domain in settings.internal_domains:
            allowed.append(recipient)
        else:
            logger.info("Mail to <%s> not sent outside production", recipient)
    return allowed


def filter_channels(channels: list[SlackChannel], settings: EngineSettings) -> list[SlackChannel]:
    """Keep only channels of internal customers when not in production."""
    if settings.production:
        return list(channels)
    allowed: list[SlackChannel] = []
    for channel in channels:
        if channel.customer_id in settings.internal_customer_ids:
            allowed.append(channel)
        else:
            logger.info("Chat alert to %s.%s not sent outside production", channel.workspace, channel.name)
    return allowed


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def _common_data(budget: Budget, cfg: BudgetConfig, settings: EngineSettings) -> dict[str, object]:
    return {
        "budget_name": budget.name,
        "budget_id": budget.id,
        "customer_id": budget.customer_id,
        "domain": settings.console_domain,
        "currency_symbol": cfg.currency_symbol,
        "current_amount": format_number(budget.utilization.current),
        "current_percentage": budget.utilization_percentage,
    }


def threshold_email(budget: Budget, settings: EngineSettings) -> list[EmailPersonalization]:
    """Build the threshold alert email, or nothing when no recipient remains."""
    cfg = budget.config
    if cfg is None:
        return []

    tos = filter_recipients(budget.recipients, settings)
    if not tos:
        return []

    selected = select_alert(budget)
    percentage = budget.utilization_percentage
    data = _common_data(budget, cfg, settings)
    data["subject"] = threshold_subject(percentage, budget.name)
    data["alert_percentage"] = selected.percentage
    data["alert_amount"] = format_number(selected.amount_for(cfg.amount))

    forecast_date = budget.utilization.forecasted_total_amount_date
    if cfg.time_interval != TimeInterval.DAY and forecast_date is not None and percentage < 100:
        data["forecasted_date"] = forecast_date.strftime(_EMAIL_DATE_FORMAT)

    logger.info("Prepared threshold alert for budget %s to %s", budget.id, ", ".join(tos))
    return [EmailPersonalization(to=tos, template=THRESHOLD_TEMPLATE, data=data)]


def forecast_email(budget: Budget, settings: EngineSettings) -> list[EmailPersonalization]:
    """Build the forecast-date alert email.

    Nothing is built unless both the new and the previous forecast dates are
    known.
    """
    cfg = budget.config
    utilization = budget.utilization
    if (
        cfg is None
        or utilization.forecasted_total_amount_date is None
        or utilization.previous_forecasted_date is None
    ):
        logger.info("Forecast alert for budget %s skipped: missing forecasted date", budget.id)
        return []

    tos = filter_recipients(budget.recipients, settings)
    if not tos:
        return []

    data = _common_data(budget, cfg, settings)
    data["forecasted_date"] = utilization.forecasted_total_amount_date.strftime(_EMAIL_DATE_FORMAT)
    data["previous_date"] = utilization.previous_forecasted_date.strftime(_EMAIL_DATE_FORMAT)

    logger.info("Prepared forecast alert for budget %s to %s", budget.id, ", ".join(tos))
    return [EmailPersonalization(to=tos, template=FORECAST_TEMPLATE, data=data)]


def threshold_chat(budget: Budget, settings: EngineSettings) -> ChatMessage | None:
    """Build the chat alert, or ``None`` when the budget posts to no channel."""
    cfg = budget.config
    if cfg is None:
        return None

    channels = filter_channels(budget.recipients_slack_channels, settings)
    if not channels:
        return None

    selected = select_alert(budget)
    percentage = budget.utilization_percentage
    symbol = cfg.currency_symbol
    subject = threshold_subject(percentage, budget.name, chat=True)

    fields = [f"*Type*: {cfg.type.value.title()}"]
    if cfg.type == BudgetType.RECURRING:
        fields.append(f"*Period*: {_period_label(cfg.time_interval)}")
    fields += [
        f"*Alert spend*: {symbol}{format_number(selected.amount_for(cfg.amount))}",
        f"*Alert %*: {selected.percentage:.0f}",
        f"*Current spend*: {symbol}{format_number(budget.utilization.current)}",
        f"*Budget %*: {percentage:.0f}",
    ]

    blocks: list[dict[str, object]] = [
        {"type": "section", "text": {"type": "mrkdwn", "text": subject}},
        {"type": "section", "fields": [{"type": "mrkdwn", "text": f} for f in fields]},
    ]
    if budget.description:
        blocks.append({"type": "section", "text": {"type": "mrkdwn", "text": f"*Description*: {budget.description}"}})

    forecast_date = budget.utilization.forecasted_total_amount_date
    if forecast_date is not None:
        blocks.append(
            {
                "type": "section",
                "text": {
                    "type": "mrkdwn",
                    "text": (
                        "Based on your current spending patterns, we estimate that you'll reach "
                        f"100% of this budget on *{forecast_date.strftime(_CHAT_DATE_FORMAT)}*"
                    ),
                },
            }
        )
    blocks.append(
        {
            "type": "actions",
            "elements": [
                {
                    "type": "button",
                    "action_id": "budget.view",
                    "text": {"type": "plain_text", "text": ":mag: Open Budget"},
                    "url": budget_url(settings, budget),
                }
            ],
        }
    )

    return ChatMessage(budget_id=budget.id, text=subject, channels=channels, blocks=blocks)


def _period_label(interval: TimeInterval) -> str:
    labels = {
        TimeInterval.DAY: "Daily",
        TimeInterval.WEEK: "Weekly",
        TimeInterval.MONTH: "Monthly",
        TimeInterval.QUARTER: "Quarterly",
        TimeInterval.YEAR: "Yearly",
    }
    return labels[interval]


def budget_event_payload(budget: Budget) -> dict[str, object]:
    """Map a budget to the external representation sent with budget events."""
    cfg = budget.config
    if cfg is None:
        raise ValueError(f"Budget '{budget.id}' has no config")

    alerts = [
        {
            "percentage": alert.percentage,
            "triggered": alert.triggered,
            "forecastedDate": alert.forecasted_date.isoformat() if alert.forecasted_date else None,
        }
        for alert in cfg.alerts
    ]
    return {
        "id": budget.id,
        "name": budget.name,
        "description": budget.description,
        "owner": budget.owner,
        "recipients": list(budget.recipients),
        "scope": list(cfg.scope),
        "amount": cfg.amount,
        "currency": cfg.currency,
        "type": cfg.type.value,
        "timeInterval": cfg.time_interval.value if cfg.type == BudgetType.RECURRING else "",
        "growthPerPeriod": cfg.growth_per_period,
        "usePrevSpend": cfg.use_prev_spend,
        "metric": cfg.metric,
        "startPeriod": cfg.start_period.isoformat() if cfg.start_period else None,
        "endPeriod": cfg.end_period.isoformat() if cfg.is_fixed and cfg.end_period else None,
        "currentUtilization": round(budget.utilization.current, 2),
        "forecastedUtilization": round(budget.utilization.forecasted, 2),
        "alerts": alerts,
    }
