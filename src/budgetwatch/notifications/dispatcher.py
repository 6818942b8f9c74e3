"""Notification dispatcher.

Builds the :class:`BudgetNotification` record for a fired alert, persists it
with an explicit fetch → merge → write step that preserves the original
``created`` timestamp, and hands recipient-shaped payloads to the delivery
sinks.

Delivery is best effort: a failing sink is logged and never undoes the
already-committed alert state.

Example
-------
>>> dispatcher = NotificationDispatcher(store)
>>> result = dispatcher.dispatch_threshold(budget, now)
>>> result.notification.created == now
True
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable

from budgetwatch.alerts.state import select_alert
from budgetwatch.budget.models import Budget, BudgetNotification, NotificationType
from budgetwatch.config import DEFAULT_NOTIFICATION_TTL_DAYS, EngineSettings
from budgetwatch.errors import BudgetError
from budgetwatch.notifications.personalization import (
    ChatMessage,
    EmailPersonalization,
    budget_event_payload,
    forecast_email,
    format_number,
    threshold_chat,
    threshold_email,
)
from budgetwatch.notifications.sinks import ChatSink, EmailSink, EventSink, LoggingSink
from budgetwatch.store.base import BudgetStore

logger = logging.getLogger(__name__)

EVENT_THRESHOLD_ACHIEVED = "budget.threshold.achieved"


@dataclass
class DispatchResult:
    """Everything produced while dispatching one budget's alert.

    Attributes
    ----------
    notification:
        The saved record, or ``None`` when saving failed.
    emails:
        Email personalizations handed to the email sink.
    chat:
        Chat message handed to the chat sink, if any.
    event_dispatched:
        ``True`` when the event sink accepted the budget event.
    errors:
        Messages for every step that failed.
    """

    budget_id: str
    notification_type: NotificationType
    notification: BudgetNotification | None = None
    emails: list[EmailPersonalization] = field(default_factory=list)
    chat: ChatMessage | None = None
    event_dispatched: bool = False
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


# ---------------------------------------------------------------------------
# Record building
# ---------------------------------------------------------------------------


def build_notification(
    budget: Budget,
    notification_type: NotificationType,
    now: datetime,
    ttl_days: int = DEFAULT_NOTIFICATION_TTL_DAYS,
) -> BudgetNotification:
    """Build a fresh notification record for ``budget`` as of ``now``."""
    cfg = budget.config
    if cfg is None:
        raise ValueError(f"Budget '{budget.id}' has no config")

    selected = select_alert(budget)
    return BudgetNotification(
        budget_id=budget.id,
        type=notification_type,
        name=budget.name,
        customer_id=budget.customer_id,
        alert_date=now,
        created=now,
        expire_by=now + timedelta(days=ttl_days),
        alert_amount=format_number(selected.amount_for(cfg.amount)),
        alert_percentage=selected.percentage,
        currency_symbol=cfg.currency_symbol,
        current_amount=format_number(budget.utilization.current),
        current_percentage=budget.utilization_percentage,
        forecasted_date=budget.utilization.forecasted_total_amount_date,
        recipients=list(budget.recipients),
    )


def merge_created(
    notification: BudgetNotification,
    existing: BudgetNotification | None,
    now: datetime,
    ttl_days: int = DEFAULT_NOTIFICATION_TTL_DAYS,
) -> BudgetNotification:
    """Carry the ``created`` timestamp of a live existing record forward.

    ``expire_by`` is the record's store TTL: a record past it counts as
    deleted even when the store has not purged it yet, so the new record
    starts a fresh ``created``/``expire_by`` window.
    """
    if existing is None or existing.expire_by <= now:
        return notification
    return notification.model_copy(
        update={
            "created": existing.created,
            "expire_by": existing.created + timedelta(days=ttl_days),
        }
    )


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------


class NotificationDispatcher:
    """Persists notification records and feeds the delivery sinks.

    Parameters
    ----------
    store:
        Store holding notification records.
    email_sink, chat_sink, event_sink:
        Delivery collaborators.  Each defaults to a :class:`LoggingSink`.
    settings:
        Engine settings (TTL, recipient filtering, console domain).
    """

    def __init__(
        self,
        store: BudgetStore,
        email_sink: EmailSink | None = None,
        chat_sink: ChatSink | None = None,
        event_sink: EventSink | None = None,
        settings: EngineSettings | None = None,
    ) -> None:
        fallback = LoggingSink()
        self._store = store
        self._email_sink = email_sink or fallback
        self._chat_sink = chat_sink or fallback
        self._event_sink = event_sink or fallback
        self._settings = settings or EngineSettings()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def save(self, notification: BudgetNotification, now: datetime) -> BudgetNotification:
        """Fetch any existing record, merge its ``created`` time, then write.

        Raises
        ------
        BudgetPersistenceError:
            When the store cannot write the record.
        """
        existing = self._store.get_notification(notification.budget_id, notification.type)
        merged = merge_created(notification, existing, now, self._settings.notification_ttl_days)
        self._store.set_notification(merged)
        return merged

    def dispatch_threshold(self, budget: Budget, now: datetime) -> DispatchResult:
        """Send a threshold alert: email, record, event, then chat."""
        result = DispatchResult(budget_id=budget.id, notification_type=NotificationType.THRESHOLD)

        result.emails = threshold_email(budget, self._settings)
        if result.emails:
            self._deliver(result, "email", lambda: self._email_sink.send(result.emails))
        else:
            logger.info("No email recipients for budget %s threshold alert", budget.id)

        self._save(result, budget, now)

        payload = budget_event_payload(budget)
        result.event_dispatched = self._deliver(
            result,
            "event",
            lambda: self._event_sink.dispatch(payload, budget.customer_id, budget.id, EVENT_THRESHOLD_ACHIEVED),
        )

        result.chat = threshold_chat(budget, self._settings)
        if result.chat is not None:
            chat = result.chat
            self._deliver(result, "chat", lambda: self._chat_sink.post(chat))

        return result

    def dispatch_forecast(self, budget: Budget, now: datetime) -> DispatchResult:
        """Send a forecast-date alert: record, then email."""
        result = DispatchResult(budget_id=budget.id, notification_type=NotificationType.FORECAST)

        self._save(result, budget, now)

        result.emails = forecast_email(budget, self._settings)
        if result.emails:
            self._deliver(result, "email", lambda: self._email_sink.send(result.emails))

        return result

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _save(self, result: DispatchResult, budget: Budget, now: datetime) -> None:
        notification = build_notification(
            budget, result.notification_type, now, self._settings.notification_ttl_days
        )
        try:
            result.notification = self.save(notification, now)
        except BudgetError as exc:
            logger.warning(
                "Unable to save %s notification for budget %s: %s",
                result.notification_type.value,
                budget.id,
                exc,
            )
            result.errors.append(f"save: {exc}")

    def _deliver(self, result: DispatchResult, channel: str, send: Callable[[], None]) -> bool:
        try:
            send()
        except Exception as exc:
            logger.exception(
                "Failed to deliver %s alert for budget %s via %s",
                result.notification_type.value,
                result.budget_id,
                channel,
            )
            result.errors.append(f"{channel}: {exc}")
            return False
        return True
