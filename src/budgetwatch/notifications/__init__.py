"""Notification records and delivery hand-off."""
from __future__ import annotations

from budgetwatch.notifications.dispatcher import (
    EVENT_THRESHOLD_ACHIEVED,
    DispatchResult,
    NotificationDispatcher,
    build_notification,
    merge_created,
)
from budgetwatch.notifications.personalization import ChatMessage, EmailPersonalization
from budgetwatch.notifications.sinks import ChatSink, EmailSink, EventSink, LoggingSink, WebhookChatSink

__all__ = [
    "EVENT_THRESHOLD_ACHIEVED",
    "ChatMessage",
    "ChatSink",
    "DispatchResult",
    "EmailPersonalization",
    "EmailSink",
    "EventSink",
    "LoggingSink",
    "NotificationDispatcher",
    "WebhookChatSink",
    "build_notification",
    "merge_created",
]
