"""Delivery sink contracts and reference implementations.

Sinks receive finished payloads and own transport, retries and formatting.
The dispatcher never lets a sink failure escape: errors are logged and the
next budget is processed.

Two implementations ship with the package:

- :class:`LoggingSink` — writes every payload to the Python logger.  Used
  when no transport is configured.
- :class:`WebhookChatSink` — POSTs chat messages as JSON to a webhook URL
  (Slack/Teams compatible block payload).
"""
from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from budgetwatch.errors import DeliveryError

if TYPE_CHECKING:
    from budgetwatch.notifications.personalization import ChatMessage, EmailPersonalization

logger = logging.getLogger(__name__)


class EmailSink(ABC):
    @abstractmethod
    def send(self, personalizations: list["EmailPersonalization"]) -> None:
        """Hand email personalizations over for rendering and delivery."""


class ChatSink(ABC):
    @abstractmethod
    def post(self, message: "ChatMessage") -> None:
        """Post a chat message to every channel it lists."""


class EventSink(ABC):
    @abstractmethod
    def dispatch(
        self,
        payload: dict[str, object],
        customer_id: str,
        budget_id: str,
        event_type: str,
    ) -> None:
        """Publish a budget event keyed by ``(customer_id, budget_id, event_type)``."""


class LoggingSink(EmailSink, ChatSink, EventSink):
    """Logs every payload instead of delivering it."""

    def send(self, personalizations: list["EmailPersonalization"]) -> None:
        for p in personalizations:
            logger.info("EMAIL [%s] to %s: %s", p.template, ", ".join(p.to), p.data.get("subject", ""))

    def post(self, message: "ChatMessage") -> None:
        channels = ", ".join(c.name or c.id for c in message.channels)
        logger.info("CHAT budget %s to %s: %s", message.budget_id, channels, message.text)

    def dispatch(
        self,
        payload: dict[str, object],
        customer_id: str,
        budget_id: str,
        event_type: str,
    ) -> None:
        logger.info("EVENT %s for budget %s (customer %s)", event_type, budget_id, customer_id)


class WebhookChatSink(ChatSink):
    """POSTs chat messages to a webhook URL.

    Parameters
    ----------
    webhook_url:
        Incoming-webhook URL of the chat workspace.
    timeout_seconds:
        HTTP request timeout in seconds (default: 5).
    """

    def __init__(self, webhook_url: str, timeout_seconds: float = 5.0) -> None:
        self._webhook_url = webhook_url
        self._timeout = timeout_seconds

    def post(self, message: "ChatMessage") -> None:
        payload = json.dumps(
            {
                "text": message.text,
                "blocks": message.blocks,
                "channels": [c.id for c in message.channels],
            }
        ).encode("utf-8")
        req = urllib.request.Request(
            self._webhook_url,
            data=payload,
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        try:
            with urllib.request.urlopen(req, timeout=self._timeout):  # noqa: S310
                pass
        except (urllib.error.URLError, OSError) as exc:
            raise DeliveryError(f"Chat webhook delivery failed for budget {message.budget_id}: {exc}") from exc
