"""Outbound notification port.

Delivery (email, chat, webhooks) lives outside the platform. The workflow
services only call :func:`dispatch` after their transaction has committed;
whatever the notifier does, the outcome of the operation stays the same.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

logger = logging.getLogger(__name__)

REQUEST_SUBMITTED = "request_submitted"
REQUEST_APPROVED = "request_approved"
REQUEST_REJECTED = "request_rejected"
DOCUMENT_UPLOADED = "document_uploaded"
DOCUMENT_ACCEPTED = "document_accepted"
DOCUMENT_REJECTED = "document_rejected"


class Notifier(Protocol):
    """Port for best-effort outbound messages triggered by transitions."""

    def notify(self, event: str, payload: dict[str, Any]) -> None:
        ...


class LoggingNotifier:
    """Default notifier: records the event in the log and delivers nothing."""

    def notify(self, event: str, payload: dict[str, Any]) -> None:
        logger.info("Notification %s: %s", event, payload)


_DEFAULT_NOTIFIER: Notifier = LoggingNotifier()


def dispatch(notifier: Notifier | None, event: str, payload: dict[str, Any]) -> None:
    """Hand an event to *notifier*, logging and swallowing any failure."""
    target = notifier or _DEFAULT_NOTIFIER
    try:
        target.notify(event, payload)
    except Exception:
        logger.exception("Notifier failed for event %s", event)
