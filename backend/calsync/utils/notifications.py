"""Reminder wording and the hook to the messaging transport.

Delivery itself belongs to the embedding application, which registers a
callable with :func:`set_notifier`. The callable must raise when delivery
fails so the reminder is retried on the next scan.
"""

from __future__ import annotations

import logging
from datetime import datetime, tzinfo
from typing import Callable, Optional

logger = logging.getLogger(__name__)

Notifier = Callable[[int, str], None]

_notifier: Optional[Notifier] = None


def set_notifier(notifier: Optional[Notifier]) -> None:
    global _notifier
    _notifier = notifier


def get_notifier() -> Optional[Notifier]:
    return _notifier


def format_reminder_message(
    title: str, start_time: datetime, description: Optional[str], tz: tzinfo
) -> str:
    """Return the text sent to the user ahead of an event."""
    local_start = start_time.astimezone(tz).strftime("%H:%M")
    message = f"⏰ Reminder: '{title}' starts at {local_start}"
    if description:
        message += f"\nDescription: {description}"
    return message


def alert_scheduler_failure(exc: Exception) -> None:
    """Emit an error log when a background scheduler run fails."""
    logger.exception("Scheduler run failed: %s", exc)
