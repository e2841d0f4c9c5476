from __future__ import annotations

import logging
from datetime import timedelta
from typing import Dict, Optional

from ..core.config import Settings, settings as default_settings
from ..crud import crud_event
from ..database import SessionLocal, get_db_session
from ..utils.notifications import Notifier, format_reminder_message
from ..utils.timeutils import utcnow

logger = logging.getLogger(__name__)


class ReminderScheduler:
    """Notifies owners of events starting soon.

    Delivery is at-least-once: the ``reminder_sent`` flag is only set after
    the notifier returned, so a failed send is retried on the next tick and
    a crash between send and flag write can produce a duplicate.
    """

    def __init__(
        self,
        notify: Notifier,
        session_factory=SessionLocal,
        cfg: Optional[Settings] = None,
        clock=utcnow,
    ) -> None:
        self.notify = notify
        self.session_factory = session_factory
        self.settings = cfg or default_settings
        self.clock = clock

    @property
    def lookahead(self) -> timedelta:
        return timedelta(minutes=self.settings.REMINDER_LOOKAHEAD_MINUTES)

    def tick(self) -> Dict[str, int]:
        now = self.clock()
        tz = self.settings.calendar_tz
        results = {"due": 0, "sent": 0, "failed": 0}
        with get_db_session(self.session_factory) as db:
            due = [
                (
                    event.id,
                    event.user_id,
                    event.start_time,
                    format_reminder_message(event.title, event.start_time, event.description, tz),
                )
                for event in crud_event.get_due_reminders(db, now, now + self.lookahead)
            ]
            results["due"] = len(due)
            for event_id, user_id, start_time, message in due:
                try:
                    self.notify(user_id, message)
                except Exception as exc:  # noqa: BLE001 - retried on the next tick
                    results["failed"] += 1
                    logger.error(
                        "Failed to send reminder for event %s to user %s: %s",
                        event_id,
                        user_id,
                        exc,
                    )
                    continue
                try:
                    flagged = crud_event.mark_reminder_sent(db, event_id, start_time)
                except Exception as exc:  # noqa: BLE001 - event will be reminded again
                    db.rollback()
                    logger.error(
                        "Reminder for event %s sent but flag not saved: %s", event_id, exc
                    )
                    continue
                if not flagged:
                    logger.info(
                        "Event %s moved or vanished while its reminder was sent; not flagging",
                        event_id,
                    )
                results["sent"] += 1
        if results["due"]:
            logger.info("Reminder scan: %s", results)
        return results
