"""Event CRUD facade.

Local writes are authoritative. After a local write succeeds the change is
mirrored to Google Calendar when the deployment has mirroring configured and
the user has connected an account; mirror failures are logged, never raised.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..crud import crud_event, crud_oauth_token
from ..models import Event
from ..utils.errors import InvalidArgument, NotFound, PersistenceError
from ..utils.timeutils import day_bounds, parse_timestamp, utcnow
from .google_calendar import (
    GoogleCalendarClient,
    MirroringDisabled,
    RemoteMirroring,
)

logger = logging.getLogger(__name__)


def _validate_title(title: Optional[str]) -> str:
    if title is None or not title.strip():
        raise InvalidArgument("title must not be empty", field="title")
    title = title.strip()
    if len(title) > 255:
        raise InvalidArgument("title is longer than 255 characters", field="title")
    return title


def _validate_span(start: datetime, end: datetime) -> None:
    if start > end:
        raise InvalidArgument("start time must not be after end time", field="end_time")


class EventService:
    def __init__(
        self,
        mirroring: Optional[RemoteMirroring] = None,
        cfg: Optional[Settings] = None,
        clock=utcnow,
    ) -> None:
        self.mirroring = mirroring if mirroring is not None else MirroringDisabled()
        self.settings = cfg or default_settings
        self.clock = clock

    # ── mirroring ───────────────────────────────────────────────────────────

    def _remote_for(self, db: Session, user_id: int) -> Optional[GoogleCalendarClient]:
        """Return the Google client when this user's changes should be mirrored."""
        if isinstance(self.mirroring, MirroringDisabled):
            return None
        if crud_oauth_token.get_token(db, user_id) is None:
            logger.debug("User %s has no Google credential; not mirroring", user_id)
            return None
        return self.mirroring.client

    def _mirror_create(self, db: Session, event: Event) -> None:
        client = self._remote_for(db, event.user_id)
        if client is None:
            return
        try:
            remote_id = client.create_event(db, event.user_id, event)
        except Exception as exc:  # noqa: BLE001 - local write already committed
            logger.warning(
                "Failed to mirror new event %s for user %s to Google Calendar: %s",
                event.id,
                event.user_id,
                exc,
            )
            return
        try:
            crud_event.set_google_event_id(db, event, remote_id)
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning(
                "Mirrored event %s as Google event %s but could not save the remote id: %s",
                event.id,
                remote_id,
                exc,
            )
            return
        logger.info("Mirrored event %s for user %s as Google event %s", event.id, event.user_id, remote_id)

    def _mirror_update(self, db: Session, event: Event) -> None:
        client = self._remote_for(db, event.user_id)
        if client is None:
            return
        if not event.google_event_id:
            logger.warning(
                "Event %s for user %s has no Google event id; skipping remote update",
                event.id,
                event.user_id,
            )
            return
        try:
            client.update_event(db, event.user_id, event)
        except Exception as exc:  # noqa: BLE001 - local write already committed
            logger.warning(
                "Failed to mirror update of event %s (Google %s) for user %s: %s",
                event.id,
                event.google_event_id,
                event.user_id,
                exc,
            )

    def _mirror_delete(self, db: Session, user_id: int, event_id: str, google_event_id: Optional[str]) -> None:
        if not google_event_id:
            return
        client = self._remote_for(db, user_id)
        if client is None:
            return
        try:
            client.delete_event(db, user_id, google_event_id)
        except Exception as exc:  # noqa: BLE001 - local delete already committed
            logger.warning(
                "Failed to mirror delete of event %s (Google %s) for user %s: %s",
                event_id,
                google_event_id,
                user_id,
                exc,
            )

    # ── operations ──────────────────────────────────────────────────────────

    def create_event(
        self,
        db: Session,
        user_id: int,
        title: str,
        description: Optional[str],
        start: str | datetime,
        end: str | datetime,
    ) -> Event:
        title = _validate_title(title)
        start_time = parse_timestamp(start, "start_time")
        end_time = parse_timestamp(end, "end_time")
        _validate_span(start_time, end_time)
        try:
            event = crud_event.create_event(
                db, user_id, title, description or None, start_time, end_time
            )
        except SQLAlchemyError as exc:
            db.rollback()
            raise PersistenceError(f"failed to save event: {exc}") from exc
        logger.info("Created event %s for user %s", event.id, user_id)
        self._mirror_create(db, event)
        return event

    def get_event(self, db: Session, user_id: int, event_id: str) -> Event:
        event = crud_event.get_event(db, user_id, event_id)
        if event is None:
            raise NotFound(f"event {event_id} not found")
        return event

    def list_upcoming(self, db: Session, user_id: int, window: timedelta) -> List[Event]:
        if window < timedelta(0):
            raise InvalidArgument("window must not be negative", field="window")
        now = self.clock()
        return crud_event.get_events_between(db, user_id, now, now + window, inclusive_end=True)

    def list_by_day(self, db: Session, user_id: int, day: date) -> List[Event]:
        start, end = day_bounds(day, self.settings.calendar_tz)
        return crud_event.get_events_between(db, user_id, start, end)

    def list_by_range(
        self, db: Session, user_id: int, start: str | datetime, end: str | datetime
    ) -> List[Event]:
        range_start = parse_timestamp(start, "start")
        range_end = parse_timestamp(end, "end")
        _validate_span(range_start, range_end)
        return crud_event.get_events_between(db, user_id, range_start, range_end)

    def update_event(
        self,
        db: Session,
        user_id: int,
        event_id: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
        start: str | datetime | None = None,
        end: str | datetime | None = None,
    ) -> Event:
        event = self.get_event(db, user_id, event_id)
        new_title = _validate_title(title) if title is not None else event.title
        new_description = description if description is not None else event.description
        start_time = parse_timestamp(start, "start_time") if start is not None else event.start_time
        end_time = parse_timestamp(end, "end_time") if end is not None else event.end_time
        _validate_span(start_time, end_time)
        logger.info(
            "Updating event %s for user %s (Google %s) start %s -> %s",
            event.id,
            user_id,
            event.google_event_id,
            event.start_time.isoformat(),
            start_time.isoformat(),
        )
        try:
            event = crud_event.update_event_fields(
                db, event, new_title, new_description or None, start_time, end_time
            )
        except SQLAlchemyError as exc:
            db.rollback()
            raise PersistenceError(f"failed to update event {event_id}: {exc}") from exc
        self._mirror_update(db, event)
        return event

    def delete_event(self, db: Session, user_id: int, event_id: str) -> None:
        event = self.get_event(db, user_id, event_id)
        google_event_id = event.google_event_id
        try:
            crud_event.delete_event(db, event)
        except SQLAlchemyError as exc:
            db.rollback()
            raise PersistenceError(f"failed to delete event {event_id}: {exc}") from exc
        logger.info("Deleted event %s for user %s", event_id, user_id)
        self._mirror_delete(db, user_id, event_id, google_event_id)

    def delete_by_range(
        self, db: Session, user_id: int, start: str | datetime, end: str | datetime
    ) -> int:
        """Delete every event starting in ``[start, end)``; returns how many went."""
        events = self.list_by_range(db, user_id, start, end)
        event_ids = [event.id for event in events]
        deleted = 0
        for event_id in event_ids:
            try:
                self.delete_event(db, user_id, event_id)
            except Exception as exc:  # noqa: BLE001 - keep going through the batch
                logger.warning("Failed to delete event %s for user %s: %s", event_id, user_id, exc)
                continue
            deleted += 1
        return deleted
