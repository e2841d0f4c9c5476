"""Pull-based reconciliation of Google Calendar into the local event store.

One pass per user:

1. resolve the cursor (first sync looks back a bounded window),
2. list remote items changed since the cursor,
3. apply each item (cancelled -> delete, unknown -> materialize,
   known -> overwrite with remote values),
4. advance the cursor to the instant the pass started.

Applying an item is idempotent, so a pass may safely be repeated with the
same cursor. A bad item is logged and skipped; it never holds the cursor back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..crud import crud_event, crud_oauth_token, crud_sync_state
from ..database import SessionLocal, get_db_session
from ..utils.errors import AuthRequired
from ..utils.timeutils import utcnow
from .google_calendar import GoogleCalendarClient, RemoteEvent

logger = logging.getLogger(__name__)

UNTITLED = "(no title)"


@dataclass
class SyncResult:
    user_id: int
    first_sync: bool
    cursor: datetime
    fetched: int = 0
    created: int = 0
    updated: int = 0
    deleted: int = 0
    unchanged: int = 0
    failed: int = 0

    def as_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "first_sync": self.first_sync,
            "cursor": self.cursor.isoformat(),
            "fetched": self.fetched,
            "created": self.created,
            "updated": self.updated,
            "deleted": self.deleted,
            "unchanged": self.unchanged,
            "failed": self.failed,
        }


class SyncEngine:
    def __init__(
        self,
        client: GoogleCalendarClient,
        session_factory=SessionLocal,
        cfg: Optional[Settings] = None,
        clock=utcnow,
    ) -> None:
        self.client = client
        self.session_factory = session_factory
        self.settings = cfg or default_settings
        self.clock = clock

    def apply_remote_item(self, db: Session, user_id: int, remote: RemoteEvent) -> str:
        """Reconcile one remote item; returns what happened to the local store."""
        local = crud_event.get_event_by_google_id(db, user_id, remote.id)

        if remote.cancelled:
            if local is None:
                return "unchanged"
            crud_event.delete_event(db, local)
            logger.info(
                "Deleted event %s for user %s after Google cancellation of %s",
                local.id,
                user_id,
                remote.id,
            )
            return "deleted"

        title = (remote.summary or UNTITLED)[:255]
        if local is None:
            created = crud_event.create_event(
                db,
                user_id,
                title,
                remote.description,
                remote.start,
                remote.end,
                google_event_id=remote.id,
            )
            logger.info(
                "Materialized Google event %s as %s for user %s", remote.id, created.id, user_id
            )
            return "created"

        if (
            local.title == title
            and local.description == remote.description
            and local.start_time == remote.start
            and local.end_time == remote.end
        ):
            return "unchanged"
        crud_event.update_event_fields(
            db, local, title, remote.description, remote.start, remote.end
        )
        logger.info("Updated event %s for user %s from Google %s", local.id, user_id, remote.id)
        return "updated"

    def sync_user(self, db: Session, user_id: int) -> SyncResult:
        """Run one reconciliation pass for ``user_id``.

        Raises :class:`AuthRequired` without touching the network when the
        user has no stored credential; listing failures propagate and leave
        the cursor untouched.
        """
        if crud_oauth_token.get_token(db, user_id) is None:
            raise AuthRequired(f"user {user_id} has not connected Google Calendar")

        now = self.clock()
        last_sync = crud_sync_state.get_last_sync_time(db, user_id)
        first_sync = last_sync is None
        if first_sync:
            lower_bound = now - timedelta(days=self.settings.FIRST_SYNC_LOOKBACK_DAYS)
            logger.info("No sync cursor for user %s; looking back to %s", user_id, lower_bound.isoformat())
        else:
            lower_bound = last_sync
        upper_bound = now + timedelta(days=self.settings.SYNC_LOOKAHEAD_DAYS)

        items = self.client.list_events(
            db,
            user_id,
            time_min=lower_bound,
            time_max=upper_bound,
            updated_min=None if first_sync else lower_bound,
        )
        result = SyncResult(user_id=user_id, first_sync=first_sync, cursor=now, fetched=len(items))
        logger.info(
            "Fetched %d Google events for user %s (%s .. %s)",
            len(items),
            user_id,
            lower_bound.isoformat(),
            upper_bound.isoformat(),
        )

        for item in items:
            try:
                outcome = self.apply_remote_item(db, user_id, RemoteEvent.from_api(item))
            except Exception as exc:  # noqa: BLE001 - one bad item must not block the cursor
                db.rollback()
                result.failed += 1
                logger.warning(
                    "Skipping Google event %s for user %s: %s",
                    item.get("id") if isinstance(item, dict) else item,
                    user_id,
                    exc,
                )
                continue
            setattr(result, outcome, getattr(result, outcome) + 1)

        result.cursor = crud_sync_state.advance_last_sync_time(db, user_id, now)
        logger.info("Google sync finished for user %s: %s", user_id, result.as_dict())
        return result

    def sync_all_users(self) -> Dict[str, int]:
        """One sweep over every user with a stored credential."""
        summary = {"users": 0, "synced": 0, "failed": 0}
        with get_db_session(self.session_factory) as db:
            user_ids = crud_oauth_token.get_user_ids_with_tokens(db)
        logger.info("Starting Google Calendar sync for %d users", len(user_ids))
        for user_id in user_ids:
            summary["users"] += 1
            with get_db_session(self.session_factory) as db:
                try:
                    self.sync_user(db, user_id)
                except Exception as exc:  # noqa: BLE001 - next user still gets synced
                    db.rollback()
                    summary["failed"] += 1
                    logger.error("Google Calendar sync failed for user %s: %s", user_id, exc)
                    continue
            summary["synced"] += 1
        return summary
