"""Typed adapter over the Google Calendar v3 events API.

Everything that crosses the wire is converted to :class:`RemoteEvent` here so
the sync engine never touches raw API dictionaries.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Any, Callable, Dict, List, Optional, TypeVar, Union

import httplib2
from google.auth.exceptions import RefreshError
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..models import Event
from ..utils.errors import AuthExpired, InvalidArgument, RemoteUnavailable
from ..utils.timeutils import parse_timestamp, to_rfc3339
from .oauth_client import GoogleOAuthClient

logger = logging.getLogger(__name__)

CANCELLED = "cancelled"

_T = TypeVar("_T")


def parse_event_time(value: Optional[Dict[str, Any]], field: str) -> tuple[datetime, bool]:
    """Parse a Google ``EventDateTime``.

    Returns ``(instant, all_day)``. All-day ``date`` values become midnight UTC.
    """
    if not value:
        raise InvalidArgument(f"remote event has no {field}", field=field)
    if value.get("dateTime"):
        return parse_timestamp(value["dateTime"], field=field), False
    if value.get("date"):
        try:
            day = date.fromisoformat(value["date"])
        except ValueError as exc:
            raise InvalidArgument(f"invalid remote {field} date: {value['date']!r}", field=field) from exc
        return datetime.combine(day, time.min, tzinfo=timezone.utc), True
    raise InvalidArgument(f"remote {field} has neither date nor dateTime", field=field)


@dataclass(frozen=True)
class RemoteEvent:
    id: str
    status: str
    summary: str
    description: Optional[str]
    start: Optional[datetime]
    end: Optional[datetime]
    all_day: bool = False
    updated: Optional[datetime] = None

    @property
    def cancelled(self) -> bool:
        return self.status == CANCELLED

    @classmethod
    def from_api(cls, item: Dict[str, Any]) -> "RemoteEvent":
        event_id = item.get("id")
        if not event_id:
            raise InvalidArgument("remote event has no id", field="id")
        status = item.get("status") or "confirmed"
        updated = parse_timestamp(item["updated"], field="updated") if item.get("updated") else None
        if status == CANCELLED:
            # Cancelled stubs usually carry nothing but the id
            return cls(
                id=event_id,
                status=status,
                summary=item.get("summary") or "",
                description=item.get("description"),
                start=None,
                end=None,
                updated=updated,
            )
        start, all_day = parse_event_time(item.get("start"), "start")
        end, _ = parse_event_time(item.get("end"), "end")
        if start > end:
            raise InvalidArgument(f"remote event {event_id} ends before it starts", field="end")
        return cls(
            id=event_id,
            status=status,
            summary=item.get("summary") or "",
            description=item.get("description") or None,
            start=start,
            end=end,
            all_day=all_day,
            updated=updated,
        )


def event_body(event: Event) -> Dict[str, Any]:
    """Request body for insert/update.

    Times go out as UTC RFC3339 with an explicit zone; Google does any
    display conversion.
    """
    return {
        "summary": event.title,
        "description": event.description or "",
        "start": {"dateTime": to_rfc3339(event.start_time), "timeZone": "UTC"},
        "end": {"dateTime": to_rfc3339(event.end_time), "timeZone": "UTC"},
    }


class GoogleCalendarClient:
    """Event CRUD and listing against one calendar of the user's account."""

    def __init__(
        self,
        oauth: Optional[GoogleOAuthClient] = None,
        cfg: Optional[Settings] = None,
    ) -> None:
        self.settings = cfg or default_settings
        self.oauth = oauth or GoogleOAuthClient(self.settings)
        self.calendar_id = self.settings.GOOGLE_CALENDAR_ID or "primary"

    def _service(self, db: Session, user_id: int) -> Any:
        creds = self.oauth.get_credentials(db, user_id)
        return build("calendar", "v3", credentials=creds, cache_discovery=False)

    def _execute(self, what: str, call: Callable[[], _T]) -> _T:
        try:
            return call()
        except RefreshError as exc:
            # the authorized transport refreshed mid-request and Google refused
            raise AuthExpired(f"Google rejected the credential during {what}: {exc}") from exc
        except HttpError as exc:
            raise RemoteUnavailable(f"Google Calendar {what} failed: {exc}") from exc
        except (httplib2.HttpLib2Error, OSError) as exc:
            raise RemoteUnavailable(f"Google Calendar {what} failed: {exc}") from exc

    def create_event(self, db: Session, user_id: int, event: Event) -> str:
        service = self._service(db, user_id)
        created = self._execute(
            "insert",
            lambda: service.events()
            .insert(calendarId=self.calendar_id, body=event_body(event))
            .execute(),
        )
        return created["id"]

    def update_event(self, db: Session, user_id: int, event: Event) -> None:
        if not event.google_event_id:
            raise InvalidArgument(f"event {event.id} has no Google event id")
        service = self._service(db, user_id)
        self._execute(
            "update",
            lambda: service.events()
            .patch(
                calendarId=self.calendar_id,
                eventId=event.google_event_id,
                body=event_body(event),
            )
            .execute(),
        )

    def delete_event(self, db: Session, user_id: int, google_event_id: str) -> None:
        """Delete the remote copy; an already-missing event counts as deleted."""
        if not google_event_id:
            raise InvalidArgument("missing Google event id")
        service = self._service(db, user_id)
        try:
            service.events().delete(
                calendarId=self.calendar_id, eventId=google_event_id
            ).execute()
        except RefreshError as exc:
            raise AuthExpired(f"Google rejected the credential during delete: {exc}") from exc
        except HttpError as exc:
            if exc.resp is not None and int(exc.resp.status) in (404, 410):
                logger.info(
                    "Google event %s already gone for user %s", google_event_id, user_id
                )
                return
            raise RemoteUnavailable(f"Google Calendar delete failed: {exc}") from exc
        except (httplib2.HttpLib2Error, OSError) as exc:
            raise RemoteUnavailable(f"Google Calendar delete failed: {exc}") from exc

    def list_events(
        self,
        db: Session,
        user_id: int,
        time_min: datetime,
        time_max: datetime,
        updated_min: Optional[datetime] = None,
    ) -> List[Dict[str, Any]]:
        """Return raw event items in the window, following pagination.

        Items are returned unparsed so the caller can isolate a single
        malformed item instead of losing the whole page.
        """
        service = self._service(db, user_id)
        params: Dict[str, Any] = {
            "calendarId": self.calendar_id,
            "timeMin": to_rfc3339(time_min),
            "timeMax": to_rfc3339(time_max),
            "singleEvents": True,
            "showDeleted": True,
            "orderBy": "updated",
        }
        if updated_min is not None:
            params["updatedMin"] = to_rfc3339(updated_min)

        items: List[Dict[str, Any]] = []
        page_token: Optional[str] = None
        while True:
            if page_token:
                params["pageToken"] = page_token
            page = self._execute("list", lambda: service.events().list(**params).execute())
            items.extend(page.get("items", []))
            page_token = page.get("nextPageToken")
            if not page_token:
                break
        return items


@dataclass(frozen=True)
class MirroringEnabled:
    client: GoogleCalendarClient


@dataclass(frozen=True)
class MirroringDisabled:
    reason: str = "Google Calendar is not configured"


RemoteMirroring = Union[MirroringEnabled, MirroringDisabled]


def build_remote_mirroring(cfg: Optional[Settings] = None) -> RemoteMirroring:
    cfg = cfg or default_settings
    if not cfg.google_configured:
        logger.warning("Google Calendar credentials not configured; mirroring disabled")
        return MirroringDisabled()
    return MirroringEnabled(GoogleCalendarClient(cfg=cfg))
