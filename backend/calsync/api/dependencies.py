from functools import lru_cache
from typing import Optional

from fastapi import Header, HTTPException, status

from ..core.config import settings
from ..database import get_db  # noqa: F401 - re-exported for routers and tests
from ..services.event_service import EventService
from ..services.google_calendar import (
    GoogleCalendarClient,
    MirroringEnabled,
    build_remote_mirroring,
)
from ..services.oauth_client import GoogleOAuthClient
from ..services.sync_engine import SyncEngine


def get_current_user_id(x_user_id: Optional[str] = Header(default=None)) -> int:
    """Resolve the caller from the ``X-User-Id`` header set by the auth gateway."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
    )
    if not x_user_id:
        raise credentials_exception
    try:
        user_id = int(x_user_id)
    except ValueError:
        raise credentials_exception
    if user_id <= 0:
        raise credentials_exception
    return user_id


@lru_cache
def get_remote_mirroring():
    return build_remote_mirroring(settings)


@lru_cache
def get_event_service() -> EventService:
    return EventService(get_remote_mirroring(), settings)


@lru_cache
def get_oauth_client() -> GoogleOAuthClient:
    return GoogleOAuthClient(settings)


def get_calendar_client() -> Optional[GoogleCalendarClient]:
    mirroring = get_remote_mirroring()
    if isinstance(mirroring, MirroringEnabled):
        return mirroring.client
    return None


def get_sync_engine() -> Optional[SyncEngine]:
    client = get_calendar_client()
    if client is None:
        return None
    return SyncEngine(client, cfg=settings)
