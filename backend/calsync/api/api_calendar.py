import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from .. import schemas
from ..core.config import settings
from ..services.oauth_client import GoogleOAuthClient
from ..services.sync_engine import SyncEngine
from ..utils.errors import CalendarError, RemoteUnavailable
from .dependencies import get_current_user_id, get_db, get_oauth_client, get_sync_engine

logger = logging.getLogger(__name__)

router = APIRouter(tags=["google-calendar"])


def _frontend_redirect(status: str) -> RedirectResponse:
    return RedirectResponse(url=f"{settings.FRONTEND_URL}/calendar?calendarSync={status}")


@router.get("/google-calendar/status")
def google_calendar_status(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    oauth: GoogleOAuthClient = Depends(get_oauth_client),
):
    """Return whether the user has a connected Google Calendar."""
    return {"connected": oauth.has_credentials(db, user_id)}


@router.get("/google-calendar/connect")
def connect_google_calendar(
    user_id: int = Depends(get_current_user_id),
    oauth: GoogleOAuthClient = Depends(get_oauth_client),
):
    if not oauth.settings.google_configured:
        raise RemoteUnavailable("Google Calendar is not configured")
    return {"auth_url": oauth.authorization_url_for_user(user_id)}


@router.get("/google-calendar/callback")
def google_calendar_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    db: Session = Depends(get_db),
    oauth: GoogleOAuthClient = Depends(get_oauth_client),
):
    if error or not code:
        logger.error("Google OAuth returned an error: %s", error)
        return _frontend_redirect("error")
    try:
        user_id = oauth.user_id_from_state(state or "")
    except CalendarError as exc:
        logger.error("Invalid Google Calendar state value: %s", exc.message)
        return _frontend_redirect("error")
    try:
        oauth.exchange_code(db, user_id, code)
    except Exception as exc:  # noqa: BLE001
        logger.error(
            "Failed to exchange Google Calendar auth code for user %s: %s", user_id, exc, exc_info=True
        )
        return _frontend_redirect("error")
    return _frontend_redirect("success")


@router.post("/google-calendar/sync", response_model=schemas.SyncResultResponse)
def sync_google_calendar(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    engine: Optional[SyncEngine] = Depends(get_sync_engine),
):
    """Run one reconciliation pass for the caller right away."""
    if engine is None:
        raise RemoteUnavailable("Google Calendar is not configured")
    return engine.sync_user(db, user_id)
