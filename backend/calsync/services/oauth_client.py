"""Google OAuth handshake, signed state and token refresh."""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
import time
from datetime import datetime
from typing import Any, Optional

from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..crud import crud_oauth_token
from ..models import OAuthToken
from ..utils.errors import AuthExpired, AuthRequired, InvalidArgument, RemoteUnavailable
from ..utils.timeutils import as_utc, utcnow

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/calendar"]

AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
TOKEN_URI = "https://oauth2.googleapis.com/token"

_STATE_TTL = 600  # 10 minutes
_SIGNED_STATE_PREFIX = "sig:"


def _b64_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _b64_decode(value: str) -> bytes:
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(value + padding)


def encode_state(user_id: int, secret: str, callback_type: str = "web") -> str:
    """Return a short-lived HMAC-signed state embedding the user id.

    Payload shape: {"uid": <int>, "cb": <str>, "exp": epochSeconds}
    """
    exp = int(time.time()) + _STATE_TTL
    payload = json.dumps(
        {"uid": int(user_id), "cb": callback_type, "exp": exp}, separators=(",", ":")
    ).encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).digest()
    return f"{_SIGNED_STATE_PREFIX}{_b64_encode(payload)}.{_b64_encode(digest)}"


def decode_state(token: str, secret: str) -> int:
    """Verify the signed state and return the user id.

    Raises :class:`InvalidArgument` when the state is malformed, tampered
    with or expired.
    """
    if not token or not token.startswith(_SIGNED_STATE_PREFIX):
        raise InvalidArgument("state is not signed", field="state")
    try:
        encoded_payload, encoded_digest = token[len(_SIGNED_STATE_PREFIX) :].split(".", 1)
        payload = _b64_decode(encoded_payload)
        provided = _b64_decode(encoded_digest)
    except ValueError as exc:
        raise InvalidArgument("malformed state", field="state") from exc
    expected = hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).digest()
    if not hmac.compare_digest(expected, provided):
        raise InvalidArgument("bad state signature", field="state")
    try:
        data = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise InvalidArgument("bad state payload", field="state") from exc
    if int(data.get("exp") or 0) <= int(time.time()):
        raise InvalidArgument("state expired", field="state")
    uid = data.get("uid")
    if not isinstance(uid, int):
        raise InvalidArgument("state carries no user id", field="state")
    return uid


def _flow(cfg: Settings, flow_cls: type[Flow] | Any = Flow) -> Any:
    return flow_cls.from_client_config(
        {
            "web": {
                "client_id": cfg.GOOGLE_CLIENT_ID,
                "client_secret": cfg.GOOGLE_CLIENT_SECRET,
                "redirect_uris": [cfg.GOOGLE_REDIRECT_URI],
                "auth_uri": AUTH_URI,
                "token_uri": TOKEN_URI,
            }
        },
        scopes=SCOPES,
        redirect_uri=cfg.GOOGLE_REDIRECT_URI,
    )


def _expiry_of(creds: Any) -> datetime:
    # google-auth keeps ``expiry`` as naive UTC
    expiry = getattr(creds, "expiry", None)
    if expiry is None:
        return utcnow()
    return as_utc(expiry)


class GoogleOAuthClient:
    """Exchanges authorization codes and keeps stored access tokens fresh."""

    def __init__(self, cfg: Optional[Settings] = None) -> None:
        self.settings = cfg or default_settings

    def get_authorization_url(self, state: str) -> str:
        flow = _flow(self.settings)
        auth_url, _ = flow.authorization_url(
            access_type="offline",
            include_granted_scopes="true",
            prompt="consent",
            state=state,
        )
        return auth_url

    def authorization_url_for_user(self, user_id: int) -> str:
        return self.get_authorization_url(encode_state(user_id, self.settings.SECRET_KEY))

    def user_id_from_state(self, state: str) -> int:
        return decode_state(state, self.settings.SECRET_KEY)

    def exchange_code(self, db: Session, user_id: int, code: str) -> OAuthToken:
        """Exchange an OAuth code for tokens and store them."""
        flow = _flow(self.settings)
        try:
            flow.fetch_token(code=code)
        except Exception as exc:  # noqa: BLE001 - oauthlib and requests errors
            logger.error("Google OAuth code exchange failed for user %s: %s", user_id, exc)
            raise AuthRequired("authorization code was rejected; authorize again") from exc
        creds = flow.credentials
        if not creds.refresh_token:
            logger.warning("Google OAuth flow returned no refresh token for user %s", user_id)
        token = crud_oauth_token.save_token(
            db,
            user_id=user_id,
            access_token=creds.token,
            refresh_token=creds.refresh_token,
            token_type="Bearer",
            expiry=_expiry_of(creds),
        )
        logger.info("Stored Google credential for user %s", user_id)
        return token

    def has_credentials(self, db: Session, user_id: int) -> bool:
        return crud_oauth_token.get_token(db, user_id) is not None

    def get_credentials(self, db: Session, user_id: int) -> Credentials:
        """Return usable credentials for ``user_id``, refreshing if expired.

        Raises :class:`AuthRequired` when the user never authorized and
        :class:`AuthExpired` when Google rejects the refresh.
        """
        stored = crud_oauth_token.get_token(db, user_id)
        if stored is None:
            raise AuthRequired(f"user {user_id} has not connected Google Calendar")

        creds = Credentials(
            token=stored.access_token,
            refresh_token=stored.refresh_token,
            token_uri=TOKEN_URI,
            client_id=self.settings.GOOGLE_CLIENT_ID,
            client_secret=self.settings.GOOGLE_CLIENT_SECRET,
            scopes=SCOPES,
        )
        # google-auth compares against naive UTC
        creds.expiry = stored.expiry.replace(tzinfo=None)

        # google-auth treats tokens as expired shortly before ``expiry``
        if not creds.expired:
            return creds
        if not stored.refresh_token:
            raise AuthExpired(f"access token for user {user_id} expired and no refresh token is stored")
        try:
            creds.refresh(Request())
        except RefreshError as exc:
            logger.error("Failed to refresh Google token for user %s: %s", user_id, exc)
            raise AuthExpired(f"Google rejected the refresh for user {user_id}") from exc
        except TransportError as exc:
            raise RemoteUnavailable(f"token refresh for user {user_id} failed: {exc}") from exc

        if creds.token != stored.access_token:
            crud_oauth_token.save_token(
                db,
                user_id=user_id,
                access_token=creds.token,
                refresh_token=creds.refresh_token,
                token_type=stored.token_type,
                expiry=_expiry_of(creds),
            )
            logger.info("Refreshed Google access token for user %s", user_id)
        return creds
