from .event import Event
from .oauth_token import OAuthToken
from .sync_state import SyncState

__all__ = [
    "Event",
    "OAuthToken",
    "SyncState",
]
