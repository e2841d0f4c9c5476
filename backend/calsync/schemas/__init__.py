from .event import (
    EventBase,
    EventCreate,
    EventUpdate,
    EventResponse,
    DeleteRangeResponse,
    SyncResultResponse,
)
