import uuid

from sqlalchemy import Boolean, Column, Index, Integer, String, Text

from .base import BaseModel
from .types import UTCDateTime


def _new_event_id() -> str:
    return str(uuid.uuid4())


class Event(BaseModel):
    __tablename__ = "events"

    id = Column(String(36), primary_key=True, default=_new_event_id)
    user_id = Column(Integer, nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    start_time = Column(UTCDateTime, nullable=False, index=True)
    end_time = Column(UTCDateTime, nullable=False)
    reminder_sent = Column(Boolean, nullable=False, default=False)
    # Set once the event is mirrored to Google; only cleared by deleting the row.
    google_event_id = Column(String(255), nullable=True)

    __table_args__ = (
        Index("ix_events_user_google_event", "user_id", "google_event_id"),
        Index("ix_events_reminder_scan", "reminder_sent", "start_time"),
    )

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, user_id={self.user_id}, title={self.title!r})>"
