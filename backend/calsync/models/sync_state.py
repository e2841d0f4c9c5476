from sqlalchemy import Column, Integer

from .base import BaseModel
from .types import UTCDateTime


class SyncState(BaseModel):
    """Per-user watermark of the last successful Google pull."""

    __tablename__ = "google_sync_state"

    user_id = Column(Integer, primary_key=True, autoincrement=False)
    last_sync_time = Column(UTCDateTime, nullable=False)

    def __repr__(self):
        return f"<SyncState(user_id={self.user_id}, last_sync_time={self.last_sync_time})>"
