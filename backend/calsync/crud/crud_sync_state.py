from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from .. import models


def get_last_sync_time(db: Session, user_id: int) -> Optional[datetime]:
    row = (
        db.query(models.SyncState)
        .filter(models.SyncState.user_id == user_id)
        .first()
    )
    return row.last_sync_time if row else None


def advance_last_sync_time(db: Session, user_id: int, sync_time: datetime) -> datetime:
    """Move the cursor forward to ``sync_time``; never moves it backwards.

    Returns the stored value after the write.
    """
    row = (
        db.query(models.SyncState)
        .filter(models.SyncState.user_id == user_id)
        .first()
    )
    if row is None:
        row = models.SyncState(user_id=user_id, last_sync_time=sync_time)
        db.add(row)
    elif sync_time > row.last_sync_time:
        row.last_sync_time = sync_time
    db.commit()
    db.refresh(row)
    return row.last_sync_time
