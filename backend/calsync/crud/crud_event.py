from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from .. import models


def create_event(
    db: Session,
    user_id: int,
    title: str,
    description: Optional[str],
    start_time: datetime,
    end_time: datetime,
    google_event_id: Optional[str] = None,
) -> models.Event:
    db_obj = models.Event(
        user_id=user_id,
        title=title,
        description=description,
        start_time=start_time,
        end_time=end_time,
        google_event_id=google_event_id,
        reminder_sent=False,
    )
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj


def get_event(db: Session, user_id: int, event_id: str) -> Optional[models.Event]:
    """Return the event only when it belongs to ``user_id``."""
    return (
        db.query(models.Event)
        .filter(models.Event.id == event_id, models.Event.user_id == user_id)
        .first()
    )


def get_event_by_google_id(
    db: Session, user_id: int, google_event_id: str
) -> Optional[models.Event]:
    return (
        db.query(models.Event)
        .filter(
            models.Event.user_id == user_id,
            models.Event.google_event_id == google_event_id,
        )
        .first()
    )


def get_events_between(
    db: Session,
    user_id: int,
    start: datetime,
    end: datetime,
    inclusive_end: bool = False,
) -> List[models.Event]:
    """Events whose start falls in ``[start, end)`` (or ``[start, end]``)."""
    upper = (
        models.Event.start_time <= end
        if inclusive_end
        else models.Event.start_time < end
    )
    return (
        db.query(models.Event)
        .filter(
            models.Event.user_id == user_id,
            models.Event.start_time >= start,
            upper,
        )
        .order_by(models.Event.start_time.asc())
        .all()
    )


def update_event_fields(
    db: Session,
    db_event: models.Event,
    title: str,
    description: Optional[str],
    start_time: datetime,
    end_time: datetime,
) -> models.Event:
    if db_event.start_time != start_time:
        # Rescheduled events get a fresh reminder
        db_event.reminder_sent = False
    db_event.title = title
    db_event.description = description
    db_event.start_time = start_time
    db_event.end_time = end_time
    db.commit()
    db.refresh(db_event)
    return db_event


def set_google_event_id(
    db: Session, db_event: models.Event, google_event_id: str
) -> models.Event:
    db_event.google_event_id = google_event_id
    db.commit()
    db.refresh(db_event)
    return db_event


def delete_event(db: Session, db_event: models.Event) -> None:
    db.delete(db_event)
    db.commit()


def get_due_reminders(
    db: Session, window_start: datetime, window_end: datetime
) -> List[models.Event]:
    """Events of every user starting within the window and not yet reminded."""
    return (
        db.query(models.Event)
        .filter(
            models.Event.reminder_sent.is_(False),
            models.Event.start_time >= window_start,
            models.Event.start_time <= window_end,
        )
        .order_by(models.Event.start_time.asc())
        .all()
    )


def mark_reminder_sent(
    db: Session, event_id: str, start_time: Optional[datetime] = None
) -> bool:
    """Flag the reminder as delivered.

    With ``start_time`` the flag is only set while the event still starts at
    the notified instant; a concurrent reschedule keeps its fresh reminder.
    Returns False when no row matched.
    """
    query = db.query(models.Event).filter(models.Event.id == event_id)
    if start_time is not None:
        query = query.filter(models.Event.start_time == start_time)
    updated = query.update(
        {models.Event.reminder_sent: True}, synchronize_session=False
    )
    db.commit()
    return bool(updated)
