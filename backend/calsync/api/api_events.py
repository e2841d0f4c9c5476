from datetime import timedelta
from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from .. import schemas
from ..utils.errors import InvalidArgument
from ..utils.timeutils import day_bounds, parse_date
from ..services.event_service import EventService
from .dependencies import get_current_user_id, get_db, get_event_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["events"])


def _day_range(
    service: EventService, start_date: str, end_date: str
) -> tuple:
    """UTC bounds covering the inclusive day range in the calendar timezone."""
    first = parse_date(start_date, "start_date")
    last = parse_date(end_date, "end_date")
    if first > last:
        raise InvalidArgument("start_date must not be after end_date", field="end_date")
    tz = service.settings.calendar_tz
    return day_bounds(first, tz)[0], day_bounds(last, tz)[1]


@router.post(
    "/events",
    response_model=schemas.EventResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_event(
    payload: schemas.EventCreate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    service: EventService = Depends(get_event_service),
):
    return service.create_event(
        db,
        user_id,
        payload.title,
        payload.description,
        payload.start_time,
        payload.end_time,
    )


@router.get("/events", response_model=List[schemas.EventResponse])
def list_events(
    date: Optional[str] = Query(default=None, description="YYYY-MM-DD"),
    start_date: Optional[str] = Query(default=None, description="YYYY-MM-DD, inclusive"),
    end_date: Optional[str] = Query(default=None, description="YYYY-MM-DD, inclusive"),
    upcoming_hours: Optional[int] = Query(default=None, ge=1, le=24 * 366),
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    service: EventService = Depends(get_event_service),
):
    if date:
        return service.list_by_day(db, user_id, parse_date(date))
    if start_date and end_date:
        start, end = _day_range(service, start_date, end_date)
        return service.list_by_range(db, user_id, start, end)
    if upcoming_hours:
        return service.list_upcoming(db, user_id, timedelta(hours=upcoming_hours))
    raise InvalidArgument("provide 'date', 'start_date' and 'end_date', or 'upcoming_hours'")


@router.get("/events/{event_id}", response_model=schemas.EventResponse)
def read_event(
    event_id: str,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    service: EventService = Depends(get_event_service),
):
    return service.get_event(db, user_id, event_id)


@router.patch("/events/{event_id}", response_model=schemas.EventResponse)
def update_event(
    event_id: str,
    payload: schemas.EventUpdate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    service: EventService = Depends(get_event_service),
):
    description = payload.description
    if description is None and "description" in payload.model_fields_set:
        # the service keeps a None description and clears an empty one
        description = ""
    return service.update_event(
        db,
        user_id,
        event_id,
        title=payload.title,
        description=description,
        start=payload.start_time,
        end=payload.end_time,
    )


@router.delete("/events/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_event(
    event_id: str,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    service: EventService = Depends(get_event_service),
):
    service.delete_event(db, user_id, event_id)


@router.delete("/events", response_model=schemas.DeleteRangeResponse)
def delete_events_in_range(
    start_date: str = Query(..., description="YYYY-MM-DD, inclusive"),
    end_date: str = Query(..., description="YYYY-MM-DD, inclusive"),
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    service: EventService = Depends(get_event_service),
):
    start, end = _day_range(service, start_date, end_date)
    deleted = service.delete_by_range(db, user_id, start, end)
    logger.info("Deleted %d events for user %s between %s and %s", deleted, user_id, start_date, end_date)
    return {"deleted": deleted}
