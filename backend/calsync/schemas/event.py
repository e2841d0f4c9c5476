from pydantic import BaseModel, Field
from typing import Optional, Annotated
from datetime import datetime


class EventBase(BaseModel):
  title: Annotated[str, Field(min_length=1, max_length=255)]
  description: Optional[str] = None


class EventCreate(EventBase):
  # Kept as strings so offset-less or malformed values reach the service
  # validation and come back as ``invalid_argument``.
  start_time: str
  end_time: str


class EventUpdate(BaseModel):
  """Partial update; omitted fields keep their stored value.

  An explicit ``"description": null`` clears the description.
  """
  title: Optional[Annotated[str, Field(min_length=1, max_length=255)]] = None
  description: Optional[str] = None
  start_time: Optional[str] = None
  end_time: Optional[str] = None


class EventResponse(EventBase):
  id: str
  user_id: int
  start_time: datetime
  end_time: datetime
  created_at: datetime
  reminder_sent: bool
  google_event_id: Optional[str] = None

  model_config = {"from_attributes": True}


class DeleteRangeResponse(BaseModel):
  deleted: int


class SyncResultResponse(BaseModel):
  user_id: int
  first_sync: bool
  cursor: datetime
  fetched: int
  created: int
  updated: int
  deleted: int
  unchanged: int
  failed: int

  model_config = {"from_attributes": True}
