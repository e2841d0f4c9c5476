from sqlalchemy import Column

from ..database import Base  # This is the same Base created by declarative_base()
from ..utils.timeutils import utcnow
from .types import UTCDateTime


class BaseModel(Base):
    __abstract__ = True

    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)
