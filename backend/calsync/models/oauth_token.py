from sqlalchemy import Column, Integer, String, Text

from .base import BaseModel
from .types import UTCDateTime


class OAuthToken(BaseModel):
    """Google OAuth credential; exactly one row per user."""

    __tablename__ = "google_tokens"

    user_id = Column(Integer, primary_key=True, autoincrement=False)
    access_token = Column(Text, nullable=False)
    # Google only returns a refresh token on the consent exchange
    refresh_token = Column(Text, nullable=True)
    token_type = Column(String(50), nullable=False, default="Bearer")
    expiry = Column(UTCDateTime, nullable=False)
