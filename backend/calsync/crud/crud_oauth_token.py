from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from .. import models


def get_token(db: Session, user_id: int) -> Optional[models.OAuthToken]:
    return (
        db.query(models.OAuthToken)
        .filter(models.OAuthToken.user_id == user_id)
        .first()
    )


def save_token(
    db: Session,
    user_id: int,
    access_token: str,
    refresh_token: Optional[str],
    token_type: str,
    expiry: datetime,
) -> models.OAuthToken:
    """Insert or overwrite the user's credential.

    A missing ``refresh_token`` keeps the stored one; Google omits it on
    refresh and on repeat consents.
    """
    db_obj = get_token(db, user_id)
    if db_obj is None:
        db_obj = models.OAuthToken(user_id=user_id)
        db.add(db_obj)
    db_obj.access_token = access_token
    if refresh_token:
        db_obj.refresh_token = refresh_token
    db_obj.token_type = token_type or "Bearer"
    db_obj.expiry = expiry
    db.commit()
    db.refresh(db_obj)
    return db_obj


def get_user_ids_with_tokens(db: Session) -> List[int]:
    rows = (
        db.query(models.OAuthToken.user_id)
        .order_by(models.OAuthToken.user_id.asc())
        .all()
    )
    return [row[0] for row in rows]
