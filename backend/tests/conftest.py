import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

from dotenv import load_dotenv
import pytest

os.environ.setdefault("PYTEST_RUN", "1")
# Load environment variables for tests
load_dotenv(Path(__file__).resolve().parents[1] / ".env.test")

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from calsync.models.base import BaseModel  # noqa: E402
from calsync.crud import crud_oauth_token  # noqa: E402


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    BaseModel.metadata.create_all(engine)
    return sessionmaker(bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def now():
    return datetime(2025, 1, 6, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
def connect_google(db):
    """Store a still-valid Google credential for a user."""

    def _connect(user_id: int, expiry: datetime | None = None):
        return crud_oauth_token.save_token(
            db,
            user_id=user_id,
            access_token=f"at-{user_id}",
            refresh_token=f"rt-{user_id}",
            token_type="Bearer",
            expiry=expiry or datetime.now(timezone.utc) + timedelta(hours=1),
        )

    return _connect
