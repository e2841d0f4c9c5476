from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from typing import Any, ClassVar
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import os


class Settings(BaseSettings):
    API_V1_STR: str = "/api/v1"

    # Signs the OAuth ``state`` parameter (provide a fallback for local development)
    SECRET_KEY: str = "fallback_secret_for_dev_only"

    # Database URL
    # Use an absolute path so running the app from different directories
    # (e.g., repo root or backend/) always resolves the same DB file.
    BASE_DIR: ClassVar[Path] = Path(__file__).resolve().parents[2]
    SQLALCHEMY_DATABASE_URL: str = f"sqlite:///{BASE_DIR / 'calendar.db'}"

    # Google OAuth / Calendar
    GOOGLE_CLIENT_ID: str = ""
    GOOGLE_CLIENT_SECRET: str = ""
    GOOGLE_REDIRECT_URI: str = "http://localhost:8000/api/v1/google-calendar/callback"
    GOOGLE_CALENDAR_ID: str = "primary"

    # Base frontend URL used for OAuth redirects
    FRONTEND_URL: str = "http://localhost:3000"

    # IANA zone used for day boundaries and reminder wording
    CALENDAR_TIMEZONE: str = "UTC"

    # Background jobs
    ENABLE_BACKGROUND_JOBS: bool = True
    SYNC_INTERVAL_SECONDS: int = 60
    REMINDER_INTERVAL_SECONDS: int = 20
    REMINDER_LOOKAHEAD_MINUTES: int = 60
    FIRST_SYNC_LOOKBACK_DAYS: int = 7
    SYNC_LOOKAHEAD_DAYS: int = 365

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        extra="ignore",
        env_file=os.getenv(
            "ENV_FILE", str(Path(__file__).resolve().parents[3] / ".env")
        ),
        case_sensitive=True,
    )

    @field_validator(
        "GOOGLE_CLIENT_ID",
        "GOOGLE_CLIENT_SECRET",
        "GOOGLE_CALENDAR_ID",
        "FRONTEND_URL",
        mode="before",
    )
    def strip_whitespace(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("CALENDAR_TIMEZONE")
    def known_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown timezone: {v}") from exc
        return v

    @property
    def calendar_tz(self) -> ZoneInfo:
        return ZoneInfo(self.CALENDAR_TIMEZONE)

    @property
    def google_configured(self) -> bool:
        return bool(self.GOOGLE_CLIENT_ID and self.GOOGLE_CLIENT_SECRET)


def load_settings() -> "Settings":
    return Settings(_env_file=os.getenv("ENV_FILE", str(Path(__file__).resolve().parents[3] / ".env")))


settings = load_settings()
