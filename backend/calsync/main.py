import logging
from typing import List

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .api import api_calendar, api_events
from .api.dependencies import get_sync_engine
from .core.config import settings
from .core.observability import setup_logging
from .database import Base, check_database_connection, engine
from .services.reminder_scheduler import ReminderScheduler
from .services.scheduler import PeriodicJob
from .utils.errors import CalendarError, calendar_error_response
from .utils.notifications import get_notifier
from . import models  # noqa: F401 - register tables on Base.metadata

# Configure logging before creating any loggers
setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Calendar Sync API")

_jobs: List[PeriodicJob] = []


@app.exception_handler(CalendarError)
async def calendar_error_handler(request: Request, exc: CalendarError):
    response = calendar_error_response(exc)
    return JSONResponse(status_code=response.status_code, content={"detail": response.detail})


api_prefix = settings.API_V1_STR

app.include_router(api_events.router, prefix=f"{api_prefix}")
app.include_router(api_calendar.router, prefix=f"{api_prefix}")


def build_background_jobs() -> List[PeriodicJob]:
    """Assemble the periodic jobs this deployment can run."""
    jobs: List[PeriodicJob] = []
    notifier = get_notifier()
    if notifier is None:
        logger.warning("No reminder notifier registered; reminder scan not started")
    else:
        reminders = ReminderScheduler(notifier, cfg=settings)
        jobs.append(
            PeriodicJob("reminder-scan", reminders.tick, settings.REMINDER_INTERVAL_SECONDS)
        )
    sync_engine = get_sync_engine()
    if sync_engine is None:
        logger.warning("Google Calendar not integrated; periodic sync not started")
    else:
        jobs.append(
            PeriodicJob(
                "calendar-sync",
                sync_engine.sync_all_users,
                settings.SYNC_INTERVAL_SECONDS,
                run_immediately=True,
            )
        )
    return jobs


@app.on_event("startup")
def init_database() -> None:
    """Connect to the database; failing here aborts startup."""
    check_database_connection()
    Base.metadata.create_all(bind=engine)


@app.on_event("startup")
async def start_background_tasks() -> None:
    """Launch the reminder scan and Google sync sweep."""
    if not settings.ENABLE_BACKGROUND_JOBS:
        logger.info("Background jobs disabled by configuration")
        return
    _jobs.extend(build_background_jobs())
    for job in _jobs:
        job.start()


@app.on_event("shutdown")
async def stop_background_tasks() -> None:
    for job in _jobs:
        await job.stop()
    _jobs.clear()


@app.get("/health")
def health():
    return {"status": "ok"}
