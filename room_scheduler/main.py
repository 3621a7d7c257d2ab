import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import config
from .controllers import courses, invitations, recordings, rooms
from .database import AcademicSessionLocal, init_db
from .dependencies import get_calendar_service, get_email_service
from .services.invitation_service import InvitationService

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Virtual Classroom Room Scheduler")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


async def reconcile_calendars():
    """Scheduled pass: cancel stale occurrences for every course with a recurring event."""
    db = AcademicSessionLocal()
    try:
        service = InvitationService(db, get_calendar_service(), get_email_service())
        cancelled = await service.sync_all_calendars()
        logger.info("Scheduled calendar sync cancelled %d occurrence(s)", cancelled)
    finally:
        db.close()


@app.on_event("startup")
def on_startup():
    init_db()
    app.state.scheduler = AsyncIOScheduler()
    if config.SYNC_INTERVAL_MINUTES > 0:
        app.state.scheduler.add_job(
            reconcile_calendars,
            "interval",
            minutes=config.SYNC_INTERVAL_MINUTES,
            id="calendar-sync",
            max_instances=1,
            coalesce=True,
        )
    app.state.scheduler.start()
    logger.info("Routes: %s", ", ".join(sorted(route.path for route in app.routes)))


@app.on_event("shutdown")
async def shutdown():
    app.state.scheduler.shutdown()


app.include_router(rooms.router)
app.include_router(invitations.router)
app.include_router(recordings.router)
app.include_router(courses.router)
