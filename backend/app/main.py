import logging
import os
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.errors import register_error_handlers
from app.routers import matches, requests, trips

# ─── Logging setup (file + console) ───
_LOG_DIR = Path(__file__).resolve().parent.parent / "logs"
_LOG_DIR.mkdir(exist_ok=True)

_log_level = getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)

logging.basicConfig(
    level=_log_level,
    format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    handlers=[
        logging.StreamHandler(),
        RotatingFileHandler(
            _LOG_DIR / "carryon.log",
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5,
            encoding="utf-8",
        ),
    ],
)

# Quiet noisy libraries
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logging.getLogger("apscheduler.executors.default").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


async def run_expire_sweep() -> int:
    """Expire pending matches whose traveler response window has closed."""
    from app.database import async_session_factory
    from app.services.booking_coordinator import booking_coordinator
    async with async_session_factory() as db:
        expired = await booking_coordinator.expire_stale(db)
        return len(expired)


async def run_trip_progress() -> dict:
    """Move departed trips to airborne and landed trips to arrived."""
    from app.database import async_session_factory
    from app.services.trip_service import trip_service
    async with async_session_factory() as db:
        return await trip_service.advance_trip_statuses(db)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup — launch background scheduler
    scheduler = None
    if settings.scheduler_enabled:
        from apscheduler.schedulers.asyncio import AsyncIOScheduler
        from apscheduler.triggers.interval import IntervalTrigger

        scheduler = AsyncIOScheduler()
        scheduler.add_job(
            run_expire_sweep,
            IntervalTrigger(minutes=settings.expire_sweep_interval_minutes),
            id="expire_stale_matches",
            max_instances=1,
            coalesce=True,
        )
        scheduler.add_job(
            run_trip_progress,
            IntervalTrigger(minutes=settings.trip_progress_interval_minutes),
            id="trip_progress",
            max_instances=1,
            coalesce=True,
        )
        scheduler.start()
        logger.info("Background scheduler started")

    yield

    # Shutdown
    if scheduler:
        scheduler.shutdown(wait=False)
        logger.info("Background scheduler stopped")


app = FastAPI(
    title="Carry-on",
    description="Request-to-trip matching and booking engine",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

app.include_router(trips.router, prefix="/api/trips", tags=["trips"])
app.include_router(requests.router, prefix="/api/requests", tags=["requests"])
app.include_router(matches.router, prefix="/api/matches", tags=["matches"])


@app.get("/api/health")
async def health_check():
    return {"status": "ok", "service": "carryon"}
