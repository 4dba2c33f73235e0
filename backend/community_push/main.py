"""
FastAPI app entrypoint.

Notification settings and device registration API, plus the background notification
worker and the reminder timers (APScheduler on the same event loop).
"""
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load .env from backend/ before any app code
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from community_push.api.routes import internal, notification_settings, push
from community_push.config import settings
from community_push.services.container import build_services

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.start()
    services = build_services(scheduler)
    app.state.scheduler = scheduler
    app.state.services = services
    if services.worker is not None:
        services.worker.start()
    if settings.disable_timers:
        logger.info("DISABLE_TIMERS is set; reminder timers will not be armed")
    logger.info("Community push service ready (env=%s)", settings.env)
    yield
    if services.worker is not None:
        await services.worker.stop()
    services.reminders.shutdown()
    scheduler.shutdown(wait=False)


app = FastAPI(title="Community Push", version="0.1.0", lifespan=lifespan)

# CORS: dev origins + optional CORS_ORIGINS env (comma-separated)
_cors_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_cors_extra = os.getenv("CORS_ORIGINS", "")
if _cors_extra:
    _cors_origins.extend(o.strip() for o in _cors_extra.split(",") if o.strip())
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(notification_settings.router, tags=["notification-settings"])
app.include_router(push.router, tags=["push"])
app.include_router(internal.router, tags=["internal"])


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
