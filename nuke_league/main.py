"""FastAPI application entry point."""

import sys
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from loguru import logger

from nuke_league.config import settings

# Configure loguru
logger.remove()
logger.add(sys.stderr, level="DEBUG" if settings.DEBUG else "INFO")
logger.add("logs/app.log", rotation="10 MB", retention="7 days", level="INFO")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    logger.info("Starting {} ...", settings.APP_NAME)
    Path("logs").mkdir(exist_ok=True)

    from nuke_league.db.engine import create_all, engine
    await create_all()

    if settings.SCHEDULER_ENABLED:
        try:
            from nuke_league.scheduler.scheduler import start_scheduler
            start_scheduler()
        except Exception as e:
            logger.warning("Failed to start scheduler: {}", e)

    yield

    if settings.SCHEDULER_ENABLED:
        from nuke_league.scheduler.scheduler import stop_scheduler
        await stop_scheduler()

    await engine.dispose()
    logger.info("Application shutdown complete")


app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description="Daily trading league: stats sync, eligibility checks and hourly prize draws",
    lifespan=lifespan,
)

from nuke_league.api.v1.router import api_router  # noqa: E402
app.include_router(api_router, prefix="/api/v1")


@app.get("/health", include_in_schema=False)
async def health():
    return {"status": "ok"}
