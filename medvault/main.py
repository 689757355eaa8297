import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from medvault.api.v1.router import api_router
from medvault.core.config import get_settings
from medvault.core.database import SessionLocal, init_db
from medvault.core.logging_config import configure_logging
from medvault.services.key_scheduler import AutoKeyScheduler

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    logger.info(f"Starting MedVault ({settings.app_env})")
    init_db()

    scheduler = AutoKeyScheduler(SessionLocal)
    app.state.key_scheduler = scheduler
    if settings.scheduler_enabled:
        scheduler.start()

    yield

    scheduler.stop()
    logger.info("MedVault stopped")


app = FastAPI(
    title="MedVault Access Control Backend",
    lifespan=lifespan,
)


@app.get("/health", tags=["health"])
async def root_health() -> dict:
    """
    Global health check endpoint.
    """
    return {"status": "ok"}


# Mount versioned API router
app.include_router(api_router, prefix=settings.api_v1_prefix)
