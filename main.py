"""
ReliefOps - Disaster relief inventory and budget ledger
FastAPI Application Entry Point
"""
import uvicorn
from fastapi import FastAPI
from contextlib import asynccontextmanager
import logging

from reliefops import __version__
from reliefops.core import settings, engine, Base
from reliefops.core.logging_config import configure_logging
from reliefops.api.router import api_router
from reliefops.jobs import start_scheduler, stop_scheduler
import reliefops.models  # noqa: F401  register tables

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    # Startup: Create tables if not exist
    Base.metadata.create_all(bind=engine)
    logger.info(f"{settings.APP_NAME} starting on port {settings.APP_PORT}")

    if settings.SYNC_ENABLED and settings.REMOTE_DATABASE_URL:
        try:
            start_scheduler()
        except Exception as e:
            logger.warning(f"Could not start sync scheduler: {e}")

    yield

    stop_scheduler()
    logger.info(f"{settings.APP_NAME} shutting down")


app = FastAPI(
    title=settings.APP_NAME,
    description="Relief inventory, budget, allocation and archive ledger",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(api_router, prefix="/api")


@app.get("/health")
async def health_check():
    return {"status": "healthy", "app": settings.APP_NAME}


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.APP_PORT,
        reload=settings.DEBUG
    )
