"""LibraryCleaner Web Service - FastAPI Application"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from core import __version__
from core.logging_config import LoggingManager
from web.config import LOGS_DIR, PROJECT_ROOT
from web.routers import api, operations, review
from web.services import get_scheduler_service


def _suppress_noisy_loggers():
    """Suppress debug spam from third-party libraries"""
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)
    logging.getLogger("urllib3.connectionpool").setLevel(logging.WARNING)


def _setup_logging():
    """File and console logging for the service process"""
    try:
        LoggingManager(logs_folder=str(LOGS_DIR)).setup_logging()
    except PermissionError as e:
        logging.basicConfig(level=logging.INFO)
        logging.warning(f"File logging disabled: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown"""
    _setup_logging()
    _suppress_noisy_loggers()
    logging.info("LibraryCleaner web service starting...")
    logging.info(f"Project root: {PROJECT_ROOT}")

    scheduler = get_scheduler_service()
    scheduler.start()

    yield

    logging.info("LibraryCleaner web service shutting down...")
    scheduler.stop()


app = FastAPI(
    title="LibraryCleaner",
    description="Scheduled cleanup and deletion review for Jellyfin libraries",
    version=__version__,
    lifespan=lifespan
)

app.include_router(review.router, prefix="/LibraryCleaner", tags=["review"])
app.include_router(operations.router, prefix="/operations", tags=["operations"])
app.include_router(api.router, prefix="/api", tags=["api"])
