"""
FastAPI Application

Main entry point for the Agricultural Marketplace Analytics API.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
import structlog

from agrimarket.config import get_settings
from agrimarket.config.logging import configure_logging
from agrimarket.database.connection import init_database, close_database
from agrimarket.serving.api import create_api_app

settings = get_settings()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    configure_logging()
    logger.info("Starting Agricultural Marketplace Analytics API", environment=settings.app_env)

    try:
        await init_database()
    except Exception as e:
        # Readiness reports the outage; the process stays up
        logger.warning("Database init failed", error=str(e))

    yield

    logger.info("Shutting down")
    await close_database()


app = create_api_app(lifespan=lifespan)


def run() -> None:
    """Console entry point."""
    import uvicorn

    uvicorn.run(
        "agrimarket.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.monitoring.log_level.lower(),
    )


if __name__ == "__main__":
    run()
