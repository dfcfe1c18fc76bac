"""Reference service wiring error logging into a FastAPI application.

Error records go to stderr as Cloud Logging JSON lines; the application's
own log output goes through the same formatter.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from gcp_error_logging.config import settings
from gcp_error_logging.hooks import install
from gcp_error_logging.logging_config import setup_logging
from gcp_error_logging.middleware import ErrorContextMiddleware
from gcp_error_logging.routes.health import router as health_router
from gcp_error_logging.services.sinks import GcpStderrLogger

setup_logging(settings.log_level, settings.log_stream)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(application: FastAPI):
    """Install the runtime error hooks at startup.

    They stay registered past shutdown so the exit hook still runs.
    """
    install(GcpStderrLogger(), settings)
    logger.info(
        "%s %s starting, error_reporting=%d",
        settings.app_title,
        settings.app_version,
        settings.error_reporting,
    )
    yield
    logger.info("%s %s shutting down", settings.app_title, settings.app_version)


app = FastAPI(
    title=settings.app_title,
    version=settings.app_version,
    docs_url=None,
    redoc_url=None,
    lifespan=lifespan,
)

app.add_middleware(ErrorContextMiddleware)
app.include_router(health_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "gcp_error_logging.main:app",
        host="0.0.0.0",
        port=settings.port,
    )
