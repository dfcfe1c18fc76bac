"""Health check endpoint for Cloud Run liveness and readiness checks.

Reports whether error logging is installed and with which sink and
error-reporting mask, so operators can confirm the hooks are live.
"""

import time

from fastapi import APIRouter

from gcp_error_logging.config import settings
from gcp_error_logging.hooks import get_handle

router = APIRouter(prefix="/api", tags=["health"])

_START_TIME = time.monotonic()


@router.get("/health")
async def health_check() -> dict:
    """Return service health status with version, uptime, and error-logging state."""
    handle = get_handle()
    active = handle.settings if handle is not None else settings
    return {
        "status": "healthy",
        "service": settings.app_title,
        "version": settings.app_version,
        "uptime_seconds": round(time.monotonic() - _START_TIME),
        "error_logging": {
            "installed": handle is not None and handle.installed,
            "sink": type(handle.sink).__name__ if handle is not None else None,
            "error_reporting": handle.dispatcher.error_reporting if handle is not None else None,
            "capture_warnings": active.capture_warnings,
            "capture_threads": active.capture_threads,
        },
    }
