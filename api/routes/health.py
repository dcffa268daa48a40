"""Health check endpoints."""

from typing import Dict

from fastapi import APIRouter, Request, Response

from core import __version__
from models.api_responses import HealthResponse


router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Health check endpoint.

    Reports "degraded" when the last reconciliation pass failed.
    """
    monitor = request.app.state.monitor
    checks = {
        "api": "up",
        "monitor": "up" if monitor is not None and monitor.running else "down",
        "last_error": monitor.last_error if monitor is not None else None,
    }
    status = "healthy"
    if checks["monitor"] == "down" or checks["last_error"]:
        status = "degraded"
    return HealthResponse(status=status, version=__version__, checks=checks)


@router.get("/ready")
async def readiness_check(request: Request, response: Response) -> Dict[str, str]:
    """Readiness probe: ready once a report has been published."""
    monitor = request.app.state.monitor
    if monitor is None or monitor.report is None:
        response.status_code = 503
        return {"status": "starting"}
    return {"status": "ready"}


@router.get("/live")
async def liveness_check() -> Dict[str, str]:
    """Liveness probe for Kubernetes."""
    return {"status": "alive"}
