# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Controller: System endpoints — health, readiness, metrics.
Pure HTTP layer — no business logic.
"""

from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from sprint_desk.core.config import settings
from sprint_desk.core.dependencies import get_rotation_service
from sprint_desk.core.errors import ConfigError

router = APIRouter(tags=["System"])


@router.get("/health")
def health_check():
    """Liveness probe for Docker and orchestration."""
    return {
        "status": "ok",
        "service": settings.SERVICE_NAME,
        "version": settings.SERVICE_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "store_backend": settings.STORE_BACKEND,
    }


@router.get("/health/ready")
def readiness_check():
    """Readiness probe — the rotation config must load and validate."""
    try:
        current = get_rotation_service().current()
    except ConfigError as e:
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "service": settings.SERVICE_NAME, "detail": str(e)},
        )
    return {
        "status": "ready",
        "service": settings.SERVICE_NAME,
        "current_sprint": current.sprint_label,
    }


@router.get("/metrics")
def prometheus_metrics():
    """Expose Prometheus metrics in OpenMetrics format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
