"""
Health Check Endpoints

Liveness and readiness checks. The analytics core holds no connections, so
readiness only confirms that the pipeline defaults validate.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Response
from pydantic import BaseModel, ValidationError

from predictiq.config import PipelineConfig, get_settings
from predictiq.errors import ConfigurationError

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    environment: str
    timestamp: datetime
    checks: Dict[str, Any]


def _check_pipeline() -> Dict[str, Any]:
    try:
        PipelineConfig.build()
    except (ConfigurationError, ValidationError) as e:
        return {"status": "unhealthy", "error": str(e)}
    return {"status": "healthy"}


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Health check endpoint.

    Checks:
    - Application status
    - Pipeline configuration defaults
    """
    settings = get_settings()
    checks = {"pipeline": _check_pipeline()}
    overall_status = "healthy" if checks["pipeline"]["status"] == "healthy" else "unhealthy"

    return HealthResponse(
        status=overall_status,
        version=settings.version,
        environment=settings.app_env,
        timestamp=datetime.now(timezone.utc),
        checks=checks,
    )


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    """
    Kubernetes liveness check endpoint.

    Returns 200 if the application is running.
    """
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(response: Response) -> Dict[str, str]:
    """
    Kubernetes readiness check endpoint.

    Returns 200 if the application is ready to receive traffic.
    """
    check = _check_pipeline()
    if check["status"] != "healthy":
        response.status_code = 503
        return {"status": "not_ready", "reason": "invalid_configuration"}
    return {"status": "ready"}
