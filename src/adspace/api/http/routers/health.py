"""Health check endpoints router for monitoring service availability."""

from fastapi import APIRouter, Request
from starlette.responses import JSONResponse

from src.adspace.api.http.app_data import ApplicationDependencies

router = APIRouter(tags=["health"])


@router.get("/health")
@router.get("/api/health")
async def health() -> dict[str, str]:
    """Liveness probe; public and independent of any dependency."""
    return {"status": "healthy"}


@router.get("/ready", response_model=None)
async def readiness(request: Request) -> dict[str, object] | JSONResponse:
    """Readiness probe: 200 when the database answers, 503 otherwise."""
    app_deps: ApplicationDependencies = request.app.state.app_dependencies
    db_healthy = app_deps.database_service.health_check()
    body = {
        "status": "ready" if db_healthy else "not_ready",
        "checks": {"database": "healthy" if db_healthy else "unhealthy"},
        "verifiers": [v.name for v in app_deps.verifiers],
    }
    if not db_healthy:
        return JSONResponse(status_code=503, content=body)
    return body
