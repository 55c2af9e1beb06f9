"""Health check endpoints for Nexora.

Both endpoints are unauthenticated and mounted at root (no /api prefix).
Used by container liveness and readiness probes.
"""

import importlib.metadata

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from nexora.dependencies import Engine, get_engine

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe: returns 200 if the application process is running."""
    try:
        version = importlib.metadata.version("nexora")
    except importlib.metadata.PackageNotFoundError:
        version = "unknown"
    return {"status": "ok", "version": version}


@router.get("/health/ready")
async def health_ready(  # type: ignore[return]
    engine: Engine = Depends(get_engine),
):
    """Readiness probe: returns 200 if server storage is reachable, 503 otherwise."""
    try:
        await engine.registry.ping()
        return JSONResponse(status_code=200, content={"status": "ok"})
    except Exception as exc:  # noqa: BLE001
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "detail": str(exc)},
        )
