"""Nexora FastAPI application factory.

Entry point: uvicorn nexora.main:app
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from nexora.config import settings
from nexora.dependencies import Engine, build_engine
from nexora.errors import NexoraError, ValidationError
from nexora.logging_config import configure_logging
from nexora.middleware import RequestIDMiddleware, get_request_id
from nexora.routers import health, servers
from nexora.sync.poller import poll_active_owners


async def _scheduled_poll(engine: Engine) -> None:
    await poll_active_owners(
        engine.active_owners, engine.client, engine.registry, engine.store, engine.locks
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    configure_logging(settings.LOG_LEVEL)
    http_client = httpx.AsyncClient(timeout=settings.ORCHESTRATOR_TIMEOUT_SECONDS)
    engine = build_engine(http_client)
    app.state.engine = engine

    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        _scheduled_poll,
        "interval",
        seconds=settings.POLL_INTERVAL_SECONDS,
        args=[engine],
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()

    yield

    scheduler.shutdown(wait=False)
    await http_client.aclose()
    if settings.STORAGE_BACKEND == "database":
        from nexora.database import async_engine

        await async_engine.dispose()


app = FastAPI(title="Nexora", lifespan=lifespan)

app.add_middleware(RequestIDMiddleware)


def _error_response(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "code": code,
                "message": message,
                "request_id": get_request_id(),
            }
        },
        headers={"X-Request-ID": get_request_id()},
    )


@app.exception_handler(NexoraError)
async def nexora_error_handler(request: Request, exc: NexoraError) -> JSONResponse:
    return _error_response(exc.status_code, exc.code, exc.message)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    details = "; ".join(
        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
    )
    return _error_response(ValidationError.status_code, ValidationError.code, details)


app.include_router(health.router)
app.include_router(servers.router)
