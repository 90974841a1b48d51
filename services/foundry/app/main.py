"""FastAPI application entrypoint."""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import Depends, FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from .api import artifacts, graph, projects
from .api.deps import get_db_session
from .config import get_settings
from .domain.errors import (
    FoundryError,
    GenerationError,
    GenerationTimeoutError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from .observability.otel import configure_logging, configure_telemetry
from .persistence.db import init_db

logger = structlog.get_logger(__name__)

# Most specific first.
ERROR_STATUS: list[tuple[type[FoundryError], int]] = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (GenerationTimeoutError, status.HTTP_504_GATEWAY_TIMEOUT),
    (GenerationError, status.HTTP_502_BAD_GATEWAY),
    (PersistenceError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def status_for(exc: FoundryError) -> int:
    for error_type, code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def error_body(exc: FoundryError) -> dict:
    body = {"error": type(exc).__name__, "message": exc.message}
    if exc.details is not None:
        body["details"] = exc.details
    if isinstance(exc, GenerationError) and exc.stage:
        body["stage"] = exc.stage
    if isinstance(exc, PersistenceError):
        body["committed"] = exc.committed
    return body


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:  # pragma: no cover - FastAPI lifecycle
    await init_db()
    yield


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(
        title="Project Foundry",
        version="0.1.0",
        openapi_version="3.1.0",
        docs_url="/docs",
        redoc_url=None,
        lifespan=_lifespan,
    )

    configure_logging(settings)
    configure_telemetry(settings)

    @app.exception_handler(FoundryError)
    async def _foundry_exception_handler(request: Request, exc: FoundryError):
        code = status_for(exc)
        logger.warning("api.error", path=request.url.path, status_code=code, error=type(exc).__name__)
        return JSONResponse(status_code=code, content=error_body(exc))

    @app.exception_handler(Exception)
    async def _generic_exception_handler(request: Request, exc: Exception):  # pragma: no cover - fallback
        logger.error("api.unhandled", path=request.url.path, error=repr(exc))
        return JSONResponse(
            status_code=500,
            content={"error": "InternalServerError", "message": str(exc)},
        )

    app.include_router(projects.router)
    app.include_router(graph.router)
    app.include_router(artifacts.router)

    @app.get("/healthz")
    async def healthcheck(session: AsyncSession = Depends(get_db_session)):
        await session.execute(text("SELECT 1"))
        return {"status": "ok", "environment": settings.environment}

    return app


app = create_app()


__all__ = ["app", "create_app", "status_for"]
