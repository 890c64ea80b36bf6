from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from common.config import Settings, configure_logging, get_settings

from .container import ServiceContainer, build_container
from .endpoints import (
    alerts_router,
    health_router,
    history_router,
    ingest_router,
    status_router,
)
from .errors import IngestError


logger = logging.getLogger(__name__)


async def _ingest_error_handler(request: Request, exc: IngestError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Parámetros inválidos (query/path) son un 400, igual que los campos del body.
    fields = [".".join(str(p) for p in err.get("loc", ())[1:]) for err in exc.errors()]
    return JSONResponse(
        status_code=400,
        content={
            "error": f"Invalid field(s): {', '.join(fields)}",
            "reason": "VALIDATION_FAILED",
            "fields": fields,
        },
    )


def create_app(
    settings: Optional[Settings] = None,
    container: Optional[ServiceContainer] = None,
) -> FastAPI:
    if container is None:
        settings = settings or get_settings()
        container = build_container(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        container.startup()
        try:
            yield
        finally:
            container.shutdown()

    app = FastAPI(title="Forest Telemetry Ingest Service", version="1.0.0", lifespan=lifespan)
    app.state.container = container

    app.add_exception_handler(IngestError, _ingest_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)

    app.include_router(health_router)
    app.include_router(ingest_router)
    app.include_router(status_router)
    app.include_router(alerts_router)
    app.include_router(history_router)
    return app


def _build_default_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)
    return create_app(settings)


# uvicorn telemetry_api.main:app --port 3000
app = _build_default_app()
