"""Endpoints de ingesta firmada.

Dos formatos soportados de forma explícita:
- POST /ingest         lectura plana; firma HMAC sobre el body crudo,
                       headers X-Device-Id + X-Signature
- POST /ingest/packet  sobre {p, d, s} del firmware; firma sobre la
                       serialización canónica de `p`

El body se lee como bytes ANTES de parsear: es lo que se firma.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Header, Request

from ..container import ServiceContainer
from ..dependencies import get_container
from ..errors import IngestError, InternalFailure
from ..observability import INGEST_READINGS
from ..pipeline import IngestOutcome
from ..schemas import IngestResult

router = APIRouter(tags=["ingest"])
logger = logging.getLogger(__name__)


def _result(outcome: IngestOutcome) -> IngestResult:
    return IngestResult(
        ok=True,
        fireRiskIndex=outcome.derived.fire_risk_index,
        alertId=outcome.alert.id if outcome.alert else None,
    )


def _internal_failure(
    container: ServiceContainer, path: str, shape: str, e: Exception
) -> InternalFailure:
    INGEST_READINGS.labels(shape=shape, outcome="error").inc()
    logger.exception("Unexpected error in %s err=%s", path, type(e).__name__)
    detail = f"Internal error: {type(e).__name__}"
    if container.settings.debug_errors:
        detail = f"{detail}: {e}"
    return InternalFailure(detail)


@router.post("/ingest", response_model=IngestResult)
async def ingest_reading(
    request: Request,
    container: ServiceContainer = Depends(get_container),
    x_device_id: str | None = Header(default=None, alias="X-Device-Id"),
    x_signature: str | None = Header(default=None, alias="X-Signature"),
):
    """Ingesta de una lectura plana firmada sobre los bytes exactos del body."""
    body = await request.body()
    try:
        outcome = container.pipeline.ingest_flat(body, x_device_id, x_signature)
    except IngestError:
        raise
    except Exception as e:
        raise _internal_failure(container, "/ingest", "flat", e)
    return _result(outcome)


@router.post("/ingest/packet", response_model=IngestResult)
async def ingest_packet(
    request: Request,
    container: ServiceContainer = Depends(get_container),
):
    """Ingesta del sobre compacto {p, d, s} tal como lo emite el firmware."""
    body = await request.body()
    try:
        outcome = container.pipeline.ingest_envelope(body)
    except IngestError:
        raise
    except Exception as e:
        raise _internal_failure(container, "/ingest/packet", "envelope", e)
    return _result(outcome)
