"""Health, readiness and metrics endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from ..container import ServiceContainer
from ..dependencies import get_container
from ..persistence import SqlTelemetryStore

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    """Liveness probe: always returns ok if process is running."""
    return {"status": "ok"}


@router.get("/ready")
def ready(container: ServiceContainer = Depends(get_container)):
    """Readiness probe: persistence writer running and DB reachable (if configured)."""
    if not container.writer.running:
        raise HTTPException(status_code=503, detail="not ready")
    store = container.telemetry_store
    if isinstance(store, SqlTelemetryStore) and not store.ping():
        raise HTTPException(status_code=503, detail="not ready")
    return {
        "status": "ready",
        "nodes": len(container.node_store),
        "alerts": len(container.alert_manager),
        "persistence": container.writer.metrics,
    }


@router.get("/metrics")
def metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
