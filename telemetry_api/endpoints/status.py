"""Estado consolidado: todos los nodos + alertas abiertas."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from ..container import ServiceContainer
from ..dependencies import get_container
from ..schemas import AlertOut, StatusOut

router = APIRouter(tags=["status"])


@router.get("/status", response_model=StatusOut)
def get_status(container: ServiceContainer = Depends(get_container)):
    return StatusOut(
        nodes=container.node_store.snapshot(),
        alerts=[AlertOut(**a.to_dict()) for a in container.alert_manager.open_alerts()],
    )
