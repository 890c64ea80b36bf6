"""Listado y reconocimiento de alertas."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from ..container import ServiceContainer
from ..dependencies import get_container
from ..schemas import AckResult, AlertList, AlertOut

router = APIRouter(tags=["alerts"])
logger = logging.getLogger(__name__)


@router.get("/alerts", response_model=AlertList)
def list_alerts(
    open_only: bool = False,
    container: ServiceContainer = Depends(get_container),
):
    alerts = container.alert_manager.list(include_acknowledged=not open_only)
    return AlertList(count=len(alerts), alerts=[AlertOut(**a.to_dict()) for a in alerts])


@router.post("/alerts/{alert_id}/ack", response_model=AckResult)
def acknowledge_alert(
    alert_id: str,
    container: ServiceContainer = Depends(get_container),
):
    """Reconoce una alerta. Idempotente; 404 si el id no existe."""
    alert = container.alert_manager.acknowledge(alert_id)
    if alert is None:
        logger.info("[ALERT] ack for unknown id=%s", alert_id)
        raise HTTPException(status_code=404, detail=f"Alert {alert_id} not found")
    return AckResult(ok=True, alert=AlertOut(**alert.to_dict()))
