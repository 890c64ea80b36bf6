"""Historial durable (lectura desde el almacén SQL)."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..container import ServiceContainer
from ..dependencies import get_container
from ..errors import PersistenceFailure, ValidationFailure
from ..observability import PERSISTENCE_FAILURES
from ..schemas import HistoryOut

router = APIRouter(tags=["history"])


@router.get("/history", response_model=HistoryOut)
def get_history(
    limit: Optional[int] = Query(default=None, ge=1),
    container: ServiceContainer = Depends(get_container),
):
    """Últimos N registros, timestamp descendente (N por defecto 200)."""
    settings = container.settings
    if limit is None:
        limit = settings.history_default_limit
    if limit > settings.history_max_limit:
        raise ValidationFailure(
            f"limit must be <= {settings.history_max_limit}", fields=["limit"]
        )

    store = container.telemetry_store
    if store is None:
        raise PersistenceFailure("History store not configured")

    try:
        records = store.query(limit, newest_first=True)
    except PersistenceFailure:
        PERSISTENCE_FAILURES.labels(operation="query").inc()
        raise
    return HistoryOut(count=len(records), records=records)
