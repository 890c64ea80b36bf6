"""Módulo de endpoints HTTP.

Contiene todos los endpoints de la API de ingesta organizados por función.
"""

from .alerts import router as alerts_router
from .health import router as health_router
from .history import router as history_router
from .ingest import router as ingest_router
from .status import router as status_router

__all__ = [
    "alerts_router",
    "health_router",
    "history_router",
    "ingest_router",
    "status_router",
]
