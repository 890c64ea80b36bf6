from __future__ import annotations

import logging

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, make_url


logger = logging.getLogger(__name__)


def _safe_url(url: str) -> str:
    # Nunca loguear la contraseña de la cadena de conexión.
    try:
        return make_url(url).render_as_string(hide_password=True)
    except Exception:
        return "<unparseable url>"


def create_telemetry_engine(url: str) -> Engine:
    """Crea el engine del almacén de telemetría.

    En producción es PostgreSQL (Supabase); en local basta con SQLite.
    """
    connect_args = {}
    if url.startswith("sqlite"):
        # Los writers de persistencia usan hilos propios.
        connect_args["check_same_thread"] = False

    logger.info("[DB] Crear engine url=%s", _safe_url(url))

    engine = create_engine(
        url,
        pool_pre_ping=True,
        pool_recycle=300,
        connect_args=connect_args,
        future=True,
    )

    # Test de conexión: ayuda a ver en logs si el servicio realmente llega a la BD
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("[DB] Test de conexión OK")
    except Exception:
        logger.exception("[DB] Test de conexión FALLÓ")

    return engine
