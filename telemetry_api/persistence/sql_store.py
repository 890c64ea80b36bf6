"""Almacén SQL de telemetría (tabla forest_telemetry).

PostgreSQL (Supabase) en producción, SQLite en local. Si TELEMETRY_DB_URL no
está configurado, el servicio funciona solo en memoria y /history responde 503.
"""

from __future__ import annotations

import logging
from typing import List

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    insert,
    select,
)
from sqlalchemy.engine import Engine

from ..domain import TelemetryRecord
from ..errors import PersistenceFailure


logger = logging.getLogger(__name__)

TABLE_NAME = "forest_telemetry"

metadata = MetaData()

forest_telemetry = Table(
    TABLE_NAME,
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("zone_id", String(64), nullable=False, index=True),
    Column("node_id", String(64), nullable=False, index=True),
    Column("temp_c", Float, nullable=False),
    Column("hum_pct", Float, nullable=False),
    Column("mq2", Float, nullable=False),
    Column("mq135", Float, nullable=False),
    Column("flame1", Boolean, nullable=False),
    Column("flame2", Boolean, nullable=False),
    Column("db", Float, nullable=False),
    Column("sound_type", String(64), nullable=True),
    Column("sound_confidence", Float, nullable=False, default=0.0),
    Column("battery_pct", Float, nullable=True),
    Column("ts", BigInteger, nullable=False, index=True),
    Column("dew_point_c", Float, nullable=False),
    Column("vpd_kpa", Float, nullable=False),
    Column("heat_index_c", Float, nullable=False),
    Column("fire_risk_index", Integer, nullable=False),
    Column("received_at", DateTime(timezone=True), nullable=False),
)


class SqlTelemetryStore:
    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def ensure_schema(self) -> None:
        """Crea la tabla si no existe. Seguro de llamar varias veces."""
        logger.info("[PERSIST] Ensuring schema table=%s", TABLE_NAME)
        metadata.create_all(self._engine, tables=[forest_telemetry], checkfirst=True)

    def append(self, record: TelemetryRecord) -> None:
        try:
            with self._engine.begin() as conn:
                conn.execute(insert(forest_telemetry).values(**record.to_row()))
        except Exception as e:
            # No exponer la cadena de conexión: solo el tipo de error
            logger.exception(
                "[PERSIST] insert failed node=%s/%s ts=%s",
                record.reading.zone_id,
                record.reading.node_id,
                record.reading.timestamp,
            )
            raise PersistenceFailure(f"Insert failed: {type(e).__name__}") from e

    def query(self, limit: int, newest_first: bool = True) -> List[dict]:
        ts, row_id = forest_telemetry.c.ts, forest_telemetry.c.id
        # id como desempate para lecturas con el mismo ts
        order = (ts.desc(), row_id.desc()) if newest_first else (ts.asc(), row_id.asc())
        stmt = select(forest_telemetry).order_by(*order).limit(int(limit))
        try:
            with self._engine.connect() as conn:
                rows = conn.execute(stmt).mappings().all()
        except Exception as e:
            logger.exception("[PERSIST] history query failed limit=%s", limit)
            raise PersistenceFailure(f"History query failed: {type(e).__name__}") from e

        return [dict(row) for row in rows]

    def ping(self) -> bool:
        try:
            with self._engine.connect() as conn:
                conn.execute(select(1))
            return True
        except Exception:
            logger.exception("[PERSIST] ping failed")
            return False
