"""Estado en memoria por nodo.

FUENTE ÚNICA DE VERDAD para la última lectura y el historial reciente de cada
nodo (zoneId, nodeId):
- `latest`: última lectura + métricas derivadas
- `history`: anillo FIFO de muestras compactas, tamaño máximo N (500)

Un solo lock para todo el store: suficiente a esta escala. Con él, dos upserts
concurrentes del mismo nodo se serializan y el orden del historial coincide
con el orden de commit.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from copy import copy
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional

from ..domain import DerivedMetrics, HistorySample, NodeKey, NodeRecord, Reading


logger = logging.getLogger(__name__)

DEFAULT_HISTORY_SIZE = 500


class NodeStateStore:
    def __init__(self, history_size: int = DEFAULT_HISTORY_SIZE) -> None:
        if history_size < 1:
            raise ValueError("history_size must be >= 1")
        self._history_size = int(history_size)
        self._lock = threading.Lock()
        self._records: Dict[NodeKey, NodeRecord] = {}

    @property
    def history_size(self) -> int:
        return self._history_size

    def upsert(self, key: NodeKey, reading: Reading, derived: DerivedMetrics) -> None:
        sample = HistorySample(
            timestamp=reading.timestamp,
            temp_c=reading.temp_c,
            fire_risk_index=derived.fire_risk_index,
            db=reading.db,
        )
        now = datetime.now(timezone.utc)

        with self._lock:
            record = self._records.get(key)
            if record is None:
                record = NodeRecord(
                    key=key,
                    latest_reading=reading,
                    latest_derived=derived,
                    history=deque(maxlen=self._history_size),
                    updated_at=now,
                )
                self._records[key] = record
                logger.info("[STATE] new node %s", key.label())
            else:
                record.latest_reading = reading
                record.latest_derived = derived
                record.updated_at = now
            # deque(maxlen) descarta el más antiguo en el mismo append
            record.history.append(sample)

    def get_latest(self, key: NodeKey) -> Optional[NodeRecord]:
        """Copia del registro del nodo, o None si nunca se ha visto."""
        with self._lock:
            record = self._records.get(key)
            if record is None:
                return None
            return self._copy(record)

    def snapshot(self) -> Dict[str, dict]:
        """Mapa completo {"zona/nodo": registro} listo para JSON."""
        with self._lock:
            records = [self._copy(r) for r in self._records.values()]
        return {r.key.label(): r.to_dict() for r in records}

    def restore(self, nodes: Iterable[dict]) -> int:
        """Rehidrata registros desde un snapshot (ver SnapshotFileStore).

        Solo crea nodos que aún no existen en memoria. Devuelve cuántos restauró.
        """
        restored = 0
        with self._lock:
            for data in nodes:
                key = NodeKey(str(data["zoneId"]), str(data["nodeId"]))
                if key in self._records:
                    continue
                latest = data["latest"]
                history = deque(
                    (HistorySample.from_dict(s) for s in data.get("history", [])),
                    maxlen=self._history_size,
                )
                updated_at = data.get("updatedAt")
                self._records[key] = NodeRecord(
                    key=key,
                    latest_reading=Reading.from_dict(latest),
                    latest_derived=DerivedMetrics.from_dict(latest),
                    history=history,
                    updated_at=(
                        datetime.fromisoformat(updated_at)
                        if updated_at
                        else datetime.now(timezone.utc)
                    ),
                )
                restored += 1
        return restored

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def _copy(self, record: NodeRecord) -> NodeRecord:
        clone = copy(record)
        clone.history = deque(record.history, maxlen=self._history_size)
        return clone
