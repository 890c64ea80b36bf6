"""Snapshot local en fichero JSON: {"nodes": {...}, "alerts": [...]}.

Se reescribe tras cada lectura aceptada (desde el writer asíncrono) y se lee
al arrancar para rehidratar NodeStateStore y AlertManager.

- Si el fichero no existe, se crea vacío
- Si no se puede leer/parsear, se loguea y se trata como vacío
- La escritura es atómica (fichero temporal + os.replace)
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, List

from ..errors import PersistenceFailure


logger = logging.getLogger(__name__)


def _empty() -> dict:
    return {"nodes": {}, "alerts": []}


class SnapshotFileStore:
    def __init__(self, path: str) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> dict:
        with self._lock:
            try:
                if not self._path.exists():
                    self._write_unlocked(_empty())
                    return _empty()
                with self._path.open("r", encoding="utf-8") as fh:
                    data = json.load(fh)
            except (OSError, ValueError):
                logger.exception("[SNAPSHOT] read failed path=%s", self._path)
                return _empty()

        if not isinstance(data, dict):
            logger.error("[SNAPSHOT] unexpected content path=%s", self._path)
            return _empty()
        data.setdefault("nodes", {})
        data.setdefault("alerts", [])
        return data

    def save(self, nodes: Dict[str, dict], alerts: List[dict]) -> None:
        with self._lock:
            try:
                self._write_unlocked({"nodes": nodes, "alerts": alerts})
            except OSError as e:
                logger.exception("[SNAPSHOT] write failed path=%s", self._path)
                raise PersistenceFailure(f"Snapshot write failed: {type(e).__name__}") from e

    def _write_unlocked(self, data: dict) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(
            prefix=f".{self._path.name}.", suffix=".tmp", dir=str(self._path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2, ensure_ascii=False)
            os.replace(tmp, self._path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
