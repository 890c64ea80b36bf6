from __future__ import annotations

from typing import List, Protocol

from ..domain import TelemetryRecord


class TelemetryStore(Protocol):
    """Interfaz del almacén durable de telemetría.

    El core solo depende de esta interfaz. El almacén NO es fuente de verdad
    para las decisiones en memoria: es un write-behind del historial.
    """

    def append(self, record: TelemetryRecord) -> None:
        """Escritura durable de una lectura aceptada.

        Raises:
            PersistenceFailure si la escritura falla.
        """

        ...

    def query(self, limit: int, newest_first: bool = True) -> List[dict]:
        """Últimos `limit` registros ordenados por timestamp.

        Raises:
            PersistenceFailure si la lectura falla.
        """

        ...
