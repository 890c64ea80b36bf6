"""Pipeline de ingesta.

Orden estricto:
1. Verificación de firma sobre los bytes canónicos (rechazo sin efectos)
2. Validación de campos (rechazo antes de calcular nada)
3. Métricas derivadas
4. Upsert en NodeStateStore
5. Evaluación de alertas
6. Persistencia encolada (fire-and-forget) -> respuesta

Un fallo de persistencia NUNCA falla la ingesta: se loguea en el writer.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Type

from pydantic import BaseModel, ValidationError

from .alerts import AlertManager
from .auth import SignatureVerifier, canonical_bytes
from .domain import Alert, DerivedMetrics, Reading, TelemetryRecord
from .errors import AuthFailure, MissingCredentials, ValidationFailure
from .indices import derive_metrics
from .observability import INGEST_READINGS
from .persistence import AsyncPersistenceWriter, SnapshotFileStore, TelemetryStore
from .schemas import CompactReadingIn, ReadingIn
from .state import NodeStateStore


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngestOutcome:
    device_id: str
    reading: Reading
    derived: DerivedMetrics
    alert: Optional[Alert] = None


def _parse_json_object(body: bytes, what: str) -> dict:
    try:
        data = json.loads(body)
    except (UnicodeDecodeError, ValueError):
        raise ValidationFailure(f"{what} is not valid JSON")
    if not isinstance(data, dict):
        raise ValidationFailure(f"{what} must be a JSON object")
    return data


def validation_failure_from(exc: ValidationError) -> ValidationFailure:
    """Traduce errores de pydantic a ValidationFailure con los campos implicados."""
    fields = []
    missing = []
    for err in exc.errors():
        loc = err.get("loc") or ()
        name = ".".join(str(p) for p in loc) or "body"
        if name not in fields:
            fields.append(name)
        if err.get("type") == "missing" and name not in missing:
            missing.append(name)

    if missing and len(missing) == len(fields):
        message = f"Missing required field(s): {', '.join(missing)}"
    else:
        message = f"Invalid field(s): {', '.join(fields)}"

    errors = [
        {"field": ".".join(str(p) for p in (e.get("loc") or ())), "message": e.get("msg")}
        for e in exc.errors()
    ]
    return ValidationFailure(message, fields=fields, errors=errors)


def parse_reading(data: dict, model: Type[BaseModel] = ReadingIn) -> Reading:
    try:
        parsed = model.model_validate(data)
    except ValidationError as e:
        raise validation_failure_from(e) from e
    return parsed.to_domain()


class IngestPipeline:
    def __init__(
        self,
        verifier: SignatureVerifier,
        node_store: NodeStateStore,
        alert_manager: AlertManager,
        writer: AsyncPersistenceWriter,
        telemetry_store: Optional[TelemetryStore] = None,
        snapshot_store: Optional[SnapshotFileStore] = None,
    ) -> None:
        self._verifier = verifier
        self._nodes = node_store
        self._alerts = alert_manager
        self._writer = writer
        self._telemetry_store = telemetry_store
        self._snapshot_store = snapshot_store
        self._snapshot_lock = threading.Lock()

    def ingest_flat(
        self,
        body: bytes,
        device_id: Optional[str],
        signature: Optional[str],
    ) -> IngestOutcome:
        """Lectura plana: la firma cubre el body crudo, byte a byte."""
        shape = "flat"
        try:
            device = self._verifier.verify(device_id, signature, body)
            reading = parse_reading(_parse_json_object(body, "Body"), ReadingIn)
        except AuthFailure:
            INGEST_READINGS.labels(shape=shape, outcome="rejected_auth").inc()
            raise
        except ValidationFailure as e:
            INGEST_READINGS.labels(shape=shape, outcome="rejected_validation").inc()
            logger.info("[INGEST] rejected device=%s fields=%s", device_id, e.fields)
            raise

        return self._accept(device, reading, shape)

    def ingest_envelope(self, body: bytes) -> IngestOutcome:
        """Sobre {p, d, s}: la firma cubre la serialización canónica de `p`."""
        shape = "envelope"
        try:
            envelope = _parse_json_object(body, "Packet")
            missing = [k for k in ("d", "s") if not envelope.get(k)]
            if missing:
                raise MissingCredentials(missing)
            payload = envelope.get("p")
            if not isinstance(payload, dict):
                raise ValidationFailure("Invalid packet structure: p must be an object", fields=["p"])

            device = self._verifier.verify(
                str(envelope["d"]), str(envelope["s"]), canonical_bytes(payload)
            )
            reading = parse_reading(payload, CompactReadingIn)
        except AuthFailure:
            INGEST_READINGS.labels(shape=shape, outcome="rejected_auth").inc()
            raise
        except ValidationFailure as e:
            INGEST_READINGS.labels(shape=shape, outcome="rejected_validation").inc()
            logger.info("[INGEST] rejected packet fields=%s", e.fields)
            raise

        return self._accept(device, reading, shape)

    def _accept(self, device_id: str, reading: Reading, shape: str) -> IngestOutcome:
        derived = derive_metrics(reading)
        self._nodes.upsert(reading.key, reading, derived)
        alert = self._alerts.evaluate(reading, derived)

        self._dispatch_persistence(
            TelemetryRecord(
                reading=reading,
                derived=derived,
                received_at=datetime.now(timezone.utc),
            )
        )

        INGEST_READINGS.labels(shape=shape, outcome="accepted").inc()
        logger.info(
            "[INGEST] accepted device=%s node=%s pffi=%s alert=%s",
            device_id,
            reading.key.label(),
            derived.fire_risk_index,
            alert.id if alert else None,
        )
        return IngestOutcome(device_id=device_id, reading=reading, derived=derived, alert=alert)

    def _dispatch_persistence(self, record: TelemetryRecord) -> None:
        # No se espera a los jobs: la respuesta sale con el estado en memoria.
        if self._telemetry_store is not None:
            self._writer.submit("append", self._telemetry_store.append, record)
        if self._snapshot_store is not None:
            self._writer.submit("snapshot", self.write_snapshot)

    def write_snapshot(self) -> None:
        """Captura y escribe bajo el mismo lock.

        Con varios workers, un job que capturó antes nunca escribe después de
        uno que capturó más tarde: el fichero siempre refleja el último estado.
        """
        if self._snapshot_store is None:
            return
        with self._snapshot_lock:
            self._snapshot_store.save(
                self._nodes.snapshot(),
                [a.to_dict() for a in self._alerts.list()],
            )

    def restore_snapshot(self) -> None:
        """Rehidrata el estado en memoria desde el snapshot local, si existe."""
        if self._snapshot_store is None:
            return
        data = self._snapshot_store.load()
        nodes = data.get("nodes") or {}
        node_items = nodes.values() if isinstance(nodes, dict) else nodes
        try:
            restored_nodes = self._nodes.restore(node_items)
            restored_alerts = self._alerts.restore(data.get("alerts") or [])
        except (KeyError, TypeError, ValueError):
            logger.exception(
                "[SNAPSHOT] corrupt snapshot ignored path=%s", self._snapshot_store.path
            )
            return
        logger.info(
            "[SNAPSHOT] restored nodes=%d alerts=%d", restored_nodes, restored_alerts
        )
