"""Construcción de los componentes del servicio.

Todo el estado en memoria vive en un ServiceContainer creado una vez por
aplicación y guardado en `app.state.container`; no hay stores globales de módulo.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from common.config import Settings
from common.db import create_telemetry_engine

from .alerts import AlertManager
from .auth import DeviceSecretTable, SignatureVerifier
from .persistence import (
    AsyncPersistenceWriter,
    SnapshotFileStore,
    SqlTelemetryStore,
    TelemetryStore,
)
from .pipeline import IngestPipeline
from .state import NodeStateStore


logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    secrets: DeviceSecretTable
    node_store: NodeStateStore
    alert_manager: AlertManager
    writer: AsyncPersistenceWriter
    pipeline: IngestPipeline
    telemetry_store: Optional[TelemetryStore] = None
    snapshot_store: Optional[SnapshotFileStore] = None

    def startup(self) -> None:
        if isinstance(self.telemetry_store, SqlTelemetryStore):
            try:
                self.telemetry_store.ensure_schema()
            except Exception:
                # El servicio sigue aceptando lecturas aunque la BD no esté
                logger.exception("[PERSIST] ensure_schema failed")
        self.pipeline.restore_snapshot()
        self.writer.start()

    def shutdown(self) -> None:
        self.writer.stop(drain=True)


def build_container(
    settings: Settings,
    *,
    telemetry_store: Optional[TelemetryStore] = None,
) -> ServiceContainer:
    secrets = DeviceSecretTable(settings.device_secrets)
    if not len(secrets):
        logger.warning("[AUTH] DEVICE_SECRETS is empty - every reading will be rejected")

    if telemetry_store is None and settings.database_url:
        telemetry_store = SqlTelemetryStore(create_telemetry_engine(settings.database_url))
    if telemetry_store is None:
        logger.info("[PERSIST] TELEMETRY_DB_URL not configured - durable history disabled")

    snapshot_store = SnapshotFileStore(settings.snapshot_path) if settings.snapshot_path else None

    node_store = NodeStateStore(history_size=settings.history_ring_size)
    alert_manager = AlertManager(
        capacity=settings.alert_capacity,
        cooldown_seconds=settings.alert_cooldown_seconds,
    )
    writer = AsyncPersistenceWriter(
        max_queue_size=settings.persist_queue_size,
        num_workers=settings.persist_num_workers,
    )
    pipeline = IngestPipeline(
        verifier=SignatureVerifier(secrets),
        node_store=node_store,
        alert_manager=alert_manager,
        writer=writer,
        telemetry_store=telemetry_store,
        snapshot_store=snapshot_store,
    )

    return ServiceContainer(
        settings=settings,
        secrets=secrets,
        node_store=node_store,
        alert_manager=alert_manager,
        writer=writer,
        pipeline=pipeline,
        telemetry_store=telemetry_store,
        snapshot_store=snapshot_store,
    )
