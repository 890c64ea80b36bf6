"""Gestor de alertas de riesgo.

Política de disparo (OR): fireRiskIndex >= 80, flame1, flame2 o dB >= 100.
Cualquier condición basta.

Tipo: "fire" si alguno de los sensores de llama está activo, si no "warning".

Ciclo de vida:
- Se crean al evaluar una lectura que cumple la política
- Lista acotada (300), más reciente primero; al desbordar se descarta la cola
- acknowledged: False -> True por petición explícita (idempotente)

Deduplicación: por defecto NO se deduplica (cada lectura que cumple la política
genera una alerta nueva). Con cooldown_seconds > 0 se suprime la alerta si el
nodo ya tiene una alerta sin reconocer creada hace menos de cooldown_seconds.
"""

from __future__ import annotations

import itertools
import logging
import threading
from collections import deque
from copy import copy
from datetime import datetime, timedelta, timezone
from typing import Callable, Deque, Iterable, List, Optional

from ..domain import Alert, AlertType, DerivedMetrics, Reading
from ..observability import ALERTS_CREATED, ALERTS_SUPPRESSED


logger = logging.getLogger(__name__)

FIRE_RISK_ALERT_THRESHOLD = 80
SOUND_DB_ALERT_THRESHOLD = 100.0
DEFAULT_ALERT_CAPACITY = 300


def should_alert(reading: Reading, derived: DerivedMetrics) -> bool:
    return (
        derived.fire_risk_index >= FIRE_RISK_ALERT_THRESHOLD
        or reading.flame_detected
        or reading.db >= SOUND_DB_ALERT_THRESHOLD
    )


class AlertManager:
    def __init__(
        self,
        capacity: int = DEFAULT_ALERT_CAPACITY,
        cooldown_seconds: float = 0.0,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._capacity = int(capacity)
        self._cooldown = timedelta(seconds=max(0.0, float(cooldown_seconds)))
        self._clock = clock
        self._lock = threading.Lock()
        # appendleft + maxlen: el más antiguo (derecha) se descarta solo
        self._alerts: Deque[Alert] = deque(maxlen=self._capacity)
        self._seq = itertools.count(1)

    @property
    def capacity(self) -> int:
        return self._capacity

    def evaluate(self, reading: Reading, derived: DerivedMetrics) -> Optional[Alert]:
        """Crea una alerta si la lectura cumple la política; None si no."""
        if not should_alert(reading, derived):
            return None

        with self._lock:
            now = self._clock()
            if self._cooldown and self._in_cooldown(reading, now):
                ALERTS_SUPPRESSED.inc()
                logger.info(
                    "[ALERT] suppressed by cooldown node=%s/%s pffi=%s",
                    reading.zone_id,
                    reading.node_id,
                    derived.fire_risk_index,
                )
                return None

            alert = Alert(
                id=f"{int(now.timestamp() * 1000)}-{next(self._seq)}",
                zone_id=reading.zone_id,
                node_id=reading.node_id,
                fire_risk_index=derived.fire_risk_index,
                db=reading.db,
                sound_type=reading.sound_type,
                created_at=now,
                type=AlertType.FIRE if reading.flame_detected else AlertType.WARNING,
            )
            self._alerts.appendleft(alert)

        ALERTS_CREATED.labels(type=alert.type.value).inc()
        logger.warning(
            "[ALERT] created id=%s type=%s node=%s/%s pffi=%s dB=%s",
            alert.id,
            alert.type.value,
            alert.zone_id,
            alert.node_id,
            alert.fire_risk_index,
            alert.db,
        )
        return copy(alert)

    def acknowledge(self, alert_id: str) -> Optional[Alert]:
        """Marca la alerta como reconocida.

        Idempotente. Devuelve None si el id no existe (o ya fue desalojado);
        en ese caso la lista no se modifica.
        """
        with self._lock:
            for alert in self._alerts:
                if alert.id == alert_id:
                    if not alert.acknowledged:
                        alert.acknowledged = True
                        logger.info("[ALERT] acknowledged id=%s", alert_id)
                    return copy(alert)
        return None

    def list(self, include_acknowledged: bool = True) -> List[Alert]:
        """Alertas, más reciente primero."""
        with self._lock:
            return [
                copy(a)
                for a in self._alerts
                if include_acknowledged or not a.acknowledged
            ]

    def open_alerts(self) -> List[Alert]:
        return self.list(include_acknowledged=False)

    def restore(self, alerts: Iterable[dict]) -> int:
        """Rehidrata alertas desde un snapshot (orden más reciente primero).

        Solo se usa al arrancar, con la lista vacía.
        """
        parsed = [Alert.from_dict(a) for a in alerts]
        restored = 0
        with self._lock:
            known = {a.id for a in self._alerts}
            for alert in parsed:
                if len(self._alerts) >= self._capacity:
                    break
                if alert.id in known:
                    continue
                self._alerts.append(alert)
                restored += 1
        return restored

    def __len__(self) -> int:
        with self._lock:
            return len(self._alerts)

    def _in_cooldown(self, reading: Reading, now: datetime) -> bool:
        for alert in self._alerts:
            if now - alert.created_at >= self._cooldown:
                # lista ordenada por created_at descendente
                break
            if alert.key == reading.key and not alert.acknowledged:
                return True
        return False
