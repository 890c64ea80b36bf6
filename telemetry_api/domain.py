"""Modelos de dominio del servicio de telemetría forestal.

Dataclasses internas; los contratos HTTP viven en schemas.py.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Deque, NamedTuple, Optional
from urllib.parse import quote


class NodeKey(NamedTuple):
    """Identidad física de un sensor: (zoneId, nodeId)."""

    zone_id: str
    node_id: str

    def label(self) -> str:
        """Etiqueta zona/nodo con cada parte percent-encoded.

        Dos claves distintas nunca comparten etiqueta ("a/b","c" -> "a%2Fb/c"; "a","b/c" -> "a/b%2Fc").
        """
        return f"{quote(self.zone_id, safe='')}/{quote(self.node_id, safe='')}"


@dataclass(frozen=True)
class Reading:
    """Una muestra de sensor ya validada."""

    zone_id: str
    node_id: str
    temp_c: float
    hum_pct: float
    mq2: float
    mq135: float
    flame1: bool
    flame2: bool
    db: float
    timestamp: int
    sound_type: Optional[str] = None
    sound_confidence: float = 0.0
    battery_pct: Optional[float] = None

    @property
    def key(self) -> NodeKey:
        return NodeKey(self.zone_id, self.node_id)

    @property
    def flame_detected(self) -> bool:
        return bool(self.flame1 or self.flame2)

    def to_dict(self) -> dict:
        return {
            "zoneId": self.zone_id,
            "nodeId": self.node_id,
            "temp_c": self.temp_c,
            "hum_pct": self.hum_pct,
            "mq2": self.mq2,
            "mq135": self.mq135,
            "flame1": self.flame1,
            "flame2": self.flame2,
            "dB": self.db,
            "sound_type": self.sound_type,
            "sound_confidence": self.sound_confidence,
            "battery_pct": self.battery_pct,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Reading":
        return cls(
            zone_id=str(data["zoneId"]),
            node_id=str(data["nodeId"]),
            temp_c=float(data["temp_c"]),
            hum_pct=float(data["hum_pct"]),
            mq2=float(data["mq2"]),
            mq135=float(data["mq135"]),
            flame1=bool(data["flame1"]),
            flame2=bool(data["flame2"]),
            db=float(data["dB"]),
            timestamp=int(data["timestamp"]),
            sound_type=data.get("sound_type"),
            sound_confidence=float(data.get("sound_confidence") or 0.0),
            battery_pct=data.get("battery_pct"),
        )


@dataclass(frozen=True)
class DerivedMetrics:
    dew_point_c: float
    vpd_kpa: float
    heat_index_c: float
    fire_risk_index: int

    def to_dict(self) -> dict:
        return {
            "dewPoint_c": self.dew_point_c,
            "vpd_kPa": self.vpd_kpa,
            "heatIndex_c": self.heat_index_c,
            "fireRiskIndex": self.fire_risk_index,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DerivedMetrics":
        return cls(
            dew_point_c=float(data["dewPoint_c"]),
            vpd_kpa=float(data["vpd_kPa"]),
            heat_index_c=float(data["heatIndex_c"]),
            fire_risk_index=int(data["fireRiskIndex"]),
        )


@dataclass(frozen=True)
class HistorySample:
    """Muestra compacta guardada en el anillo de historial."""

    timestamp: int
    temp_c: float
    fire_risk_index: int
    db: float

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "temp_c": self.temp_c,
            "fireRiskIndex": self.fire_risk_index,
            "dB": self.db,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "HistorySample":
        return cls(
            timestamp=int(data["timestamp"]),
            temp_c=float(data["temp_c"]),
            fire_risk_index=int(data["fireRiskIndex"]),
            db=float(data["dB"]),
        )


@dataclass
class NodeRecord:
    """Estado de un nodo. Propiedad exclusiva de NodeStateStore."""

    key: NodeKey
    latest_reading: Reading
    latest_derived: DerivedMetrics
    history: Deque[HistorySample]
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "zoneId": self.key.zone_id,
            "nodeId": self.key.node_id,
            "latest": {
                **self.latest_reading.to_dict(),
                **self.latest_derived.to_dict(),
            },
            "history": [s.to_dict() for s in self.history],
            "updatedAt": self.updated_at.isoformat(),
        }


class AlertType(str, Enum):
    FIRE = "fire"
    WARNING = "warning"


@dataclass
class Alert:
    id: str
    zone_id: str
    node_id: str
    fire_risk_index: int
    db: float
    sound_type: Optional[str]
    created_at: datetime
    type: AlertType
    acknowledged: bool = False

    @property
    def key(self) -> NodeKey:
        return NodeKey(self.zone_id, self.node_id)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "zoneId": self.zone_id,
            "nodeId": self.node_id,
            "fireRiskIndex": self.fire_risk_index,
            "dB": self.db,
            "sound_type": self.sound_type,
            "createdAt": self.created_at.isoformat(),
            "acknowledged": self.acknowledged,
            "type": self.type.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Alert":
        return cls(
            id=str(data["id"]),
            zone_id=str(data["zoneId"]),
            node_id=str(data["nodeId"]),
            fire_risk_index=int(data["fireRiskIndex"]),
            db=float(data["dB"]),
            sound_type=data.get("sound_type"),
            created_at=datetime.fromisoformat(data["createdAt"]),
            type=AlertType(data["type"]),
            acknowledged=bool(data.get("acknowledged", False)),
        )


@dataclass(frozen=True)
class TelemetryRecord:
    """Fila durable de la tabla forest_telemetry."""

    reading: Reading
    derived: DerivedMetrics
    received_at: datetime

    def to_row(self) -> dict:
        r = self.reading
        d = self.derived
        return {
            "zone_id": r.zone_id,
            "node_id": r.node_id,
            "temp_c": r.temp_c,
            "hum_pct": r.hum_pct,
            "mq2": r.mq2,
            "mq135": r.mq135,
            "flame1": r.flame1,
            "flame2": r.flame2,
            "db": r.db,
            "sound_type": r.sound_type,
            "sound_confidence": r.sound_confidence,
            "battery_pct": r.battery_pct,
            "ts": r.timestamp,
            "dew_point_c": d.dew_point_c,
            "vpd_kpa": d.vpd_kpa,
            "heat_index_c": d.heat_index_c,
            "fire_risk_index": d.fire_risk_index,
            "received_at": self.received_at,
        }
