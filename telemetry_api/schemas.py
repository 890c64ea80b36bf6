from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .domain import Reading


def _require_utf8(v: Optional[str]) -> Optional[str]:
    # JSON admite surrogates sueltos (\ud800) que no son texto UTF-8 válido
    if v is not None:
        try:
            v.encode("utf-8")
        except UnicodeEncodeError:
            raise ValueError("must be valid UTF-8 text")
    return v


class ReadingIn(BaseModel):
    """Lectura plana tal como la envía el nodo (POST /ingest)."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    zoneId: str = Field(..., min_length=1, max_length=64)
    nodeId: str = Field(..., min_length=1, max_length=64)
    temp_c: float = Field(..., ge=-100, le=150, allow_inf_nan=False)
    hum_pct: float = Field(..., ge=0, le=100, allow_inf_nan=False)
    mq2: float = Field(..., allow_inf_nan=False)
    mq135: float = Field(..., allow_inf_nan=False)
    flame1: bool
    flame2: bool
    dB: float = Field(..., allow_inf_nan=False)
    sound_type: Optional[str] = Field(default=None, max_length=64)
    sound_confidence: Optional[float] = Field(default=0.0, ge=0, le=100, allow_inf_nan=False)
    battery_pct: Optional[float] = Field(default=None, ge=0, le=100, allow_inf_nan=False)
    timestamp: int = Field(..., ge=0)

    @field_validator("zoneId", "nodeId", "sound_type")
    @classmethod
    def validate_text(cls, v: Optional[str]) -> Optional[str]:
        return _require_utf8(v)

    def to_domain(self) -> Reading:
        return Reading(
            zone_id=self.zoneId,
            node_id=self.nodeId,
            temp_c=self.temp_c,
            hum_pct=self.hum_pct,
            mq2=self.mq2,
            mq135=self.mq135,
            flame1=self.flame1,
            flame2=self.flame2,
            db=self.dB,
            timestamp=self.timestamp,
            sound_type=self.sound_type,
            sound_confidence=self.sound_confidence or 0.0,
            battery_pct=self.battery_pct,
        )


class CompactReadingIn(BaseModel):
    """Payload compacto del sobre {p, d, s} (POST /ingest/packet).

    Formato esperado (alias cortos del firmware):
    {
        "z": "zona-1", "id": "nodo-3",
        "t": 31.2, "h": 22.5,
        "g1": 410, "g2": 96,
        "f1": 0, "f2": 0,
        "db": 64.1, "b": 87,
        "ts": 1700000000,
        "st": "chainsaw", "sc": 71      <- opcionales
    }
    """

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    z: str = Field(..., min_length=1, max_length=64)
    id: str = Field(..., min_length=1, max_length=64)
    t: float = Field(..., ge=-100, le=150, allow_inf_nan=False)
    h: float = Field(..., ge=0, le=100, allow_inf_nan=False)
    g1: float = Field(..., allow_inf_nan=False)
    g2: float = Field(..., allow_inf_nan=False)
    f1: bool
    f2: bool
    db: float = Field(..., allow_inf_nan=False)
    b: Optional[float] = Field(default=None, ge=0, le=100, allow_inf_nan=False)
    ts: int = Field(..., ge=0)
    st: Optional[str] = Field(default=None, max_length=64)
    sc: Optional[float] = Field(default=0.0, ge=0, le=100, allow_inf_nan=False)

    @field_validator("z", "id", "st")
    @classmethod
    def validate_text(cls, v: Optional[str]) -> Optional[str]:
        return _require_utf8(v)

    def to_domain(self) -> Reading:
        return Reading(
            zone_id=self.z,
            node_id=self.id,
            temp_c=self.t,
            hum_pct=self.h,
            mq2=self.g1,
            mq135=self.g2,
            flame1=self.f1,
            flame2=self.f2,
            db=self.db,
            timestamp=self.ts,
            sound_type=self.st,
            sound_confidence=self.sc or 0.0,
            battery_pct=self.b,
        )


class IngestResult(BaseModel):
    ok: bool = True
    fireRiskIndex: int
    alertId: Optional[str] = None


class AlertOut(BaseModel):
    id: str
    zoneId: str
    nodeId: str
    fireRiskIndex: int
    dB: float
    sound_type: Optional[str] = None
    createdAt: str
    acknowledged: bool
    type: str


class AckResult(BaseModel):
    ok: bool = True
    alert: AlertOut


class AlertList(BaseModel):
    count: int
    alerts: List[AlertOut] = Field(default_factory=list)


class StatusOut(BaseModel):
    nodes: Dict[str, Any] = Field(default_factory=dict)
    alerts: List[AlertOut] = Field(default_factory=list)


class HistoryOut(BaseModel):
    count: int
    records: List[Dict[str, Any]] = Field(default_factory=list)
