"""Índices ambientales derivados.

Funciones puras y deterministas; no hay estado compartido. Los pesos y rangos
de normalización del índice compuesto de riesgo de incendio (PFFI) son
constantes con nombre.

Redondeo "half-up", igual que Math.round en el firmware.
"""

from __future__ import annotations

import math
from typing import Optional

from .domain import DerivedMetrics, Reading


# Magnus (punto de rocío)
MAGNUS_A = 17.27
MAGNUS_B = 237.7

# Tetens (presión de vapor de saturación, kPa)
TETENS_E0_KPA = 0.611
TETENS_B = 237.3

# ln(0) no está definido: el punto de rocío se calcula con RH >= 0.01 %
MIN_RH_FOR_DEW_POINT = 0.01

# PFFI - normalización
PFFI_TEMP_MIN_C = 15.0
PFFI_TEMP_MAX_C = 40.0
PFFI_HUM_MIN_PCT = 10.0
PFFI_HUM_MAX_PCT = 100.0
PFFI_GAS_FULL_SCALE = 500.0
PFFI_SOUND_CONFIDENCE_SCALE = 100.0

# PFFI - pesos (suman 1.0)
PFFI_WEIGHTS = {
    "temp": 0.25,
    "humidity": 0.20,
    "smoke": 0.25,
    "gas": 0.10,
    "flame": 0.15,
    "sound": 0.10,
}


def _round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def _clamp_rh(rh: float) -> float:
    return max(0.0, min(100.0, rh))


def compute_dew_point(temp_c: float, hum_pct: float) -> float:
    """Punto de rocío (°C) por la fórmula de Magnus, 1 decimal."""
    rh = max(MIN_RH_FOR_DEW_POINT, _clamp_rh(hum_pct))
    alpha = (MAGNUS_A * temp_c) / (MAGNUS_B + temp_c) + math.log(rh / 100.0)
    dp = (MAGNUS_B * alpha) / (MAGNUS_A - alpha)
    return _round_half_up(dp, 1)


def compute_heat_index(temp_c: float, hum_pct: float) -> float:
    """Índice de calor NOAA (regresión de Rothfusz) calculado en °F, devuelto en °C."""
    t_f = temp_c * 9.0 / 5.0 + 32.0
    rh = _clamp_rh(hum_pct)
    hi_f = (
        -42.379
        + 2.04901523 * t_f
        + 10.14333127 * rh
        - 0.22475541 * t_f * rh
        - 6.83783e-3 * t_f * t_f
        - 5.481717e-2 * rh * rh
        + 1.22874e-3 * t_f * t_f * rh
        + 8.5282e-4 * t_f * rh * rh
        - 1.99e-6 * t_f * t_f * rh * rh
    )
    hi_c = (hi_f - 32.0) * 5.0 / 9.0
    return _round_half_up(hi_c, 1)


def compute_vpd(temp_c: float, hum_pct: float) -> float:
    """Déficit de presión de vapor en kPa, 2 decimales."""
    es = TETENS_E0_KPA * math.exp((MAGNUS_A * temp_c) / (temp_c + TETENS_B))
    ea = es * (_clamp_rh(hum_pct) / 100.0)
    return _round_half_up(es - ea, 2)


def compute_fire_risk_index(
    *,
    temp_c: float,
    hum_pct: float,
    mq2: float,
    mq135: float,
    flame1: bool,
    flame2: bool,
    sound_confidence: Optional[float] = 0.0,
) -> int:
    """Índice compuesto de riesgo de incendio (PFFI), entero 0-100.

    Cada señal se normaliza a [0, 1] con saturación (nunca extrapola):
    - temperatura: sube linealmente de 15 °C a 40 °C
    - humedad: baja linealmente de 10 % a 100 % (más seco => más riesgo)
    - humo (MQ-2) y gas (MQ-135): contra fondo de escala 500
    - llama: 1 si cualquiera de los dos sensores dispara
    - sonido: confianza del clasificador 0-100
    """
    temp_n = _clamp01((temp_c - PFFI_TEMP_MIN_C) / (PFFI_TEMP_MAX_C - PFFI_TEMP_MIN_C))
    hum_n = 1.0 - _clamp01((hum_pct - PFFI_HUM_MIN_PCT) / (PFFI_HUM_MAX_PCT - PFFI_HUM_MIN_PCT))
    smoke_n = _clamp01(mq2 / PFFI_GAS_FULL_SCALE)
    gas_n = _clamp01(mq135 / PFFI_GAS_FULL_SCALE)
    flame_n = 1.0 if (flame1 or flame2) else 0.0
    sound_n = _clamp01((sound_confidence or 0.0) / PFFI_SOUND_CONFIDENCE_SCALE)

    raw = (
        temp_n * PFFI_WEIGHTS["temp"]
        + hum_n * PFFI_WEIGHTS["humidity"]
        + smoke_n * PFFI_WEIGHTS["smoke"]
        + gas_n * PFFI_WEIGHTS["gas"]
        + flame_n * PFFI_WEIGHTS["flame"]
        + sound_n * PFFI_WEIGHTS["sound"]
    )
    return int(_round_half_up(_clamp01(raw) * 100.0))


def derive_metrics(reading: Reading) -> DerivedMetrics:
    return DerivedMetrics(
        dew_point_c=compute_dew_point(reading.temp_c, reading.hum_pct),
        vpd_kpa=compute_vpd(reading.temp_c, reading.hum_pct),
        heat_index_c=compute_heat_index(reading.temp_c, reading.hum_pct),
        fire_risk_index=compute_fire_risk_index(
            temp_c=reading.temp_c,
            hum_pct=reading.hum_pct,
            mq2=reading.mq2,
            mq135=reading.mq135,
            flame1=reading.flame1,
            flame2=reading.flame2,
            sound_confidence=reading.sound_confidence,
        ),
    )
