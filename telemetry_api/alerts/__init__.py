"""Alertas de riesgo de incendio."""

from .alert_manager import (
    DEFAULT_ALERT_CAPACITY,
    FIRE_RISK_ALERT_THRESHOLD,
    SOUND_DB_ALERT_THRESHOLD,
    AlertManager,
    should_alert,
)

__all__ = [
    "DEFAULT_ALERT_CAPACITY",
    "FIRE_RISK_ALERT_THRESHOLD",
    "SOUND_DB_ALERT_THRESHOLD",
    "AlertManager",
    "should_alert",
]
