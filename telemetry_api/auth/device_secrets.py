"""Tabla estática de secretos por dispositivo.

Se resuelve una sola vez al arrancar (ver common.config.get_settings) y se
inyecta en el verificador. La rotación/recarga queda fuera de alcance.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, Optional


class DeviceSecretTable:
    def __init__(self, secrets: Mapping[str, str]) -> None:
        self._secrets = MappingProxyType(
            {str(k).strip(): str(v) for k, v in secrets.items() if str(k).strip()}
        )

    def lookup(self, device_id: str) -> Optional[str]:
        """Devuelve el secreto del dispositivo o None si no está registrado."""
        if not device_id:
            return None
        return self._secrets.get(device_id.strip())

    def __contains__(self, device_id: object) -> bool:
        return isinstance(device_id, str) and self.lookup(device_id) is not None

    def __len__(self) -> int:
        return len(self._secrets)
