"""Módulo de autenticación de dispositivos.

Consolida toda la lógica de autenticación:
- Tabla de secretos por dispositivo
- Verificación HMAC-SHA256
- Serialización canónica del sobre compacto
"""

from .canonical import canonical_bytes, canonical_json
from .device_secrets import DeviceSecretTable
from .signature import SignatureVerifier, compute_signature

__all__ = [
    "DeviceSecretTable",
    "SignatureVerifier",
    "canonical_bytes",
    "canonical_json",
    "compute_signature",
]
