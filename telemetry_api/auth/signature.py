"""Verificación HMAC-SHA256 de lecturas firmadas por dispositivo.

FLUJO:
1. El dispositivo envía X-Device-Id y X-Signature (hex en minúsculas)
2. Buscamos el secreto del dispositivo en la tabla estática
3. Calculamos HMAC-SHA256(secret, bytes canónicos) y comparamos en tiempo constante

Los bytes canónicos del formato plano son el body EXACTO recibido, capturado
antes de parsear: re-serializar puede reordenar claves o normalizar números
e invalidar firmas hechas por otro serializador.

En fallo no hay efectos colaterales: solo log + métrica.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Optional, Union

from ..errors import MissingCredentials, SignatureMismatch, UnknownDevice
from ..observability import AUTH_REJECTIONS
from .device_secrets import DeviceSecretTable


logger = logging.getLogger(__name__)


def compute_signature(secret: str, data: Union[bytes, str]) -> str:
    """HMAC-SHA256 en hex minúsculas (equivalente al script de firma del firmware)."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), data, hashlib.sha256).hexdigest()


class SignatureVerifier:
    def __init__(self, secrets: DeviceSecretTable) -> None:
        self._secrets = secrets

    def verify(
        self,
        device_id: Optional[str],
        signature: Optional[str],
        payload: bytes,
    ) -> str:
        """Valida la firma y devuelve el device_id normalizado.

        Raises:
            MissingCredentials: falta device_id o firma
            UnknownDevice: el dispositivo no está en la tabla
            SignatureMismatch: la firma no coincide
        """
        device_id = (device_id or "").strip()
        signature = (signature or "").strip().lower()

        missing = []
        if not device_id:
            missing.append("device_id")
        if not signature:
            missing.append("signature")
        if missing:
            AUTH_REJECTIONS.labels(reason=MissingCredentials.reason).inc()
            logger.warning("[AUTH] missing credentials fields=%s", ",".join(missing))
            raise MissingCredentials(missing)

        secret = self._secrets.lookup(device_id)
        if secret is None:
            AUTH_REJECTIONS.labels(reason=UnknownDevice.reason).inc()
            logger.warning("[AUTH] unknown device device_id=%s", device_id)
            raise UnknownDevice(device_id)

        expected = compute_signature(secret, payload)
        if not hmac.compare_digest(expected.encode("ascii"), signature.encode("utf-8")):
            AUTH_REJECTIONS.labels(reason=SignatureMismatch.reason).inc()
            # Nunca loguear la firma esperada.
            logger.warning(
                "[AUTH] signature mismatch device_id=%s payload_bytes=%d",
                device_id,
                len(payload),
            )
            raise SignatureMismatch(device_id)

        return device_id
