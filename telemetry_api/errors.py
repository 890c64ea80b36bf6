"""Taxonomía de errores del pipeline de ingesta.

Cada familia se traduce a un código HTTP distinto para que el cliente pueda
diferenciar "tus datos fueron rechazados" de "el servicio está roto":

- AuthFailure        -> 400 (credenciales ausentes) / 401
- ValidationFailure  -> 400
- PersistenceFailure -> 503 (solo en lecturas; en ingesta se loguea)
- InternalFailure    -> 500
"""

from __future__ import annotations

from typing import Iterable, List, Optional


class IngestError(Exception):
    """Base de los errores esperados del servicio."""

    status_code = 500
    reason = "INTERNAL_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message, "reason": self.reason}


class AuthFailure(IngestError):
    status_code = 401
    reason = "AUTH_FAILED"


class MissingCredentials(AuthFailure):
    status_code = 400
    reason = "MISSING_CREDENTIALS"

    def __init__(self, missing: Iterable[str]) -> None:
        self.missing: List[str] = list(missing)
        super().__init__(f"Missing credentials: {', '.join(self.missing)}")

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["fields"] = self.missing
        return data


class UnknownDevice(AuthFailure):
    reason = "UNKNOWN_DEVICE"

    def __init__(self, device_id: str) -> None:
        self.device_id = device_id
        super().__init__(f"Device {device_id} not found")


class SignatureMismatch(AuthFailure):
    reason = "SIGNATURE_MISMATCH"

    def __init__(self, device_id: str) -> None:
        self.device_id = device_id
        super().__init__("Invalid signature")


class ValidationFailure(IngestError):
    status_code = 400
    reason = "VALIDATION_FAILED"

    def __init__(
        self,
        message: str,
        fields: Optional[Iterable[str]] = None,
        errors: Optional[list] = None,
    ) -> None:
        super().__init__(message)
        self.fields: List[str] = list(fields or [])
        self.errors = errors or []

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["fields"] = self.fields
        if self.errors:
            data["errors"] = self.errors
        return data


class PersistenceFailure(IngestError):
    status_code = 503
    reason = "PERSISTENCE_FAILED"


class InternalFailure(IngestError):
    status_code = 500
    reason = "INTERNAL_ERROR"
