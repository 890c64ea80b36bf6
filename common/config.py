from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv


def _default_env_file() -> str:
    repo_root = Path(__file__).resolve().parents[1]
    return str(repo_root / ".env")


def _env_flag(name: str, default: str = "") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def parse_device_secrets(raw: str) -> Dict[str, str]:
    """Parsea la tabla de secretos de dispositivo.

    Acepta dos formatos:
    - JSON: {"esp32-01": "secret", ...}
    - Lista: esp32-01:secret,esp32-02:otro
    """
    raw = (raw or "").strip()
    if not raw:
        return {}

    if raw.startswith("{"):
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("DEVICE_SECRETS must be a JSON object")
        return {str(k).strip(): str(v) for k, v in data.items()}

    secrets: Dict[str, str] = {}
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        device_id, sep, secret = item.partition(":")
        if not sep or not device_id.strip():
            raise ValueError(f"Invalid DEVICE_SECRETS entry: {device_id!r}")
        secrets[device_id.strip()] = secret
    return secrets


def load_device_secrets_file(path: str) -> Dict[str, str]:
    with open(path, "r", encoding="utf-8") as fh:
        data = json.load(fh)
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a JSON object")
    return {str(k).strip(): str(v) for k, v in data.items()}


@dataclass(frozen=True)
class Settings:
    device_secrets: Dict[str, str] = field(default_factory=dict)

    database_url: Optional[str] = None
    snapshot_path: Optional[str] = None

    history_ring_size: int = 500
    alert_capacity: int = 300
    alert_cooldown_seconds: float = 0.0

    history_default_limit: int = 200
    history_max_limit: int = 1000

    persist_queue_size: int = 1000
    persist_num_workers: int = 2

    log_level: str = "INFO"
    debug_errors: bool = False


def get_settings() -> Settings:
    # Load env file (if present) but still allow overriding via real environment variables.
    env_file = os.getenv("TELEMETRY_ENV_FILE", _default_env_file())
    if env_file and Path(env_file).exists():
        load_dotenv(env_file, override=False)

    device_secrets: Dict[str, str] = {}
    secrets_file = os.getenv("DEVICE_SECRETS_FILE", "").strip()
    if secrets_file:
        device_secrets.update(load_device_secrets_file(secrets_file))
    # Las entradas en DEVICE_SECRETS pisan las del fichero.
    device_secrets.update(parse_device_secrets(os.getenv("DEVICE_SECRETS", "")))

    return Settings(
        device_secrets=device_secrets,
        database_url=os.getenv("TELEMETRY_DB_URL") or None,
        snapshot_path=os.getenv("SNAPSHOT_PATH") or None,
        history_ring_size=int(os.getenv("HISTORY_RING_SIZE", "500")),
        alert_capacity=int(os.getenv("ALERT_CAPACITY", "300")),
        alert_cooldown_seconds=float(os.getenv("ALERT_COOLDOWN_SECONDS", "0")),
        history_default_limit=int(os.getenv("HISTORY_DEFAULT_LIMIT", "200")),
        history_max_limit=int(os.getenv("HISTORY_MAX_LIMIT", "1000")),
        persist_queue_size=int(os.getenv("PERSIST_QUEUE_SIZE", "1000")),
        persist_num_workers=int(os.getenv("PERSIST_NUM_WORKERS", "2")),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        debug_errors=_env_flag("INGEST_DEBUG_ERRORS"),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )
