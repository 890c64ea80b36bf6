"""Fixtures compartidas de la suite de tests.

Ejecutar:
    pytest -v
"""

from __future__ import annotations

import json
from typing import Any, Dict

import pytest
from fastapi.testclient import TestClient

from common.config import Settings
from telemetry_api.auth import compute_signature
from telemetry_api.domain import Reading
from telemetry_api.main import create_app


DEVICE_ID = "esp32-forest-01"
DEVICE_SECRET = "17surbhi"


def sign(body: bytes, secret: str = DEVICE_SECRET) -> str:
    return compute_signature(secret, body)


def signed_headers(body: bytes, device_id: str = DEVICE_ID, secret: str = DEVICE_SECRET) -> dict:
    return {
        "Content-Type": "application/json",
        "X-Device-Id": device_id,
        "X-Signature": sign(body, secret),
    }


def make_reading(**overrides: Any) -> Reading:
    data = dict(
        zone_id="z1",
        node_id="n1",
        temp_c=35.0,
        hum_pct=20.0,
        mq2=450.0,
        mq135=100.0,
        flame1=False,
        flame2=False,
        db=60.0,
        timestamp=1700000000,
        sound_confidence=0.0,
    )
    data.update(overrides)
    return Reading(**data)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def valid_reading() -> Dict[str, Any]:
    """Lectura de referencia: PFFI 62, sin alerta."""
    return {
        "zoneId": "z1",
        "nodeId": "n1",
        "temp_c": 35,
        "hum_pct": 20,
        "mq2": 450,
        "mq135": 100,
        "flame1": False,
        "flame2": False,
        "dB": 60,
        "sound_confidence": 0,
        "timestamp": 1700000000,
    }


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        device_secrets={DEVICE_ID: DEVICE_SECRET},
        database_url=f"sqlite:///{tmp_path / 'telemetry.db'}",
        snapshot_path=str(tmp_path / "snapshot.json"),
        persist_num_workers=1,
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def container(app):
    return app.state.container


def post_reading(client: TestClient, reading: Dict[str, Any], **header_overrides: str):
    body = json.dumps(reading).encode()
    headers = signed_headers(body)
    headers.update(header_overrides)
    return client.post("/ingest", content=body, headers=headers)
