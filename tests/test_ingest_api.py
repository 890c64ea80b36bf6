"""Tests de integración de la API HTTP (FastAPI TestClient)."""

import json
from dataclasses import replace
from unittest.mock import patch

from fastapi.testclient import TestClient

from telemetry_api.domain import NodeKey
from telemetry_api.errors import PersistenceFailure
from telemetry_api.main import create_app

from conftest import DEVICE_ID, DEVICE_SECRET, post_reading, sign, signed_headers


# Lo que JSON.stringify produce en el firmware para el payload de referencia
JS_PAYLOAD = '{"z":"z1","id":"n1","t":35,"h":20,"g1":450,"g2":100,"f1":false,"f2":false,"db":60,"ts":1700000000}'


def _packet(signature: str, device_id: str = DEVICE_ID) -> bytes:
    payload = json.loads(JS_PAYLOAD)
    # Mismos valores, otra forma en el wire (35 -> 35.0)
    for key in ("t", "h", "g1", "g2", "db"):
        payload[key] = float(payload[key])
    return json.dumps({"p": payload, "d": device_id, "s": signature}).encode()


class TestIngestFlat:
    def test_valid_reading_end_to_end(self, client, container, valid_reading):
        response = post_reading(client, valid_reading)

        assert response.status_code == 200
        assert response.json() == {"ok": True, "fireRiskIndex": 62, "alertId": None}

        status = client.get("/status").json()
        node = status["nodes"]["z1/n1"]
        assert node["latest"]["fireRiskIndex"] == 62
        assert len(node["history"]) == 1
        assert status["alerts"] == []

        record = container.node_store.get_latest(NodeKey("z1", "n1"))
        assert record.latest_derived.dew_point_c < record.latest_reading.temp_c

    def test_missing_field_is_rejected_without_side_effects(self, client, container, valid_reading):
        del valid_reading["hum_pct"]
        response = post_reading(client, valid_reading)

        assert response.status_code == 400
        body = response.json()
        assert body["reason"] == "VALIDATION_FAILED"
        assert "hum_pct" in body["error"]
        assert body["fields"] == ["hum_pct"]
        assert len(container.node_store) == 0
        assert len(container.alert_manager) == 0

    def test_out_of_range_value_is_rejected(self, client, valid_reading):
        valid_reading["hum_pct"] = 140
        response = post_reading(client, valid_reading)

        assert response.status_code == 400
        assert response.json()["fields"] == ["hum_pct"]

    def test_blank_ids_are_rejected(self, client, container, valid_reading):
        valid_reading["nodeId"] = "   "
        response = post_reading(client, valid_reading)

        assert response.status_code == 400
        assert response.json()["fields"] == ["nodeId"]
        assert len(container.node_store) == 0

    def test_ids_are_stripped(self, client, container, valid_reading):
        valid_reading["zoneId"] = " z1 "
        assert post_reading(client, valid_reading).status_code == 200
        assert container.node_store.get_latest(NodeKey("z1", "n1")) is not None

    def test_invalid_json_is_rejected(self, client):
        body = b"{not json"
        response = client.post("/ingest", content=body, headers=signed_headers(body))
        assert response.status_code == 400

    def test_missing_credentials(self, client, container, valid_reading):
        body = json.dumps(valid_reading).encode()
        response = client.post(
            "/ingest",
            content=body,
            headers={"Content-Type": "application/json", "X-Device-Id": DEVICE_ID},
        )

        assert response.status_code == 400
        assert response.json()["reason"] == "MISSING_CREDENTIALS"
        assert response.json()["fields"] == ["signature"]
        assert len(container.node_store) == 0

    def test_unknown_device(self, client, container, valid_reading):
        response = post_reading(client, valid_reading, **{"X-Device-Id": "esp32-intruder"})

        assert response.status_code == 401
        assert response.json()["reason"] == "UNKNOWN_DEVICE"
        assert len(container.node_store) == 0

    def test_bad_signature(self, client, container, valid_reading):
        response = post_reading(client, valid_reading, **{"X-Signature": "00" * 32})

        assert response.status_code == 401
        assert response.json()["reason"] == "SIGNATURE_MISMATCH"
        assert len(container.node_store) == 0

    def test_signature_over_different_bytes_is_rejected(self, client, valid_reading):
        signed = json.dumps(valid_reading).encode()
        sent = json.dumps(valid_reading, separators=(",", ":")).encode()
        headers = signed_headers(signed)

        response = client.post("/ingest", content=sent, headers=headers)
        assert response.status_code == 401

    def test_unexpected_error_is_500(self, client, container, valid_reading, monkeypatch):
        def explode(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(container.node_store, "upsert", explode)
        response = post_reading(client, valid_reading)

        assert response.status_code == 500
        assert response.json()["reason"] == "INTERNAL_ERROR"
        assert "boom" not in response.json()["error"]


class TestIngestPacket:
    def test_firmware_envelope_is_accepted(self, client):
        body = _packet(sign(JS_PAYLOAD.encode()))
        response = client.post("/ingest/packet", content=body)

        assert response.status_code == 200
        assert response.json()["fireRiskIndex"] == 62
        assert "z1/n1" in client.get("/status").json()["nodes"]

    def test_missing_signature(self, client):
        body = json.dumps({"p": json.loads(JS_PAYLOAD), "d": DEVICE_ID}).encode()
        response = client.post("/ingest/packet", content=body)

        assert response.status_code == 400
        assert response.json()["fields"] == ["s"]

    def test_bad_signature(self, client, container):
        body = _packet(sign(JS_PAYLOAD.encode(), secret="otro"))
        response = client.post("/ingest/packet", content=body)

        assert response.status_code == 401
        assert len(container.node_store) == 0

    def test_lone_surrogate_in_payload_is_rejected_as_invalid(self, client, container):
        js_payload = JS_PAYLOAD.replace('"z1"', '"\\ud800"')
        body = '{"p":%s,"d":"%s","s":"%s"}' % (js_payload, DEVICE_ID, sign(js_payload.encode()))

        response = client.post("/ingest/packet", content=body.encode())

        assert response.status_code == 400
        assert response.json()["fields"] == ["z"]
        assert len(container.node_store) == 0

    def test_payload_must_be_object(self, client):
        body = json.dumps({"p": "x", "d": DEVICE_ID, "s": "abc"}).encode()
        response = client.post("/ingest/packet", content=body)

        assert response.status_code == 400
        assert response.json()["fields"] == ["p"]


class TestAlertsApi:
    def test_flame_raises_fire_alert_and_ack(self, client, valid_reading):
        valid_reading["flame1"] = True
        result = post_reading(client, valid_reading).json()
        alert_id = result["alertId"]
        assert alert_id

        alerts = client.get("/alerts").json()
        assert alerts["count"] == 1
        assert alerts["alerts"][0]["type"] == "fire"
        assert alerts["alerts"][0]["acknowledged"] is False
        assert [a["id"] for a in client.get("/status").json()["alerts"]] == [alert_id]

        for _ in range(2):
            ack = client.post(f"/alerts/{alert_id}/ack")
            assert ack.status_code == 200
            assert ack.json()["alert"]["acknowledged"] is True

        assert client.get("/status").json()["alerts"] == []
        assert client.get("/alerts", params={"open_only": True}).json()["count"] == 0
        assert client.get("/alerts").json()["count"] == 1

    def test_ack_unknown_alert_is_404(self, client):
        assert client.post("/alerts/nope/ack").status_code == 404

    def test_loud_sound_raises_warning(self, client, valid_reading):
        valid_reading["dB"] = 110
        valid_reading["sound_type"] = "chainsaw"
        result = post_reading(client, valid_reading).json()

        alert = client.get("/alerts").json()["alerts"][0]
        assert alert["id"] == result["alertId"]
        assert alert["type"] == "warning"
        assert alert["sound_type"] == "chainsaw"


class TestHistoryApi:
    def test_returns_newest_first(self, client, container, valid_reading):
        for ts in (10, 30, 20):
            valid_reading["timestamp"] = ts
            assert post_reading(client, valid_reading).status_code == 200
        container.writer.flush()

        body = client.get("/history", params={"limit": 2}).json()
        assert body["count"] == 2
        assert [r["ts"] for r in body["records"]] == [30, 20]
        assert body["records"][0]["fire_risk_index"] == 62

    def test_limit_bounds(self, client):
        assert client.get("/history", params={"limit": 0}).status_code == 400
        assert client.get("/history", params={"limit": 1001}).status_code == 400
        assert client.get("/history", params={"limit": "abc"}).status_code == 400

    def test_store_failure_is_503(self, client, container):
        failure = PersistenceFailure("History query failed: OperationalError")
        with patch.object(container.telemetry_store, "query", side_effect=failure) as query:
            response = client.get("/history")

        query.assert_called_once_with(200, newest_first=True)

        assert response.status_code == 503
        assert response.json()["reason"] == "PERSISTENCE_FAILED"

    def test_no_store_configured_is_503(self, settings):
        app = create_app(replace(settings, database_url=None))
        with TestClient(app) as c:
            assert c.get("/history").status_code == 503

    def test_failing_append_does_not_fail_ingest(self, client, container, valid_reading, monkeypatch):
        def failing_append(record):
            raise PersistenceFailure("Insert failed: OperationalError")

        monkeypatch.setattr(container.telemetry_store, "append", failing_append)
        response = post_reading(client, valid_reading)
        container.writer.flush()

        assert response.status_code == 200
        assert container.writer.metrics["errors"] >= 1
        assert "z1/n1" in client.get("/status").json()["nodes"]


class TestSnapshotRestore:
    def test_state_survives_restart(self, settings, valid_reading):
        valid_reading["flame2"] = True
        with TestClient(create_app(settings)) as c:
            alert_id = post_reading(c, valid_reading).json()["alertId"]

        with TestClient(create_app(settings)) as c:
            status = c.get("/status").json()
            assert status["nodes"]["z1/n1"]["latest"]["flame2"] is True
            assert [a["id"] for a in status["alerts"]] == [alert_id]
            assert c.post(f"/alerts/{alert_id}/ack").status_code == 200


class TestHealth:
    def test_health_and_ready(self, client):
        assert client.get("/health").json() == {"status": "ok"}

        ready = client.get("/ready")
        assert ready.status_code == 200
        assert ready.json()["status"] == "ready"

    def test_metrics_exposed(self, client, valid_reading):
        post_reading(client, valid_reading)
        text = client.get("/metrics").text

        assert "forest_ingest_readings_total" in text
        assert DEVICE_SECRET not in text
