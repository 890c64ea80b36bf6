"""Tests del estado en memoria por nodo."""

import asyncio
from concurrent.futures import ThreadPoolExecutor

import pytest

from telemetry_api.domain import NodeKey
from telemetry_api.indices import derive_metrics
from telemetry_api.state import NodeStateStore

from conftest import make_reading


def _upsert(store: NodeStateStore, **overrides) -> None:
    reading = make_reading(**overrides)
    store.upsert(reading.key, reading, derive_metrics(reading))


class TestUpsert:
    def test_unknown_node_is_absent(self):
        store = NodeStateStore()
        assert store.get_latest(NodeKey("z1", "n1")) is None
        assert store.snapshot() == {}

    def test_first_sighting_creates_record(self):
        store = NodeStateStore()
        _upsert(store, timestamp=100)

        record = store.get_latest(NodeKey("z1", "n1"))
        assert record is not None
        assert record.latest_reading.timestamp == 100
        assert record.latest_derived.fire_risk_index == 62
        assert [s.timestamp for s in record.history] == [100]

    def test_latest_is_last_committed(self):
        store = NodeStateStore()
        _upsert(store, timestamp=100, temp_c=20.0)
        _upsert(store, timestamp=101, temp_c=21.5)

        record = store.get_latest(NodeKey("z1", "n1"))
        assert record.latest_reading.temp_c == 21.5
        assert [s.temp_c for s in record.history] == [20.0, 21.5]

    def test_nodes_are_keyed_by_zone_and_node(self):
        store = NodeStateStore()
        _upsert(store, zone_id="z1", node_id="n1")
        _upsert(store, zone_id="z2", node_id="n1")

        assert len(store) == 2
        assert set(store.snapshot()) == {"z1/n1", "z2/n1"}

    def test_returned_record_is_a_copy(self):
        store = NodeStateStore()
        _upsert(store, timestamp=1)

        record = store.get_latest(NodeKey("z1", "n1"))
        record.history.clear()

        assert len(store.get_latest(NodeKey("z1", "n1")).history) == 1


class TestHistoryRing:
    def test_never_exceeds_500_and_evicts_oldest(self):
        store = NodeStateStore()
        for ts in range(650):
            _upsert(store, timestamp=ts)
            assert len(store.get_latest(NodeKey("z1", "n1")).history) <= 500

        history = store.get_latest(NodeKey("z1", "n1")).history
        assert len(history) == 500
        assert [s.timestamp for s in history] == list(range(150, 650))

    def test_custom_size(self):
        store = NodeStateStore(history_size=3)
        for ts in range(5):
            _upsert(store, timestamp=ts)
        assert [s["timestamp"] for s in store.snapshot()["z1/n1"]["history"]] == [2, 3, 4]

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            NodeStateStore(history_size=0)


class TestConcurrency:
    def test_same_key_writers_lose_nothing(self):
        """Escritores concurrentes al mismo nodo: sin pérdidas ni reordenación por escritor."""
        store = NodeStateStore(history_size=10_000)
        writers, per_writer = 8, 200

        def work(writer_id: int) -> None:
            for i in range(per_writer):
                _upsert(store, timestamp=writer_id * 100_000 + i)

        with ThreadPoolExecutor(max_workers=writers) as pool:
            list(pool.map(work, range(writers)))

        history = [s.timestamp for s in store.get_latest(NodeKey("z1", "n1")).history]
        assert len(history) == writers * per_writer
        for writer_id in range(writers):
            own = [ts for ts in history if ts // 100_000 == writer_id]
            assert own == sorted(own)
            assert len(own) == per_writer

    @pytest.mark.asyncio
    async def test_different_keys_do_not_interfere(self):
        store = NodeStateStore()

        def work(node: str) -> None:
            for ts in range(50):
                _upsert(store, node_id=node, timestamp=ts)

        await asyncio.gather(*(asyncio.to_thread(work, f"n{i}") for i in range(6)))

        snapshot = store.snapshot()
        assert len(snapshot) == 6
        for i in range(6):
            assert [s["timestamp"] for s in snapshot[f"z1/n{i}"]["history"]] == list(range(50))


class TestRestore:
    def test_roundtrip_through_snapshot(self):
        store = NodeStateStore(history_size=10)
        for ts in range(12):
            _upsert(store, timestamp=ts, battery_pct=80.0)
        snapshot = store.snapshot()

        restored = NodeStateStore(history_size=10)
        assert restored.restore(snapshot.values()) == 1

        record = restored.get_latest(NodeKey("z1", "n1"))
        assert [s.timestamp for s in record.history] == list(range(2, 12))
        assert record.latest_reading.battery_pct == 80.0
        assert record.latest_derived.fire_risk_index == 62

    def test_existing_nodes_win_over_snapshot(self):
        store = NodeStateStore()
        _upsert(store, timestamp=1)
        old = store.snapshot()

        _upsert(store, timestamp=2)
        assert store.restore(old.values()) == 0
        assert store.get_latest(NodeKey("z1", "n1")).latest_reading.timestamp == 2

    def test_slash_in_ids_does_not_collide(self):
        store = NodeStateStore()
        _upsert(store, zone_id="a/b", node_id="c", timestamp=1)
        _upsert(store, zone_id="a", node_id="b/c", timestamp=2)

        snapshot = store.snapshot()
        assert len(store) == 2
        assert len(snapshot) == 2

        restored = NodeStateStore()
        assert restored.restore(snapshot.values()) == 2
        assert restored.get_latest(NodeKey("a/b", "c")).latest_reading.timestamp == 1
        assert restored.get_latest(NodeKey("a", "b/c")).latest_reading.timestamp == 2
