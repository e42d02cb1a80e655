import json
from unittest import mock

import pytest
import requests

from topo.config import Settings
from topo.state import Snapshot, TopologyState, fetch_registry, make_app


def _registry_session(body):
    session = mock.Mock()
    session.get.return_value = mock.Mock(**{"json.return_value": body})
    return session


class TestSnapshot:
    def test_build_derives_everything(self, sample_nodes):
        snap = Snapshot.build(sample_nodes, ts=5.0)
        assert snap.ts == 5.0
        assert set(snap.clusters) == {"US", "DE"}
        assert set(snap.regions) == {"North America", "Europe"}
        assert snap.peer_lookup["10.0.0.2"] == {"10.0.0.1"}
        assert snap.node("10.0.0.3:9001").country_code == "DE"
        assert snap.node("nope") is None


class TestFetchRegistry:
    @pytest.mark.parametrize("body", [
        [{"address": "a:1"}],
        {"nodes": [{"address": "a:1"}]},
        {"ok": True, "data": [{"address": "a:1"}]},
    ])
    def test_accepted_shapes(self, body):
        assert fetch_registry("http://reg", session=_registry_session(body)) == [{"address": "a:1"}]


class TestTopologyState:
    def test_load_file(self, tmp_path, sample_raw):
        path = tmp_path / "snap.json"
        path.write_text(json.dumps({"ts": 123, "nodes": sample_raw}))
        state = TopologyState(Settings(snapshot_path=str(path)))
        assert state.refresh() is True
        assert state.current().ts == 123.0
        assert state.status()["nodes"] == 5
        assert state.status()["source"].startswith("file:")

    def test_failed_refresh_keeps_last_snapshot(self, tmp_path, sample_raw):
        path = tmp_path / "snap.json"
        path.write_text(json.dumps(sample_raw))
        state = TopologyState(Settings(snapshot_path=str(path)))
        state.refresh()
        path.write_text("{ not json")
        assert state.refresh() is False
        assert len(state.current().nodes) == 5
        assert state.status()["last_error"]

    def test_missing_file(self, tmp_path):
        state = TopologyState(Settings(snapshot_path=str(tmp_path / "missing.json")))
        assert state.refresh() is False
        assert state.current().nodes == []

    def test_registry_poll(self, sample_raw):
        session = _registry_session({"ok": True, "data": sample_raw})
        state = TopologyState(Settings(registry_url="http://reg/api", request_timeout=2), session=session)
        assert state.refresh() is True
        session.get.assert_called_once_with("http://reg/api", timeout=2)
        assert len(state.current().nodes) == 5

    def test_registry_failure(self, sample_raw):
        session = mock.Mock()
        session.get.side_effect = requests.ConnectionError("down")
        state = TopologyState(Settings(registry_url="http://reg/api"), session=session)
        state.replace_nodes(sample_raw)
        assert state.refresh() is False
        assert len(state.current().nodes) == 5

    def test_no_source(self):
        state = TopologyState(Settings())
        assert state.refresh() is False
        state.start()
        assert state._thread is None

    def test_connections_respect_settings(self, sample_raw, now):
        state = TopologyState(Settings(max_connections=0))
        state.replace_nodes(sample_raw)
        assert state.connections(now=now) == []
        assert state.country_connections("US", now=now) == []

    def test_active_window_of_zero_marks_everything_inactive(self, sample_raw, now):
        state = TopologyState(Settings(active_window_sec=0))
        state.replace_nodes(sample_raw)
        assert [e.kind for e in state.country_connections("US", now=now)] == ["bidirectional-inactive"]

    def test_country_connections(self, sample_raw, now):
        state = TopologyState(Settings())
        state.replace_nodes(sample_raw)
        edges = state.country_connections("us", now=now)
        assert [e.key for e in edges] == ["10.0.0.1:9001|10.0.0.2:9001"]
        assert all(e.drawable for e in edges)
        assert state.country_connections("ZZ", now=now) == []

    def test_overview(self, sample_raw, now):
        state = TopologyState(Settings())
        state.replace_nodes(sample_raw)
        ov = state.overview(now=now)
        assert ov["totals"]["nodes"] == 5
        assert ov["regions"]["Europe"]["total_nodes"] == 2
        assert sum(ov["connections"].values()) == 1


class TestStateService:
    @pytest.fixture
    def client(self):
        from fastapi.testclient import TestClient
        return TestClient(make_app(TopologyState(Settings())))

    def test_push_then_read(self, client, sample_raw):
        r = client.post("/state/nodes", json={"nodes": sample_raw + [{"label": "bad"}]})
        assert r.status_code == 200
        assert r.json() == {"ok": True, "accepted": 5, "received": 6}
        nodes = client.get("/state/nodes").json()
        assert [n["address"] for n in nodes][:2] == ["10.0.0.1:9001", "10.0.0.2:9001"]
        assert client.get("/state/overview").json()["totals"]["countries"] == 2

    def test_rejects_non_list(self, client):
        assert client.post("/state/nodes", json={"foo": 1}).status_code == 400
