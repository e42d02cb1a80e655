from unittest import mock

import pytest

from topo.api import create_app
from topo.boundaries import BoundaryLayer
from topo.config import Settings
from topo.state import TopologyState

TOPOLOGY = {
    "type": "Topology",
    "objects": {"countries": {"geometries": [
        {"properties": {"name": "United States of America"}},
        {"properties": {"name": "Germany"}},
    ]}},
    "arcs": [],
}


@pytest.fixture
def state(sample_raw):
    st = TopologyState(Settings())
    st.replace_nodes(sample_raw)
    return st


@pytest.fixture
def boundaries():
    session = mock.Mock()
    session.get.return_value = mock.Mock(**{"json.return_value": TOPOLOGY})
    layer = BoundaryLayer("http://geo", session=session)
    layer.load()
    return layer


@pytest.fixture
def client(state, boundaries):
    return create_app(state, boundaries).test_client()


def _data(resp):
    body = resp.get_json()
    assert body["ok"] is True
    return body["data"]


class TestReadEndpoints:
    def test_health(self, client):
        assert _data(client.get("/health"))["nodes"] == 5

    def test_snapshot(self, client, now):
        data = _data(client.get(f"/snapshot?now={now}"))
        assert data["totals"]["unresolved"] == 1
        assert data["connections"]["unidirectional-inactive"] == 1
        assert data["connections"]["bidirectional-active"] == 0

    def test_bad_query_value_is_400(self, client):
        r = client.get("/connections?now=yesterday")
        assert r.status_code == 400
        assert r.get_json()["ok"] is False

    def test_nodes_by_country(self, client):
        nodes = _data(client.get("/nodes?country=de"))
        assert {n["address"] for n in nodes} == {"10.0.0.3:9001", "10.0.0.4:9001"}
        assert nodes[0]["flag"]

    def test_node_detail(self, client):
        node = _data(client.get("/node/10.0.0.1:9001"))
        assert node["display_name"] == "node-10.0.0.1"
        assert client.get("/node/1.2.3.4:1").status_code == 404

    def test_clusters_and_regions(self, client):
        clusters = _data(client.get("/clusters?region=Europe&with_nodes=1"))
        assert [c["country_code"] for c in clusters] == ["DE"]
        assert len(clusters[0]["nodes"]) == 2
        regions = _data(client.get("/regions"))
        assert {r["region"] for r in regions["regions"]} == {"North America", "Europe"}

    def test_connections(self, client, now):
        edges = _data(client.get(f"/connections?now={now}"))
        assert [e["key"] for e in edges] == ["10.0.0.1:9001|10.0.0.3:9001"]
        drawable = _data(client.get(f"/connections?now={now}&drawable=1"))
        assert [e["key"] for e in drawable] == ["10.0.0.1:9001|10.0.0.3:9001"]
        country = _data(client.get(f"/connections?now={now}&country=US"))
        assert country[0]["type"] == "bidirectional-active"

    def test_positions(self, client):
        pos = _data(client.get("/positions?country=US"))
        assert pos["10.0.0.1:9001"] == [-74.0, 40.0]
        assert client.get("/positions?country=ZZ").status_code == 404

    def test_layout(self, client):
        data = _data(client.get("/layout?width=500&height=400&seed=1"))
        assert len(data["positions"]) == 5

    def test_styles(self, client):
        data = _data(client.get("/styles"))
        assert data["connections"]["unidirectional-active"]["color"] == "#FFCC00"
        assert data["regions"]["Unknown"] == "#6B7280"

    def test_boundaries(self, client):
        data = _data(client.get("/boundaries?include=topology"))
        assert data["status"] == "ready"
        assert data["matches"] == {"United States of America": "US", "Germany": "DE"}
        assert data["topology"]["type"] == "Topology"


class TestViewEndpoint:
    def test_drill_down_and_back(self, client):
        r = _data(client.post("/view", json={"action": "region", "region": "Europe"}))
        assert r["state"]["level"] == "region"
        assert r["title"] == "Europe"
        assert [c["country_code"] for c in r["clusters"]] == ["DE"]

        r = _data(client.post("/view", json={"state": r["state"], "action": "country", "country": "DE"}))
        assert r["state"]["level"] == "country"
        assert r["country"]["country_code"] == "DE"
        assert r["title"] == "Germany"

        r = _data(client.post("/view", json={"state": r["state"], "action": "back"}))
        assert r["state"]["level"] == "region"
        assert r["state"]["region"] == "Europe"

    @pytest.mark.parametrize("body", [
        {"action": "teleport"},
        {"state": {"level": "galaxy"}, "action": "reset"},
        {},
        {"action": "move", "center": [1, 2], "zoom": None},
        {"action": "move", "center": [None, 1]},
        {"action": "move", "center": "1,2"},
        {"state": "world", "action": "reset"},
        {"state": {"camera": [0, 0]}, "action": "reset"},
        {"state": {"level": "region", "region": ["Europe"]}, "action": "back"},
        {"action": "region", "region": {"name": "Europe"}},
        {"action": "country", "country": 49},
        {"action": ["reset"]},
    ])
    def test_bad_requests(self, client, body):
        r = client.post("/view", json=body)
        assert r.status_code == 400
        assert r.get_json()["ok"] is False

    def test_requires_json(self, client):
        assert client.post("/view", data="action=reset").status_code == 400
        assert client.post("/view", json=["reset"]).status_code == 400

    def test_clusters_key_in_body_is_ignored(self, client):
        r = client.post("/view", json={"action": "country", "country": "DE", "clusters": {}})
        assert _data(r)["state"]["country"] == "DE"
