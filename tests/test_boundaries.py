from unittest import mock

import pytest
import requests

from topo.boundaries import (
    ERROR,
    IDLE,
    READY,
    BoundaryFetchError,
    BoundaryLayer,
    fetch_topology,
    geography_names,
    match_geographies,
)
from topo.clusters import build_country_clusters

TOPOLOGY = {
    "type": "Topology",
    "objects": {"countries": {"type": "GeometryCollection", "geometries": [
        {"type": "Polygon", "arcs": [[0]], "properties": {"name": "United States of America"}},
        {"type": "Polygon", "arcs": [[1]], "properties": {"name": "Germany"}},
        {"type": "Polygon", "arcs": [[2]], "properties": {"name": "France"}},
        {"type": "Polygon", "arcs": [[3]], "properties": {}},
    ]}},
    "arcs": [],
}


def _session(payload=None, exc=None):
    session = mock.Mock()
    if exc is not None:
        session.get.side_effect = exc
    else:
        resp = mock.Mock()
        resp.json.return_value = payload
        resp.raise_for_status.return_value = None
        session.get.return_value = resp
    return session


class TestFetch:
    def test_ok(self):
        session = _session(TOPOLOGY)
        assert fetch_topology("http://geo", timeout=3, session=session) is TOPOLOGY
        session.get.assert_called_once_with("http://geo", timeout=3)

    def test_network_error(self):
        with pytest.raises(BoundaryFetchError):
            fetch_topology("http://geo", session=_session(exc=requests.ConnectionError("down")))

    def test_not_a_topology(self):
        with pytest.raises(BoundaryFetchError):
            fetch_topology("http://geo", session=_session({"type": "FeatureCollection"}))

    def test_not_json(self):
        session = _session()
        session.get.return_value.json.side_effect = ValueError("no json")
        with pytest.raises(BoundaryFetchError):
            fetch_topology("http://geo", session=session)


def test_geography_names_skips_unnamed():
    assert geography_names(TOPOLOGY) == ["United States of America", "Germany", "France"]
    assert geography_names({}) == []


def test_match_geographies_uses_aliases(sample_nodes):
    matches = match_geographies(geography_names(TOPOLOGY), build_country_clusters(sample_nodes))
    assert matches == {"United States of America": "US", "Germany": "DE"}


class TestBoundaryLayer:
    def test_loads_once(self):
        session = _session(TOPOLOGY)
        layer = BoundaryLayer("http://geo", session=session)
        assert layer.status == IDLE
        assert layer.load() == READY
        assert layer.load() == READY
        assert session.get.call_count == 1
        assert layer.names()[0] == "United States of America"
        assert layer.describe()["fetched_at"] is not None

    def test_force_reload(self):
        session = _session(TOPOLOGY)
        layer = BoundaryLayer("http://geo", session=session)
        layer.load()
        layer.load(force=True)
        assert session.get.call_count == 2

    def test_failure_is_a_visible_state(self):
        layer = BoundaryLayer("http://geo", session=_session(exc=requests.Timeout("slow")))
        assert layer.load() == ERROR
        info = layer.describe()
        assert info["status"] == ERROR
        assert "slow" in info["error"]
        assert layer.topology() is None
        assert layer.names() == []

    def test_retry_after_error(self):
        session = _session(exc=requests.ConnectionError("down"))
        layer = BoundaryLayer("http://geo", session=session)
        layer.load()
        session.get.side_effect = None
        session.get.return_value = mock.Mock(**{"json.return_value": TOPOLOGY})
        assert layer.load() == READY

    def test_defaults_to_bundled_url(self):
        from topo import geo
        assert BoundaryLayer().url == geo.geography_url()
