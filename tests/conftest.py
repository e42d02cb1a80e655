from typing import Any, Dict, List, Optional

import pytest

from topo.models import ingest_nodes

NOW = 1_700_000_000.0


def raw_node(
    ip: str,
    status: str = "online",
    code: Optional[str] = "US",
    country: Optional[str] = None,
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    peers: Optional[List[Any]] = None,
    port: int = 9001,
    **extra: Any,
) -> Dict[str, Any]:
    """Registry-shaped node dict. peers: [(ip, age_sec), ...]."""
    node: Dict[str, Any] = {"address": f"{ip}:{port}", "label": f"node-{ip}", "status": status}
    if code is not None:
        node["location"] = {"country": country or code, "countryCode": code, "lat": lat, "lng": lng}
    if peers is not None:
        node["pods"] = {"pods": [
            {"address": f"{pip}:{port}", "last_seen_timestamp": NOW - age} for pip, age in peers
        ]}
    node.update(extra)
    return node


@pytest.fixture
def now() -> float:
    return NOW


@pytest.fixture
def make_node():
    return raw_node


@pytest.fixture
def make_nodes():
    def _make(*raws: Dict[str, Any]):
        return ingest_nodes(list(raws))
    return _make


@pytest.fixture
def sample_raw() -> List[Dict[str, Any]]:
    """Small network: two US nodes, one German, one loading and one unlocated."""
    return [
        raw_node("10.0.0.1", code="US", country="United States", lat=40.0, lng=-74.0,
                 peers=[("10.0.0.2", 10), ("10.0.0.3", 600), ("203.0.113.9", 5)]),
        raw_node("10.0.0.2", status="offline", code="US", country="United States",
                 peers=[("10.0.0.1", 20)]),
        raw_node("10.0.0.3", code="DE", country="Germany", lat=50.1, lng=8.7),
        raw_node("10.0.0.4", status="loading", code="DE", country="Germany", peers=[("10.0.0.1", 1)]),
        raw_node("10.0.0.5", code=None),
    ]


@pytest.fixture
def sample_nodes(sample_raw):
    return ingest_nodes(sample_raw)
