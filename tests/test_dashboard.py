from unittest import mock

import pytest
import requests

from topo.config import Settings
from topo.state import TopologyState
from ui.dashboard import create_dashboard


@pytest.fixture
def embedded(sample_raw):
    state = TopologyState(Settings())
    state.replace_nodes(sample_raw)
    return create_dashboard(Settings(), state=state).test_client()


class TestEmbedded:
    def test_index(self, embedded):
        r = embedded.get("/")
        assert r.status_code == 200
        assert "text/html" in r.headers["Content-Type"]
        assert "embedded topology state" in r.get_data(as_text=True)

    def test_api_is_mounted(self, embedded):
        r = embedded.get("/api/health")
        assert r.status_code == 200
        assert r.get_json()["data"]["nodes"] == 5

    def test_view_through_mount(self, embedded):
        r = embedded.post("/api/view", json={"action": "region", "region": "Europe"})
        assert r.get_json()["data"]["state"]["level"] == "region"


class TestRemote:
    def _client(self, session):
        settings = Settings(remote="http://remote:8080/", request_timeout=4)
        return create_dashboard(settings, session=session).test_client()

    def test_proxies_get(self):
        session = mock.Mock()
        session.request.return_value = mock.Mock(status_code=200, **{"json.return_value": {"ok": True, "data": 7}})
        client = self._client(session)
        r = client.get("/api/connections?country=US")
        assert r.get_json() == {"ok": True, "data": 7}
        session.request.assert_called_once_with(
            "GET", "http://remote:8080/connections", timeout=4, params={"country": "US"})
        assert "remote API @ http://remote:8080" in client.get("/").get_data(as_text=True)

    def test_proxies_post_body(self):
        session = mock.Mock()
        session.request.return_value = mock.Mock(status_code=400, **{"json.return_value": {"ok": False}})
        r = self._client(session).post("/api/view", json={"action": "nope"})
        assert r.status_code == 400
        assert session.request.call_args.kwargs["json"] == {"action": "nope"}

    def test_upstream_down_is_502(self):
        session = mock.Mock()
        session.request.side_effect = requests.ConnectionError("refused")
        r = self._client(session).get("/api/health")
        assert r.status_code == 502
        assert "remote request failed" in r.get_json()["error"]

    def test_upstream_non_json_is_502(self):
        session = mock.Mock()
        session.request.return_value = mock.Mock(status_code=500, **{"json.side_effect": ValueError("html")})
        assert self._client(session).get("/api/health").status_code == 502
