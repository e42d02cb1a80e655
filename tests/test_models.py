import pytest

from topo.models import (
    NodeRecord,
    display_name,
    format_uptime,
    ingest_nodes,
    node_from_dict,
    node_to_dict,
    peer_ip,
    short_version,
)


class TestPeerIp:
    def test_strips_port(self):
        assert peer_ip("1.2.3.4:9001") == "1.2.3.4"
        assert peer_ip("1.2.3.4") == "1.2.3.4"

    def test_bracketed_ipv6(self):
        assert peer_ip("[2001:db8::1]:9001") == "2001:db8::1"

    def test_empty(self):
        assert peer_ip("") == ""


class TestNodeFromDict:
    def test_registry_shape_is_normalized(self, now):
        node = node_from_dict({
            "address": "10.1.1.1:9001",
            "pubkey": "ABCDEFGHIJKLMNOPQRSTUVWXYZ",
            "status": "online",
            "location": {"country": "Germany", "countryCode": "de", "city": "Berlin", "lat": 52.5, "lng": 13.4},
            "pods": {"pods": [{"address": "10.1.1.2:9001", "last_seen_timestamp": now}]},
            "version": {"version": "0.7.3"},
        })
        assert node.ip == "10.1.1.1"
        assert node.country_code == "DE"
        assert node.coordinates == (13.4, 52.5)
        assert node.peers[0].ip == "10.1.1.2"
        assert node.peers[0].last_seen_timestamp == now
        assert node.version == "0.7.3"
        assert node.label == "10.1.1.1:9001"

    def test_zero_coordinates_are_real_coordinates(self):
        node = node_from_dict({"address": "a:1", "location": {"countryCode": "GH", "lat": 0, "lng": 0}})
        assert node.coordinates == (0.0, 0.0)

    def test_missing_location_defaults_to_unknown(self):
        node = node_from_dict({"address": "a:1"})
        assert node.country_code == "Unknown"
        assert node.country_name == "Unknown"
        assert node.coordinates is None
        assert node.status == "offline"

    @pytest.mark.parametrize("code", ["Unknown", "UNKNOWN", " unknown "])
    def test_literal_unknown_country_code_means_no_code(self, code):
        node = node_from_dict({"address": "a:1", "location": {"country": "Unknown", "countryCode": code}})
        assert node.location.country_code is None
        assert node.country_code == "Unknown"

    def test_unknown_status_becomes_offline(self):
        assert node_from_dict({"address": "a:1", "status": "weird"}).status == "offline"

    def test_flat_peers_win_over_pods(self):
        node = node_from_dict({
            "address": "a:1",
            "peers": [{"address": "b:1", "last_seen_timestamp": 5}],
            "pods": {"pods": [{"address": "c:1"}]},
        })
        assert [p.address for p in node.peers] == ["b:1"]

    def test_to_dict_keeps_wire_keys(self):
        d = node_to_dict(node_from_dict({"address": "a:1", "location": {"countryCode": "FR"}}))
        assert d["location"]["countryCode"] == "FR"
        assert d["stats"] is None
        assert d["peers"] == []


class TestIngest:
    def test_invalid_records_are_skipped(self, make_node, caplog):
        raws = [
            make_node("10.0.0.1"),
            {"label": "no address"},
            make_node("10.0.0.2", lat=120.0, lng=0.0),
            "not a dict",
            make_node("10.0.0.3", status="offline"),
        ]
        nodes = ingest_nodes(raws)
        assert [n.address for n in nodes] == ["10.0.0.1:9001", "10.0.0.3:9001"]
        assert "skipping node #1" in caplog.text

    def test_without_validation_only_address_is_required(self):
        nodes = ingest_nodes([{"address": "a:1", "status": "bogus"}, {"label": "x"}], validate=False)
        assert len(nodes) == 1
        assert nodes[0].status == "offline"

    def test_empty_input(self):
        assert ingest_nodes([]) == []
        assert ingest_nodes(None) == []


class TestDisplay:
    def test_format_uptime(self):
        assert format_uptime(3 * 86400 + 4 * 3600 + 59) == "3d 4h"
        assert format_uptime(2 * 3600 + 5 * 60) == "2h 5m"
        assert format_uptime(7 * 60 + 30) == "7m"
        assert format_uptime(0) == "0m"
        assert format_uptime(None) == "0m"

    def test_short_version(self):
        long = "0.8.0-trynet.20251201.abcdef123456"
        assert short_version(long) == "0.8.0-tr…ef123456"
        assert short_version("0.7.3") == "0.7.3"
        assert short_version(None) == ""

    def test_display_name_prefers_pubkey(self):
        assert display_name(NodeRecord(address="a:1", label="lbl", pubkey="ABCDEFGHIJKLMNOP")) == "ABCD...MNOP"
        assert display_name(NodeRecord(address="a:1", label="lbl")) == "lbl"
