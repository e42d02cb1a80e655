from topo import geo
from topo.clusters import (
    aggregate_regions,
    build_country_clusters,
    count_unresolved,
    network_totals,
)


class TestCountryClusters:
    def test_groups_by_country_and_drops_unknown(self, sample_nodes):
        clusters = build_country_clusters(sample_nodes)
        assert set(clusters) == {"US", "DE"}
        us = clusters["US"]
        assert us.country_name == "United States"
        assert us.region == "North America"
        assert us.coordinates == geo.centroid_for_country("US")
        assert (us.online_count, us.offline_count, us.total) == (1, 1, 2)

    def test_loading_counts_as_offline(self, sample_nodes):
        de = build_country_clusters(sample_nodes)["DE"]
        assert (de.online_count, de.offline_count) == (1, 1)

    def test_counts_add_up(self, sample_nodes):
        clusters = build_country_clusters(sample_nodes)
        for c in clusters.values():
            assert c.online_count + c.offline_count == c.total
        clustered = sum(c.total for c in clusters.values())
        assert clustered + count_unresolved(sample_nodes) == len(sample_nodes)

    def test_unknown_country_code_lands_at_origin(self, make_nodes, make_node):
        clusters = build_country_clusters(make_nodes(make_node("10.0.0.9", code="ZZ")))
        assert clusters["ZZ"].coordinates == (0.0, 0.0)
        assert clusters["ZZ"].region == geo.UNKNOWN

    def test_literal_unknown_code_is_not_a_cluster(self, make_nodes, make_node):
        nodes = make_nodes(make_node("10.0.0.1", code="Unknown"), make_node("10.0.0.2", code="unknown"))
        assert build_country_clusters(nodes) == {}
        assert count_unresolved(nodes) == 2

    def test_empty(self):
        assert build_country_clusters([]) == {}

    def test_as_dict(self, sample_nodes):
        d = build_country_clusters(sample_nodes)["US"].as_dict(with_nodes=True)
        assert d["total"] == 2
        assert d["nodes"] == ["10.0.0.1:9001", "10.0.0.2:9001"]
        assert d["flag"] == geo.flag_emoji("US")


class TestRegions:
    def test_region_totals_match_clusters(self, sample_nodes):
        clusters = build_country_clusters(sample_nodes)
        regions = aggregate_regions(clusters)
        assert set(regions) == {"North America", "Europe"}
        assert sum(r.total_nodes for r in regions.values()) == sum(c.total for c in clusters.values())
        assert regions["Europe"].online_nodes == 1
        assert regions["Europe"].color == geo.region_color("Europe")
        assert regions["Europe"].as_dict()["countries"] == ["DE"]

    def test_empty(self):
        assert aggregate_regions({}) == {}


class TestNetworkTotals:
    def test_totals(self, sample_nodes):
        totals = network_totals(sample_nodes, build_country_clusters(sample_nodes))
        assert totals == {
            "nodes": 5,
            "online": 3,
            "offline": 2,
            "countries": 2,
            "unresolved": 1,
            "locations_pending": False,
        }

    def test_locations_pending_when_nothing_resolves(self, make_nodes, make_node):
        nodes = make_nodes(make_node("10.0.0.1", code=None), make_node("10.0.0.2", code=None))
        assert network_totals(nodes, build_country_clusters(nodes))["locations_pending"] is True
        assert network_totals([], {})["locations_pending"] is False
