#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Country clusters and continent-level region aggregates."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Tuple

from . import geo
from .models import UNKNOWN_COUNTRY, NodeRecord


@dataclass
class CountryCluster:
    country_code: str
    country_name: str
    region: str
    coordinates: Tuple[float, float]
    nodes: List[NodeRecord] = field(default_factory=list)
    online_count: int = 0
    offline_count: int = 0

    @property
    def total(self) -> int:
        return len(self.nodes)

    def add(self, node: NodeRecord) -> None:
        self.nodes.append(node)
        if node.is_online:
            self.online_count += 1
        else:
            self.offline_count += 1

    def as_dict(self, with_nodes: bool = False) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "country_code": self.country_code,
            "country_name": self.country_name,
            "region": self.region,
            "coordinates": list(self.coordinates),
            "total": self.total,
            "online": self.online_count,
            "offline": self.offline_count,
            "flag": geo.flag_emoji(self.country_code),
        }
        if with_nodes:
            d["nodes"] = [n.address for n in self.nodes]
        return d


@dataclass
class RegionAggregate:
    region: str
    clusters: List[CountryCluster] = field(default_factory=list)
    total_nodes: int = 0
    online_nodes: int = 0

    @property
    def color(self) -> str:
        return geo.region_color(self.region)

    @property
    def preset(self) -> geo.CameraPreset:
        return geo.region_preset(self.region)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "region": self.region,
            "color": self.color,
            "preset": self.preset.as_dict(),
            "total_nodes": self.total_nodes,
            "online_nodes": self.online_nodes,
            "countries": [c.country_code for c in self.clusters],
        }


def _group_by_country(nodes: Iterable[NodeRecord]) -> Dict[str, CountryCluster]:
    clusters: Dict[str, CountryCluster] = {}
    for node in nodes:
        code = node.country_code
        cluster = clusters.get(code)
        if cluster is None:
            cluster = CountryCluster(
                country_code=code,
                country_name=node.country_name,
                region=geo.region_for_country(code) if code != UNKNOWN_COUNTRY else geo.UNKNOWN,
                coordinates=geo.centroid_for_country(code),
            )
            clusters[code] = cluster
        cluster.add(node)
    return clusters


def build_country_clusters(nodes: Iterable[NodeRecord]) -> Dict[str, CountryCluster]:
    """
    Group nodes by country code. Nodes without a country land in "Unknown",
    which is left out of the result: it has no place on the map.
    """
    clusters = _group_by_country(nodes)
    clusters.pop(UNKNOWN_COUNTRY, None)
    return clusters


def count_unresolved(nodes: Iterable[NodeRecord]) -> int:
    return sum(1 for n in nodes if n.country_code == UNKNOWN_COUNTRY)


def aggregate_regions(clusters: Dict[str, CountryCluster]) -> Dict[str, RegionAggregate]:
    regions: Dict[str, RegionAggregate] = {}
    for cluster in clusters.values():
        agg = regions.get(cluster.region)
        if agg is None:
            agg = RegionAggregate(region=cluster.region)
            regions[cluster.region] = agg
        agg.clusters.append(cluster)
        agg.total_nodes += cluster.total
        agg.online_nodes += cluster.online_count
    return regions


def network_totals(nodes: List[NodeRecord], clusters: Dict[str, CountryCluster]) -> Dict[str, Any]:
    online = sum(1 for n in nodes if n.is_online)
    return {
        "nodes": len(nodes),
        "online": online,
        "offline": len(nodes) - online,
        "countries": len(clusters),
        "unresolved": count_unresolved(nodes),
        # nodes are known but none has resolved a location yet
        "locations_pending": bool(nodes) and not clusters,
    }
