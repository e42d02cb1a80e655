#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
topo/connections.py: peer connection edges for the topology map.

Each node reports a peer list ({address, last_seen_timestamp}). An edge is
emitted once per unordered node pair and tagged with:

- direction: bidirectional when the target's own peer list names the source
- activity:  active when the reporting peer entry was seen < 300 s ago

The edge count is capped (MAX_CONNECTIONS); candidates past the cap are
dropped without any marker in the result.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .models import NodeRecord, peer_ip
from .layout import node_position

log = logging.getLogger(__name__)

ACTIVE_WINDOW_SEC = 300
MAX_CONNECTIONS = 500

BIDIRECTIONAL_ACTIVE = "bidirectional-active"
BIDIRECTIONAL_INACTIVE = "bidirectional-inactive"
UNIDIRECTIONAL_ACTIVE = "unidirectional-active"
UNIDIRECTIONAL_INACTIVE = "unidirectional-inactive"
CONNECTION_TYPES = (
    BIDIRECTIONAL_ACTIVE,
    BIDIRECTIONAL_INACTIVE,
    UNIDIRECTIONAL_ACTIVE,
    UNIDIRECTIONAL_INACTIVE,
)

Coord = Tuple[float, float]


@dataclass(frozen=True)
class ConnectionStyle:
    color: str
    dash_array: str
    width: float

    def as_dict(self) -> Dict[str, Any]:
        return {"color": self.color, "dash_array": self.dash_array, "width": self.width}


CONNECTION_STYLES: Dict[str, ConnectionStyle] = {
    BIDIRECTIONAL_ACTIVE: ConnectionStyle("#00CCCC", "none", 2.5),
    BIDIRECTIONAL_INACTIVE: ConnectionStyle("#6699FF", "8,4", 2.0),
    UNIDIRECTIONAL_ACTIVE: ConnectionStyle("#FFCC00", "4,4", 2.0),
    UNIDIRECTIONAL_INACTIVE: ConnectionStyle("#666666", "2,4", 1.5),
}


@dataclass(frozen=True)
class ConnectionEdge:
    source: str
    target: str
    kind: str
    last_seen: float
    source_country: str
    target_country: str
    source_pos: Optional[Coord] = None
    target_pos: Optional[Coord] = None

    @property
    def key(self) -> str:
        return link_key(self.source, self.target)

    @property
    def bidirectional(self) -> bool:
        return self.kind.startswith("bidirectional")

    @property
    def active(self) -> bool:
        return self.kind.endswith("-active")

    @property
    def drawable(self) -> bool:
        return self.source_pos is not None and self.target_pos is not None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "source": self.source,
            "target": self.target,
            "type": self.kind,
            "last_seen": self.last_seen,
            "source_country": self.source_country,
            "target_country": self.target_country,
            "from": list(self.source_pos) if self.source_pos else None,
            "to": list(self.target_pos) if self.target_pos else None,
        }


def link_key(a: str, b: str) -> str:
    return "|".join(sorted([a, b]))


def classify(bidirectional: bool, active: bool) -> str:
    if bidirectional:
        return BIDIRECTIONAL_ACTIVE if active else BIDIRECTIONAL_INACTIVE
    return UNIDIRECTIONAL_ACTIVE if active else UNIDIRECTIONAL_INACTIVE


def is_active(last_seen: float, now: float, window: float = ACTIVE_WINDOW_SEC) -> bool:
    return now - last_seen < window


def build_peer_lookup(nodes: Iterable[NodeRecord]) -> Dict[str, Set[str]]:
    """Node IP -> IPs it lists as peers. Nodes without peers are absent."""
    lookup: Dict[str, Set[str]] = {}
    for node in nodes:
        if not node.peers:
            continue
        lookup[node.ip] = {p.ip for p in node.peers}
    return lookup


def _index_by_ip(nodes: Iterable[NodeRecord]) -> Dict[str, NodeRecord]:
    index: Dict[str, NodeRecord] = {}
    for node in nodes:
        index.setdefault(node.ip, node)
    return index


def _collect(
    sources: Sequence[NodeRecord],
    index: Dict[str, NodeRecord],
    peer_lookup: Dict[str, Set[str]],
    now: float,
    max_edges: int,
    positions: Optional[Dict[str, Coord]],
    window: float,
) -> List[ConnectionEdge]:
    edges: List[ConnectionEdge] = []
    emitted: Set[str] = set()
    dropped = 0
    unmatched = 0

    for node in sources:
        for peer in node.peers:
            target = index.get(peer.ip)
            if target is None:
                unmatched += 1
                continue
            if target.address == node.address:
                continue
            key = link_key(node.address, target.address)
            if key in emitted:
                continue
            if len(edges) >= max_edges:
                dropped += 1
                continue
            emitted.add(key)

            bidirectional = node.ip in peer_lookup.get(target.ip, ())
            if positions is None:
                src_pos, dst_pos = node.coordinates, target.coordinates
            else:
                src_pos, dst_pos = positions.get(node.address), positions.get(target.address)
            edges.append(
                ConnectionEdge(
                    source=node.address,
                    target=target.address,
                    kind=classify(bidirectional, is_active(peer.last_seen_timestamp, now, window)),
                    last_seen=peer.last_seen_timestamp,
                    source_country=node.country_code,
                    target_country=target.country_code,
                    source_pos=src_pos,
                    target_pos=dst_pos,
                )
            )

    if unmatched:
        log.debug("skipped %d peer entries with no matching node", unmatched)
    if dropped:
        log.debug("connection cap %d reached; %d candidate edges dropped", max_edges, dropped)
    return edges


def derive_connections(
    nodes: Sequence[NodeRecord],
    now: Optional[float] = None,
    max_edges: int = MAX_CONNECTIONS,
    peer_lookup: Optional[Dict[str, Set[str]]] = None,
    window: float = ACTIVE_WINDOW_SEC,
) -> List[ConnectionEdge]:
    """
    Network-wide edges between located, non-loading nodes, so every edge
    counted against the cap can be drawn. The bidirectional check still uses
    the peer lists of the whole network.
    """
    now = time.time() if now is None else now
    located = [n for n in nodes if n.status != "loading" and n.coordinates is not None]
    lookup = peer_lookup if peer_lookup is not None else build_peer_lookup(nodes)
    return _collect(located, _index_by_ip(located), lookup, now, max(0, max_edges), None, window)


def derive_country_connections(
    cluster,
    peer_lookup: Dict[str, Set[str]],
    now: Optional[float] = None,
    max_edges: int = MAX_CONNECTIONS,
    window: float = ACTIVE_WINDOW_SEC,
) -> List[ConnectionEdge]:
    """
    Edges between members of one CountryCluster, placed with real coordinates
    or the grid fallback. `peer_lookup` is the network-wide lookup from
    build_peer_lookup, so a reverse peer outside the country still counts.
    """
    now = time.time() if now is None else now
    members = list(cluster.nodes)
    total = len(members)
    positions = {
        n.address: node_position(n, i, total, cluster.coordinates)
        for i, n in enumerate(members)
    }
    return _collect(members, _index_by_ip(members), peer_lookup, now, max(0, max_edges), positions, window)


def summarize_edges(edges: Iterable[ConnectionEdge]) -> Dict[str, int]:
    counts = {t: 0 for t in CONNECTION_TYPES}
    for e in edges:
        counts[e.kind] += 1
    return counts
