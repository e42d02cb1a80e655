#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
topo/layout.py: marker placement.

- grid_position(): synthetic grid around a country centroid for nodes that
  carry no coordinates of their own (keeps markers from stacking).
- force_layout(): the 2D network view; region-seeded ring + repulsion,
  seeded so the same node list always lands in the same place.
"""

from __future__ import annotations

import math
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from . import geo
from .models import NodeRecord

Coord = Tuple[float, float]

MAX_SPREAD_LNG = 6.0
BASE_SPREAD_LNG = 2.0
SPREAD_PER_NODE = 0.2
LAT_ASPECT = 0.6


# -----------------------------
# Grid fallback
# -----------------------------

def grid_dimensions(total: int) -> Tuple[int, int]:
    if total <= 0:
        return 0, 0
    cols = math.ceil(math.sqrt(total))
    rows = math.ceil(total / cols)
    return cols, rows


def grid_position(index: int, total: int, center: Coord) -> Coord:
    """(lng, lat) of grid cell `index` out of `total`, centred on `center`."""
    center_lng, center_lat = float(center[0]), float(center[1])
    cols, rows = grid_dimensions(max(1, total))
    col = index % cols
    row = index // cols

    spread_lng = min(MAX_SPREAD_LNG, BASE_SPREAD_LNG + total * SPREAD_PER_NODE)
    spread_lat = spread_lng * LAT_ASPECT

    if cols > 1:
        lng = center_lng - spread_lng / 2 + col * (spread_lng / (cols - 1))
    else:
        lng = center_lng
    if rows > 1:
        lat = center_lat - spread_lat / 2 + row * (spread_lat / (rows - 1))
    else:
        lat = center_lat
    return lng, lat


def node_position(node: NodeRecord, index: int, total: int, center: Coord) -> Coord:
    coords = node.coordinates
    if coords is not None:
        return coords
    return grid_position(index, total, center)


def country_positions(cluster) -> Dict[str, Coord]:
    """address -> (lng, lat) for every member of a CountryCluster."""
    total = len(cluster.nodes)
    return {
        n.address: node_position(n, i, total, cluster.coordinates)
        for i, n in enumerate(cluster.nodes)
    }


# -----------------------------
# Force-directed 2D view
# -----------------------------

MIN_DIST = 60.0
REPULSION = 0.5
CENTER_PULL = 0.001
STEP = 0.1
DAMPING = 0.9
MARGIN = 30.0
RING_FRACTION = 0.35
RING_JITTER = 25.0


def _region_index(node: NodeRecord) -> int:
    region = geo.region_for_country(node.location.country_code if node.location else None)
    order = list(geo.REGION_NAMES) + [geo.UNKNOWN]
    return order.index(region)


def initial_positions(nodes: Sequence[NodeRecord], width: float, height: float,
                      rng: Optional[np.random.Generator] = None) -> np.ndarray:
    n = len(nodes)
    if n == 0:
        return np.zeros((0, 2))
    rng = rng or np.random.default_rng(0)
    n_regions = len(geo.REGION_NAMES) + 1
    radius = min(width, height) * RING_FRACTION
    cx, cy = width / 2.0, height / 2.0

    angles = np.arange(n) / n * 2.0 * math.pi
    region_angles = np.array([_region_index(nd) for nd in nodes]) / n_regions * 2.0 * math.pi
    jitter = rng.uniform(-RING_JITTER, RING_JITTER, size=n)
    theta = angles + region_angles * 0.3
    r = radius + jitter
    return np.column_stack((cx + np.cos(theta) * r, cy + np.sin(theta) * r))


def force_layout(nodes: Sequence[NodeRecord], width: float = 800.0, height: float = 600.0,
                 iterations: int = 120, seed: int = 0) -> Dict[str, Coord]:
    """
    Relax a region-seeded ring: nodes closer than MIN_DIST push apart, a weak
    pull keeps everything near the centre, positions stay MARGIN inside the box.
    """
    if not nodes:
        return {}
    pos = initial_positions(nodes, width, height, np.random.default_rng(seed))
    vel = np.zeros_like(pos)
    center = np.array([width / 2.0, height / 2.0])
    lo = np.array([MARGIN, MARGIN])
    hi = np.array([max(MARGIN, width - MARGIN), max(MARGIN, height - MARGIN)])

    for _ in range(max(0, iterations)):
        delta = pos[:, None, :] - pos[None, :, :]
        dist = np.sqrt((delta ** 2).sum(axis=2))
        dist[dist == 0] = 1.0
        force = np.where(dist < MIN_DIST, (MIN_DIST - dist) / dist * REPULSION, 0.0)
        np.fill_diagonal(force, 0.0)
        vel += (delta * force[:, :, None]).sum(axis=1)
        vel += (center - pos) * CENTER_PULL
        pos = np.clip(pos + vel * STEP, lo, hi)
        vel *= DAMPING

    return {nd.address: (float(p[0]), float(p[1])) for nd, p in zip(nodes, pos)}


def region_links(nodes: Sequence[NodeRecord], per_node: int = 2) -> List[Tuple[str, str]]:
    """Link each online node to its first `per_node` same-region online peers."""
    online = [n for n in nodes if n.is_online]
    regions = {n.address: geo.region_for_country(n.country_code) for n in online}
    seen = set()
    links: List[Tuple[str, str]] = []
    for node in online:
        same = [o for o in online if o.address != node.address and regions[o.address] == regions[node.address]]
        for other in same[:per_node]:
            key = tuple(sorted((node.address, other.address)))
            if key in seen:
                continue
            seen.add(key)
            links.append((node.address, other.address))
    return links
