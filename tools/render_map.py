#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Render a static PNG of the topology map: country clusters plus peer edges."""
from __future__ import annotations

import argparse
import time
from pathlib import Path
from typing import Dict, List, Optional

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np

from topo.clusters import aggregate_regions, build_country_clusters
from topo.connections import CONNECTION_STYLES, CONNECTION_TYPES, ConnectionEdge, derive_connections
from topo.models import NodeRecord, ingest_nodes
from topo.validators import load_document, snapshot_nodes


def _dashes(dash_array: str):
    if dash_array == "none":
        return "-"
    return (0, tuple(float(x) for x in dash_array.split(",")))


def cluster_sizes(totals: np.ndarray, min_size: float = 30.0, max_size: float = 600.0) -> np.ndarray:
    """Marker area scaled by sqrt(node count)."""
    if totals.size == 0:
        return totals.astype(float)
    root = np.sqrt(totals.astype(float))
    span = root.max() - root.min()
    if span == 0:
        return np.full(root.shape, (min_size + max_size) / 2.0)
    return min_size + (root - root.min()) / span * (max_size - min_size)


def render(nodes: List[NodeRecord], out_path: Path, now: Optional[float] = None,
           edges: Optional[List[ConnectionEdge]] = None, title: str = "pNode topology") -> Dict[str, int]:
    """Draw the map to out_path; returns how many clusters and edges were drawn."""
    now = time.time() if now is None else now
    clusters = build_country_clusters(nodes)
    if edges is None:
        edges = derive_connections(nodes, now=now)
    drawable = [e for e in edges if e.drawable]

    fig, ax = plt.subplots(figsize=(14, 7))
    ax.set_xlim(-180, 180)
    ax.set_ylim(-90, 90)
    ax.set_aspect("equal")
    ax.set_facecolor("#0B1020")
    ax.grid(True, linestyle="--", alpha=0.15)

    for kind in CONNECTION_TYPES:
        style = CONNECTION_STYLES[kind]
        group = [e for e in drawable if e.kind == kind]
        for i, e in enumerate(group):
            ax.plot([e.source_pos[0], e.target_pos[0]], [e.source_pos[1], e.target_pos[1]],
                    color=style.color, linestyle=_dashes(style.dash_array), linewidth=style.width * 0.5,
                    alpha=0.6, label=kind if i == 0 else None)

    for region, agg in sorted(aggregate_regions(clusters).items()):
        xy = np.array([c.coordinates for c in agg.clusters], dtype=float)
        totals = np.array([c.total for c in agg.clusters])
        ax.scatter(xy[:, 0], xy[:, 1], s=cluster_sizes(totals), color=agg.color,
                   edgecolors="white", linewidths=0.5, alpha=0.85, zorder=3,
                   label=f"{region} ({agg.total_nodes})")
        for c in agg.clusters:
            ax.annotate(str(c.total), c.coordinates, color="white", fontsize=7,
                        ha="center", va="center", zorder=4)

    ax.set_title(f"{title}: {len(nodes)} nodes, {len(clusters)} countries, {len(drawable)} links")
    ax.set_xlabel("longitude")
    ax.set_ylabel("latitude")
    if clusters or drawable:
        ax.legend(loc="lower left", fontsize=7, framealpha=0.6)
    fig.tight_layout()
    out_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out_path, dpi=150)
    plt.close(fig)
    return {"clusters": len(clusters), "edges": len(drawable)}


def main():
    ap = argparse.ArgumentParser(description="Render the topology map to PNG")
    ap.add_argument("snapshot", help="Snapshot file (JSON/YAML)")
    ap.add_argument("--out", default="sim/topology.png")
    ap.add_argument("--now", type=float, default=None, help="Reference unix time for link activity (default: now)")
    ap.add_argument("--no-edges", action="store_true", help="Draw clusters only")
    args = ap.parse_args()

    nodes = ingest_nodes(snapshot_nodes(load_document(Path(args.snapshot))))
    counts = render(nodes, Path(args.out), now=args.now, edges=[] if args.no_edges else None)
    print(f"Wrote {args.out} ({counts['clusters']} clusters, {counts['edges']} edges)")


if __name__ == "__main__":
    main()
