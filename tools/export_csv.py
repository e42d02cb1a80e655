#!/usr/bin/env python3
"""
Export a pNode snapshot as flat CSV tables for spreadsheets/notebooks.

Inputs
------
A snapshot file (JSON/YAML) as written by sim/gen_nodes.py or fetched from
the registry: a node list or {"nodes": [...]}.

Outputs (written to --outdir)
-----------------------------
- clusters.csv   one row per country cluster (counts, region, centroid)
- regions.csv    one row per region (nodes, online, countries, online share)
- edges.csv      one row per connection edge (type, endpoints, age_sec)
- edge_ages.csv  (optional) empirical CDF of peer-entry age per edge type

Usage
-----
python3 -m tools.export_csv sim/snapshot.json --outdir sim/exports
python3 -m tools.export_csv sim/snapshot.json --now 1735000000 --write-ages --outdir sim/exports
"""

from __future__ import annotations
import argparse
import time
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from topo.clusters import CountryCluster, aggregate_regions, build_country_clusters
from topo.connections import ConnectionEdge, derive_connections
from topo.models import NodeRecord, ingest_nodes
from topo.validators import load_document, snapshot_nodes

# ----------------------- frames -----------------------

CLUSTER_COLUMNS = ["country_code", "country_name", "region", "lng", "lat", "total", "online", "offline"]
REGION_COLUMNS = ["region", "nodes", "online", "countries", "online_share"]
EDGE_COLUMNS = ["key", "source", "target", "type", "source_country", "target_country", "last_seen", "age_sec", "drawable"]


def clusters_frame(clusters: Dict[str, CountryCluster]) -> pd.DataFrame:
    rows = [{
        "country_code": c.country_code,
        "country_name": c.country_name,
        "region": c.region,
        "lng": c.coordinates[0],
        "lat": c.coordinates[1],
        "total": c.total,
        "online": c.online_count,
        "offline": c.offline_count,
    } for c in clusters.values()]
    df = pd.DataFrame(rows, columns=CLUSTER_COLUMNS)
    return df.sort_values(["total", "country_code"], ascending=[False, True], ignore_index=True)


def regions_frame(clusters: Dict[str, CountryCluster]) -> pd.DataFrame:
    rows = [{
        "region": agg.region,
        "nodes": agg.total_nodes,
        "online": agg.online_nodes,
        "countries": len(agg.clusters),
    } for agg in aggregate_regions(clusters).values()]
    df = pd.DataFrame(rows, columns=REGION_COLUMNS[:-1])
    nodes = df["nodes"].to_numpy(dtype=float)
    df["online_share"] = np.divide(df["online"].to_numpy(dtype=float), nodes,
                                   out=np.zeros_like(nodes), where=nodes > 0)
    return df.sort_values("nodes", ascending=False, ignore_index=True)


def edges_frame(edges: List[ConnectionEdge], now: float) -> pd.DataFrame:
    rows = [{
        "key": e.key,
        "source": e.source,
        "target": e.target,
        "type": e.kind,
        "source_country": e.source_country,
        "target_country": e.target_country,
        "last_seen": e.last_seen,
        "age_sec": now - e.last_seen,
        "drawable": e.drawable,
    } for e in edges]
    return pd.DataFrame(rows, columns=EDGE_COLUMNS)


def empirical_cdf(series: pd.Series, points: int = 100) -> pd.DataFrame:
    s = series.dropna().sort_values().to_numpy()
    if s.size == 0:
        return pd.DataFrame({"age_sec": [], "cdf": []})
    xs = np.linspace(0, 1, num=points, endpoint=True)
    idx = np.clip((xs * (s.size - 1)).astype(int), 0, s.size - 1)
    return pd.DataFrame({"age_sec": s[idx], "cdf": xs})


def age_cdfs(edges: pd.DataFrame) -> pd.DataFrame:
    blocks = []
    for kind, sub in edges.groupby("type"):
        cdf = empirical_cdf(sub["age_sec"])
        cdf.insert(0, "type", kind)
        blocks.append(cdf)
    return pd.concat(blocks, ignore_index=True) if blocks else pd.DataFrame(columns=["type", "age_sec", "cdf"])


def export_tables(nodes: List[NodeRecord], outdir: Path, now: Optional[float] = None,
                  write_ages: bool = False) -> Dict[str, Path]:
    """Write the CSV tables; returns name -> path of every file written."""
    now = time.time() if now is None else now
    outdir.mkdir(parents=True, exist_ok=True)
    clusters = build_country_clusters(nodes)
    edges = edges_frame(derive_connections(nodes, now=now), now)

    written: Dict[str, Path] = {}
    for name, df in (("clusters", clusters_frame(clusters)),
                     ("regions", regions_frame(clusters)),
                     ("edges", edges)):
        path = outdir / f"{name}.csv"
        df.to_csv(path, index=False)
        written[name] = path
    if write_ages:
        path = outdir / "edge_ages.csv"
        age_cdfs(edges).to_csv(path, index=False)
        written["edge_ages"] = path
    return written

# ----------------------- main -----------------------

def main():
    ap = argparse.ArgumentParser(description="Export a pNode snapshot as CSV tables")
    ap.add_argument("snapshot", help="Snapshot file (JSON/YAML)")
    ap.add_argument("--outdir", default="sim/exports", help="Output directory")
    ap.add_argument("--now", type=float, default=None, help="Reference unix time for link activity (default: now)")
    ap.add_argument("--write-ages", action="store_true", help="Also write edge_ages.csv")
    args = ap.parse_args()

    nodes = ingest_nodes(snapshot_nodes(load_document(Path(args.snapshot))))
    if not nodes:
        raise SystemExit(f"Error: no nodes found in {args.snapshot}")

    for path in export_tables(nodes, Path(args.outdir), now=args.now, write_ages=args.write_ages).values():
        print("Wrote:", path.as_posix())

if __name__ == "__main__":
    main()
