#!/usr/bin/env python3
"""
Summarize a pNode snapshot (JSON/YAML node list).

Examples
--------
# Basic console summary
python3 -m tools.summarize_nodes sim/snapshot.json

# Export CSV inventory + Markdown report
python3 -m tools.summarize_nodes sim/snapshot.json --csv sim/nodes_inventory.csv --md sim/nodes_report.md

# JSON dump for other tooling
python3 -m tools.summarize_nodes sim/snapshot.json --json sim/nodes_summary.json

What it reports
---------------
- Totals: nodes, online/offline, countries, nodes without a resolvable country
- Per-region totals and per-country clusters
- Connection classes (bidirectional/unidirectional × active/inactive)
- CPU / uptime aggregates (min/mean/p50/p90/max) for nodes reporting stats
- Version mix
"""

from __future__ import annotations
import argparse, csv, json, math, time
from collections import Counter
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.table import Table

from topo.clusters import aggregate_regions, build_country_clusters, network_totals
from topo.connections import derive_connections, summarize_edges
from topo.models import NodeRecord, format_uptime, ingest_nodes
from topo.validators import load_document, snapshot_nodes

console = Console()

# ----------------- helpers -----------------

def agg_stats(values: List[float]) -> Dict[str, float]:
    vals = [v for v in values if isinstance(v, (int, float)) and not math.isnan(v)]
    if not vals:
        return {"min": 0, "mean": 0, "p50": 0, "p90": 0, "max": 0}
    vals_sorted = sorted(vals)
    def p(q: float) -> float:
        idx = max(0, min(len(vals_sorted)-1, int(round(q*(len(vals_sorted)-1)))))
        return vals_sorted[idx]
    return {
        "min": vals_sorted[0],
        "mean": sum(vals_sorted) / len(vals_sorted),
        "p50": p(0.5),
        "p90": p(0.9),
        "max": vals_sorted[-1],
    }

def node_row(node: NodeRecord) -> Dict[str, Any]:
    loc = node.location
    st = node.stats
    return {
        "address": node.address,
        "label": node.label,
        "status": node.status,
        "pubkey": node.pubkey or "",
        "country_code": node.country_code,
        "city": (loc.city if loc else None) or "",
        "lat": loc.lat if loc else None,
        "lng": loc.lng if loc else None,
        "cpu_percent": st.cpu_percent if st else None,
        "uptime": st.uptime if st else None,
        "peers": len(node.peers),
        "version": node.version or "",
    }

def summarize(nodes: List[NodeRecord], now: Optional[float] = None) -> Dict[str, Any]:
    clusters = build_country_clusters(nodes)
    regions = aggregate_regions(clusters)
    edges = derive_connections(nodes, now=now)
    with_stats = [n for n in nodes if n.stats]
    return {
        "totals": network_totals(nodes, clusters),
        "regions": {r: {"nodes": a.total_nodes, "online": a.online_nodes, "countries": len(a.clusters)}
                    for r, a in sorted(regions.items(), key=lambda kv: -kv[1].total_nodes)},
        "countries": [c.as_dict() for c in sorted(clusters.values(), key=lambda c: -c.total)],
        "connections": summarize_edges(edges),
        "connections_total": len(edges),
        "cpu_percent": agg_stats([n.stats.cpu_percent for n in with_stats]),
        "uptime_sec": agg_stats([n.stats.uptime for n in with_stats]),
        "versions": dict(Counter(n.version or "unknown" for n in nodes).most_common()),
    }

# ----------------- exporters -----------------

def export_csv(path: Path, nodes: List[NodeRecord]):
    rows = [node_row(n) for n in nodes]
    if not rows:
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=list(rows[0].keys()))
        w.writeheader()
        w.writerows(rows)

def export_json(path: Path, summary: Dict[str, Any]):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(summary, indent=2, ensure_ascii=False))

def export_md(path: Path, summary: Dict[str, Any]):
    t = summary["totals"]
    lines = [
        "# pNode snapshot report",
        "",
        f"- Nodes: **{t['nodes']}** ({t['online']} online, {t['offline']} offline)",
        f"- Countries: **{t['countries']}**, unresolved location: {t['unresolved']}",
        f"- Connections: **{summary['connections_total']}**",
        "",
        "## Regions",
        "",
        "| Region | Nodes | Online | Countries |",
        "|---|---:|---:|---:|",
    ]
    for r, d in summary["regions"].items():
        lines.append(f"| {r} | {d['nodes']} | {d['online']} | {d['countries']} |")
    lines += ["", "## Countries", "", "| Country | Region | Nodes | Online | Offline |", "|---|---|---:|---:|---:|"]
    for c in summary["countries"]:
        lines.append(f"| {c['flag']} {c['country_name']} ({c['country_code']}) | {c['region']} | {c['total']} | {c['online']} | {c['offline']} |")
    lines += ["", "## Connections", ""]
    for k, v in summary["connections"].items():
        lines.append(f"- {k}: {v}")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")

# ----------------- console -----------------

def print_summary(summary: Dict[str, Any]):
    t = summary["totals"]
    console.print(f"[bold]Nodes[/bold] {t['nodes']}  online={t['online']}  offline={t['offline']}  "
                  f"countries={t['countries']}  unresolved={t['unresolved']}")

    table = Table(title="Regions")
    for col in ("Region", "Nodes", "Online", "Countries"):
        table.add_column(col, justify="left" if col == "Region" else "right")
    for r, d in summary["regions"].items():
        table.add_row(r, str(d["nodes"]), str(d["online"]), str(d["countries"]))
    console.print(table)

    conn = Table(title=f"Connections ({summary['connections_total']})")
    conn.add_column("Class")
    conn.add_column("Edges", justify="right")
    for k, v in summary["connections"].items():
        conn.add_row(k, str(v))
    console.print(conn)

    cpu = summary["cpu_percent"]
    up = summary["uptime_sec"]
    console.print(f"CPU % (min/mean/p90/max): {cpu['min']:.1f} / {cpu['mean']:.1f} / {cpu['p90']:.1f} / {cpu['max']:.1f}")
    console.print(f"Uptime (p50/max): {format_uptime(up['p50'])} / {format_uptime(up['max'])}")
    console.print("Versions:", summary["versions"])

# ----------------- main -----------------

def main():
    ap = argparse.ArgumentParser(description="Summarize a pNode snapshot")
    ap.add_argument("snapshot", help="Snapshot file (JSON/YAML)")
    ap.add_argument("--now", type=float, default=None, help="Reference unix time for link activity (default: now)")
    ap.add_argument("--csv", default=None, help="Export inventory CSV path")
    ap.add_argument("--json", default=None, help="Export JSON summary path")
    ap.add_argument("--md", default=None, help="Export Markdown report path")
    args = ap.parse_args()

    nodes = ingest_nodes(snapshot_nodes(load_document(Path(args.snapshot))))
    if not nodes:
        print(f"[error] no nodes found in {args.snapshot}")
        raise SystemExit(1)

    summary = summarize(nodes, now=args.now if args.now is not None else time.time())
    print_summary(summary)

    if args.csv:
        export_csv(Path(args.csv), nodes)
        print("CSV:", Path(args.csv).as_posix())
    if args.json:
        export_json(Path(args.json), summary)
        print("JSON:", Path(args.json).as_posix())
    if args.md:
        export_md(Path(args.md), summary)
        print("Markdown:", Path(args.md).as_posix())

if __name__ == "__main__":
    main()
