#!/usr/bin/env python3
"""
Check the country-name alias table (topo/data/geo.yaml) against the world
geography dataset, and optionally against the country names a snapshot uses.

Usage:
  python3 -m tools.check_aliases                       # fetch the dataset URL
  python3 -m tools.check_aliases --topology countries-110m.json
  python3 -m tools.check_aliases --snapshot sim/snapshot.json --strict

Unmapped names are printed as warnings; --strict turns them into exit code 1.
"""

from __future__ import annotations
import argparse
import json
import sys
from pathlib import Path

from topo import geo
from topo.boundaries import BoundaryFetchError, fetch_topology, geography_names
from topo.models import ingest_nodes
from topo.validators import load_document, snapshot_nodes


def main():
    ap = argparse.ArgumentParser(description="Check country-name aliases against the geography dataset")
    ap.add_argument("--topology", default=None, help="Local TopoJSON file (default: fetch geography_url)")
    ap.add_argument("--url", default=None, help="Dataset URL override")
    ap.add_argument("--snapshot", default=None, help="Snapshot whose country names should all resolve")
    ap.add_argument("--strict", action="store_true", help="Exit 1 when anything is unmapped")
    args = ap.parse_args()

    if args.topology:
        topo = json.loads(Path(args.topology).read_text(encoding="utf-8"))
    else:
        try:
            topo = fetch_topology(args.url or geo.geography_url())
        except BoundaryFetchError as e:
            print(f"[error] {e}")
            sys.exit(2)

    names = geography_names(topo)
    registry_names = []
    if args.snapshot:
        nodes = ingest_nodes(snapshot_nodes(load_document(Path(args.snapshot))))
        registry_names = [n.location.country for n in nodes if n.location and n.location.country]

    warnings = geo.check_aliases(names, registry_names)
    for w in warnings:
        print(f"[warn] {w}")
    print(f"{len(names)} geographies, {len(geo.reverse_aliases())} alias targets, {len(warnings)} warning(s)")
    sys.exit(1 if warnings and args.strict else 0)


if __name__ == "__main__":
    main()
