#!/usr/bin/env python3
"""
Validate a pNode snapshot against topo/schemas/node.schema.yaml.

Usage:
  python3 -m tools.validate_nodes sim/snapshot.json
  python3 -m tools.validate_nodes sim/snapshot.json --strict
  python3 -m tools.validate_nodes sim/snapshot.json --fail-fast

Features:
- Draft 2020-12 JSON Schema validation per node record.
- Human-friendly error printing with JSON Pointer to the offending field.
- --strict: warns on records that will render poorly (no location, unknown
  country code, no coordinates, peers nobody answers for, duplicate addresses).
- Returns non-zero on any validation error.
"""

from __future__ import annotations
import argparse
import sys
from collections import Counter
from pathlib import Path
from typing import Any, Dict, List

from topo import geo
from topo.models import peer_ip
from topo.validators import ValidationError, assert_snapshot, lint_node, load_document, snapshot_nodes


def strict_warnings(nodes: List[Dict[str, Any]]) -> List[str]:
    """Non-fatal suggestions for records that map badly."""
    w: List[str] = []
    addrs = Counter(n.get("address") for n in nodes if isinstance(n, dict))
    for addr, count in addrs.items():
        if addr and count > 1:
            w.append(f"{addr}: appears {count} times.")
    ips = {peer_ip(a) for a in addrs if a}

    for n in nodes:
        if not isinstance(n, dict):
            continue
        name = n.get("address", "<no address>")
        loc = n.get("location") or {}
        code = loc.get("countryCode") or loc.get("country_code")
        if not loc:
            w.append(f"{name}: no location; counted under 'Unknown' and not drawn.")
        elif not code:
            w.append(f"{name}: location without countryCode.")
        elif not geo.has_centroid(code):
            w.append(f"{name}: countryCode {code} has no centroid; cluster placed at (0, 0).")
        elif loc.get("lat") is None or loc.get("lng") is None:
            w.append(f"{name}: no lat/lng; grid fallback position used.")

        pods = n.get("pods") or {}
        peers = n.get("peers") if n.get("peers") is not None else pods.get("pods") or []
        dangling = [p.get("address") for p in peers if isinstance(p, dict) and peer_ip(p.get("address", "")) not in ips]
        if dangling:
            w.append(f"{name}: {len(dangling)} peer(s) not in snapshot (e.g. {dangling[0]}).")
    return w


def main():
    ap = argparse.ArgumentParser(description="Validate a pNode snapshot")
    ap.add_argument("snapshot", help="Snapshot file (JSON/YAML)")
    ap.add_argument("--strict", action="store_true", help="Print rendering warnings")
    ap.add_argument("--fail-fast", action="store_true", help="Stop at the first invalid record")
    args = ap.parse_args()

    path = Path(args.snapshot)
    try:
        doc = load_document(path)
        assert_snapshot(doc)
    except (OSError, ValueError, ValidationError) as e:
        print(f"[error] {path.as_posix()}: {e}")
        sys.exit(2)

    nodes = snapshot_nodes(doc)
    invalid = 0
    for idx, raw in enumerate(nodes):
        problems = lint_node(raw)
        if not problems:
            continue
        invalid += 1
        where = raw.get("address") if isinstance(raw, dict) else None
        for ptr, msg in problems:
            print(f"Record #{idx} ({where or '?'})\n  At:   $.{ptr}\n  Msg:  {msg}")
        if args.fail_fast:
            break

    if args.strict:
        for warning in strict_warnings(nodes):
            print(f"[warn] {warning}")

    print(f"\nSummary: total={len(nodes)} valid={len(nodes) - invalid} invalid={invalid}")
    sys.exit(1 if invalid else 0)


if __name__ == "__main__":
    main()
