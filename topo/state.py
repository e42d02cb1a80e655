#!/usr/bin/env python3
"""
Topology state service.

- Loads a node snapshot from a file (JSON/YAML) or polls a registry URL
- Normalizes registry records at the ingestion boundary (schema-checked)
- Swaps snapshots atomically; derived views are pure functions of a snapshot
- Exposes (FastAPI, for providers that push instead of being polled):
    GET  /state/nodes      -> current node list
    POST /state/nodes      -> replace the snapshot with a pushed node list
    GET  /state/overview   -> totals, regions, connection counts

Run:
    pip install fastapi uvicorn pyyaml requests
    python3 -m topo.state --snapshot sim/snapshot.json --port 5055
"""

from __future__ import annotations

import argparse
import logging
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests
import yaml
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .clusters import (
    CountryCluster,
    RegionAggregate,
    aggregate_regions,
    build_country_clusters,
    network_totals,
)
from .config import Settings, configure_logging, load_settings
from .connections import (
    MAX_CONNECTIONS,
    ACTIVE_WINDOW_SEC,
    build_peer_lookup,
    derive_connections,
    derive_country_connections,
    summarize_edges,
)
from .models import NodeRecord, ingest_nodes, node_to_dict
from .validators import load_document, snapshot_nodes

log = logging.getLogger(__name__)


# -----------------------------
# Snapshot
# -----------------------------

@dataclass
class Snapshot:
    """One poll's worth of nodes plus everything derived from it."""
    nodes: List[NodeRecord] = field(default_factory=list)
    ts: float = 0.0
    clusters: Dict[str, CountryCluster] = field(default_factory=dict)
    regions: Dict[str, RegionAggregate] = field(default_factory=dict)
    peer_lookup: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def build(cls, nodes: List[NodeRecord], ts: Optional[float] = None) -> "Snapshot":
        clusters = build_country_clusters(nodes)
        return cls(
            nodes=list(nodes),
            ts=time.time() if ts is None else ts,
            clusters=clusters,
            regions=aggregate_regions(clusters),
            peer_lookup=build_peer_lookup(nodes),
        )

    def node(self, address: str) -> Optional[NodeRecord]:
        for n in self.nodes:
            if n.address == address:
                return n
        return None


def fetch_registry(url: str, timeout: float = 10.0, session: Optional[requests.Session] = None) -> List[Any]:
    http = session or requests
    resp = http.get(url, timeout=timeout)
    resp.raise_for_status()
    body = resp.json()
    # accept a bare list, {"nodes": [...]} or the {"ok":..., "data": ...} envelope
    if isinstance(body, dict) and "data" in body and "nodes" not in body:
        body = body["data"]
    return snapshot_nodes(body)


# -----------------------------
# State
# -----------------------------

class TopologyState:
    def __init__(self, settings: Optional[Settings] = None, session: Optional[requests.Session] = None,
                 autostart: bool = False):
        self.settings = settings or Settings()
        self._session = session or requests.Session()
        self._lock = threading.RLock()
        self._snapshot = Snapshot.build([], ts=0.0)
        self._last_error: Optional[str] = None
        self._source = "empty"
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        if autostart:
            self.refresh()
            self.start()

    # ---------- Loading ----------

    def load_file(self, path: Path) -> int:
        doc = load_document(Path(path))
        nodes = ingest_nodes(snapshot_nodes(doc))
        ts = doc.get("ts") if isinstance(doc, dict) else None
        self._swap(nodes, ts=float(ts) if isinstance(ts, (int, float)) else None, source=f"file:{path}")
        return len(nodes)

    def replace_nodes(self, raw_nodes: List[Any], source: str = "push") -> int:
        nodes = ingest_nodes(raw_nodes)
        self._swap(nodes, source=source)
        return len(nodes)

    def set_nodes(self, nodes: List[NodeRecord], source: str = "direct") -> None:
        self._swap(list(nodes), source=source)

    def _swap(self, nodes: List[NodeRecord], ts: Optional[float] = None, source: str = "") -> None:
        snap = Snapshot.build(nodes, ts=ts)
        with self._lock:
            self._snapshot = snap
            self._source = source
            self._last_error = None
        log.info("snapshot updated from %s: %d nodes, %d countries", source, len(nodes), len(snap.clusters))

    def refresh(self) -> bool:
        """Reload from the configured source. Keeps the last good snapshot on failure."""
        s = self.settings
        try:
            if s.registry_url:
                raw = fetch_registry(s.registry_url, timeout=s.request_timeout, session=self._session)
                self.replace_nodes(raw, source=s.registry_url)
            elif s.snapshot_path:
                self.load_file(Path(s.snapshot_path))
            else:
                return False
        except (requests.RequestException, yaml.YAMLError, ValueError, OSError) as exc:
            log.warning("snapshot refresh failed: %s", exc)
            with self._lock:
                self._last_error = str(exc)
            return False
        return True

    # ---------- Background poller ----------

    def _poll_loop(self) -> None:
        while not self._stop.wait(max(1.0, self.settings.refresh_sec)):
            self.refresh()

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        if not (self.settings.registry_url or self.settings.snapshot_path):
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._poll_loop, name="SnapshotPoller", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=2.0)

    # ---------- Public getters ----------

    def current(self) -> Snapshot:
        with self._lock:
            return self._snapshot

    def status(self) -> Dict[str, Any]:
        with self._lock:
            snap = self._snapshot
            return {
                "source": self._source,
                "ts": snap.ts,
                "nodes": len(snap.nodes),
                "last_error": self._last_error,
            }

    # ---------- Derived views ----------

    def _edge_limits(self) -> Dict[str, Any]:
        # 0 is a valid cap
        cap, window = self.settings.max_connections, self.settings.active_window_sec
        return {
            "max_edges": MAX_CONNECTIONS if cap is None else cap,
            "window": ACTIVE_WINDOW_SEC if window is None else window,
        }

    def connections(self, now: Optional[float] = None):
        snap = self.current()
        return derive_connections(snap.nodes, now=now, peer_lookup=snap.peer_lookup, **self._edge_limits())

    def country_connections(self, country_code: str, now: Optional[float] = None):
        snap = self.current()
        cluster = snap.clusters.get(country_code.upper())
        if cluster is None:
            return []
        return derive_country_connections(cluster, snap.peer_lookup, now=now, **self._edge_limits())

    def overview(self, now: Optional[float] = None) -> Dict[str, Any]:
        snap = self.current()
        return {
            "ts": snap.ts,
            "totals": network_totals(snap.nodes, snap.clusters),
            "regions": {name: agg.as_dict() for name, agg in snap.regions.items()},
            "connections": summarize_edges(self.connections(now=now)),
        }


# -----------------------------
# FastAPI wiring
# -----------------------------

def make_app(state: TopologyState) -> FastAPI:
    app = FastAPI(title="pNode Topology State", version="0.1.0")

    @app.get("/state/nodes")
    def get_nodes():
        return JSONResponse([node_to_dict(n) for n in state.current().nodes])

    @app.post("/state/nodes")
    async def post_nodes(req: Request):
        """Body: a node list, or {"nodes": [...]}."""
        body = await req.json()
        raw = snapshot_nodes(body)
        if not raw and body not in ([], {"nodes": []}):
            return JSONResponse({"ok": False, "error": "expected a node list"}, status_code=400)
        count = state.replace_nodes(raw)
        return JSONResponse({"ok": True, "accepted": count, "received": len(raw)})

    @app.get("/state/overview")
    def get_overview():
        return JSONResponse(state.overview())

    return app


# -----------------------------
# CLI / entry
# -----------------------------

def main():
    ap = argparse.ArgumentParser(description="pNode topology state service")
    ap.add_argument("--config", default=None, help="YAML settings file")
    ap.add_argument("--snapshot", default=None, help="Node snapshot file (JSON/YAML)")
    ap.add_argument("--registry", default=None, help="Registry URL returning the node list")
    ap.add_argument("--host", default="127.0.0.1")
    ap.add_argument("--port", type=int, default=5055)
    ap.add_argument("--refresh", type=float, default=None, help="Poll period (s)")
    ap.add_argument("--no-server", action="store_true", help="Load once and print a summary")
    ap.add_argument("--log-level", default=None)
    args = ap.parse_args()

    settings = load_settings(args.config).with_overrides(
        snapshot_path=args.snapshot, registry_url=args.registry, refresh_sec=args.refresh,
        log_level=args.log_level,
    )
    configure_logging(settings.log_level)
    state = TopologyState(settings)
    state.refresh()

    if args.no_server:
        ov = state.overview()
        t = ov["totals"]
        print(f"[topo] nodes={t['nodes']} online={t['online']} countries={t['countries']} unresolved={t['unresolved']}")
        print(f"[topo] connections={ov['connections']}")
        return 0

    # lazy import uvicorn only when serving
    try:
        import uvicorn
    except ImportError:
        print("Error: uvicorn not installed. `pip install uvicorn`")
        return 2

    state.start()
    uvicorn.run(make_app(state), host=args.host, port=args.port, log_level="info")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
