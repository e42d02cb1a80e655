#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
topo/api.py: Flask API for the pNode topology map

Endpoints
---------
GET  /health
GET  /snapshot                     totals, regions, source status
GET  /nodes[?country=XX]
GET  /node/<address>
GET  /clusters[?region=...]
GET  /regions
GET  /connections[?country=XX&now=unix&drawable=1]
GET  /positions?country=XX         grid-fallback marker positions
GET  /layout[?width=&height=&seed=]  force-directed 2D layout
GET  /styles                       connection styles, region colours
GET  /boundaries[?include=topology]
POST /view                         { state?: {...}, action: "...", ...args }

Run
---
python3 -m topo.api --host 0.0.0.0 --port 8080 --snapshot sim/snapshot.json
"""

from __future__ import annotations

import argparse
import logging
from typing import Any, Optional

from flask import Flask, jsonify, request

from . import geo
from .boundaries import BoundaryLayer, match_geographies
from .clusters import network_totals
from .config import Settings, configure_logging, load_settings
from .connections import CONNECTION_STYLES
from .layout import country_positions, force_layout, region_links
from .models import display_name, format_uptime, node_to_dict, short_version
from .state import TopologyState
from .view import ViewState, apply_action, panel_title, selected_cluster, visible_clusters

log = logging.getLogger(__name__)


# -----------------------------------
# Helpers
# -----------------------------------


def _ok(data: Any, status: int = 200):
    return jsonify({"ok": True, "data": data}), status


def _err(msg: str, status: int = 400, **extra):
    return jsonify({"ok": False, "error": msg, **extra}), status


def _float_arg(name: str, default: Optional[float] = None) -> Optional[float]:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    return float(raw)


def node_detail(node) -> dict:
    d = node_to_dict(node)
    d["display_name"] = display_name(node)
    d["uptime_text"] = format_uptime(node.stats.uptime) if node.stats else None
    d["version_text"] = short_version(node.version)
    d["flag"] = geo.flag_emoji(node.location.country_code if node.location else None)
    return d


# -----------------------------------
# App factory
# -----------------------------------


def create_app(state: Optional[TopologyState] = None, boundaries: Optional[BoundaryLayer] = None,
               settings: Optional[Settings] = None) -> Flask:
    settings = settings or (state.settings if state else Settings(geography_url=geo.geography_url()))
    state = state or TopologyState(settings)
    boundaries = boundaries or BoundaryLayer(settings.geography_url or None, timeout=settings.request_timeout)

    app = Flask(__name__)
    app.config["TOPO_STATE"] = state
    app.config["TOPO_BOUNDARIES"] = boundaries

    @app.errorhandler(ValueError)
    def _bad_value(exc):
        return _err(str(exc))

    @app.get("/health")
    def health():
        return _ok(state.status())

    @app.get("/snapshot")
    def snapshot():
        data = state.overview(now=_float_arg("now"))
        data["source"] = state.status()
        return _ok(data)

    @app.get("/nodes")
    def nodes():
        snap = state.current()
        country = (request.args.get("country") or "").upper()
        items = snap.nodes
        if country:
            items = [n for n in items if n.country_code == country]
        return _ok([node_detail(n) for n in items])

    @app.get("/node/<path:address>")
    def node(address: str):
        found = state.current().node(address)
        if found is None:
            return _err(f"unknown node: {address}", status=404)
        return _ok(node_detail(found))

    @app.get("/clusters")
    def clusters():
        snap = state.current()
        region = request.args.get("region")
        items = snap.clusters.values()
        if region:
            items = [c for c in items if c.region == region]
        with_nodes = request.args.get("with_nodes") in ("1", "true", "yes")
        return _ok([c.as_dict(with_nodes=with_nodes) for c in items])

    @app.get("/regions")
    def regions():
        snap = state.current()
        return _ok({
            "regions": [agg.as_dict() for agg in snap.regions.values()],
            "totals": network_totals(snap.nodes, snap.clusters),
        })

    @app.get("/connections")
    def connections():
        now = _float_arg("now")
        country = (request.args.get("country") or "").upper()
        edges = state.country_connections(country, now=now) if country else state.connections(now=now)
        if request.args.get("drawable") in ("1", "true", "yes"):
            edges = [e for e in edges if e.drawable]
        return _ok([e.as_dict() for e in edges])

    @app.get("/positions")
    def positions():
        country = (request.args.get("country") or "").upper()
        cluster = state.current().clusters.get(country)
        if cluster is None:
            return _err(f"unknown country cluster: {country or '(none)'}", status=404)
        return _ok({addr: list(pos) for addr, pos in country_positions(cluster).items()})

    @app.get("/layout")
    def layout():
        snap = state.current()
        width = _float_arg("width", 800.0)
        height = _float_arg("height", 600.0)
        seed = int(_float_arg("seed", 0.0) or 0)
        pos = force_layout(snap.nodes, width=width, height=height, seed=seed)
        return _ok({
            "positions": {k: list(v) for k, v in pos.items()},
            "links": [list(pair) for pair in region_links(snap.nodes)],
        })

    @app.get("/styles")
    def styles():
        return _ok({
            "connections": {k: v.as_dict() for k, v in CONNECTION_STYLES.items()},
            "regions": {r: geo.region_color(r) for r in list(geo.REGION_NAMES) + [geo.UNKNOWN]},
        })

    @app.get("/boundaries")
    def boundaries_route():
        if boundaries.status == "idle":
            boundaries.load_async()
        data = boundaries.describe()
        if data["status"] == "ready":
            data["matches"] = match_geographies(boundaries.names(), state.current().clusters)
            if request.args.get("include") == "topology":
                data["topology"] = boundaries.topology()
        return _ok(data)

    @app.post("/view")
    def view():
        """
        Body:
        { "state": {level, region, country, node, camera, show_connections},
          "action": "region" | "country" | "back" | "reset" | "zoom_in" | ...,
          "region"?: "...", "country"?: "US", "center"?: [lng, lat], "zoom"?: n, "node"?: "..." }
        """
        if not request.is_json:
            return _err("expected JSON body")
        body = request.get_json() or {}
        if not isinstance(body, dict):
            return _err("expected a JSON object")
        action = body.get("action")
        if not action or not isinstance(action, str):
            return _err("missing 'action'")
        snap = state.current()
        current = ViewState.from_dict(body.get("state"))
        args = {k: v for k, v in body.items() if k not in ("state", "action", "clusters")}
        new_state = apply_action(current, action, clusters=snap.clusters, **args)
        cluster = selected_cluster(snap.clusters, new_state)
        return _ok({
            "state": new_state.as_dict(),
            "title": panel_title(new_state, snap.clusters),
            "clusters": [c.as_dict() for c in visible_clusters(snap.clusters, new_state)],
            "country": cluster.as_dict(with_nodes=True) if cluster else None,
        })

    return app


# -----------------------------------
# CLI entrypoint
# -----------------------------------


def main():
    ap = argparse.ArgumentParser(description="pNode topology API")
    ap.add_argument("--config", default=None, help="YAML settings file")
    ap.add_argument("--host", default=None)
    ap.add_argument("--port", type=int, default=None)
    ap.add_argument("--snapshot", default=None, help="Node snapshot file (JSON/YAML)")
    ap.add_argument("--registry", default=None, help="Registry URL returning the node list")
    ap.add_argument("--log-level", default=None)
    ap.add_argument("--debug", action="store_true")
    args = ap.parse_args()

    settings = load_settings(args.config).with_overrides(
        api_host=args.host, api_port=args.port, snapshot_path=args.snapshot,
        registry_url=args.registry, log_level=args.log_level,
    )
    configure_logging(settings.log_level)
    state = TopologyState(settings, autostart=True)
    app = create_app(state, settings=settings)
    app.run(host=settings.api_host, port=settings.api_port, debug=args.debug)


if __name__ == "__main__":
    main()
