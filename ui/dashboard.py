#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
ui/dashboard.py: pNode topology web dashboard (single file).

Features
--------
- World map (equirectangular SVG) with country boundaries when available
- Region legend → region drill-down → country drill-down, Back / Reset
- Country clusters sized by node count, online/offline tallies
- Peer connection overlay, styled by direction and activity
- Node detail panel (status, location, version, CPU, uptime)
- Zoom in/out buttons; drill-down transitions go through POST /api/view

Modes
-----
- embedded: the topology API (topo.api) is mounted under /api
- remote:   /api/* is proxied to a running topo.api instance

Run
---
python3 -m ui.dashboard --host 0.0.0.0 --port 8090 --snapshot sim/snapshot.json
python3 -m ui.dashboard --remote http://127.0.0.1:8080
"""

from __future__ import annotations

import argparse
import logging
from typing import Any, Dict, Optional

import requests
from flask import Flask, jsonify, make_response, request
from werkzeug.middleware.dispatcher import DispatcherMiddleware

from topo.api import create_app as create_api_app
from topo.config import Settings, configure_logging, load_settings
from topo.state import TopologyState

log = logging.getLogger(__name__)


def _err(msg: str, status: int = 400, **extra):
    return jsonify({"ok": False, "error": msg, **extra}), status


def create_dashboard(
    settings: Optional[Settings] = None,
    state: Optional[TopologyState] = None,
    session: Optional[requests.Session] = None,
) -> Flask:
    settings = settings or load_settings()
    remote = settings.remote.rstrip("/") if settings.remote else None
    label = f"remote API @ {remote}" if remote else "embedded topology state"
    http = session or requests.Session()

    app = Flask(__name__)
    app.config["REMOTE_BASE"] = remote

    def _proxy_remote(method: str, path: str, payload: Optional[Dict[str, Any]] = None):
        try:
            kwargs: Dict[str, Any] = {"timeout": settings.request_timeout}
            if payload is not None:
                kwargs["json"] = payload
            if request.args:
                kwargs["params"] = request.args.to_dict()
            resp = http.request(method.upper(), f"{remote}/{path.lstrip('/')}", **kwargs)
        except requests.RequestException as exc:
            log.warning("remote request %s %s failed: %s", method, path, exc)
            return _err(f"remote request failed: {exc}", status=502)
        try:
            data = resp.json()
        except ValueError:
            return _err(f"remote returned non-JSON response (status {resp.status_code})", status=502)
        return make_response(data, resp.status_code)

    if remote:
        @app.route("/api/<path:path>", methods=["GET", "POST"])
        def api_proxy(path: str):
            payload = request.get_json(silent=True) if request.method == "POST" else None
            return _proxy_remote(request.method, path, payload)
    else:
        state = state or TopologyState(settings, autostart=True)
        api = create_api_app(state, settings=settings)
        app.wsgi_app = DispatcherMiddleware(app.wsgi_app, {"/api": api.wsgi_app})  # type: ignore[method-assign]

    @app.get("/")
    def index():
        resp = make_response(_INDEX_HTML.replace("__SOURCE_LABEL__", label))
        resp.headers["Content-Type"] = "text/html; charset=utf-8"
        return resp

    return app


# ----------------- HTML UI -----------------

_INDEX_HTML = r"""<!doctype html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>pNode Topology</title>
<style>
  body { margin: 0; font-family: ui-monospace, Menlo, monospace; background: #FAFAFA; color: #0D0D0D; }
  header { padding: 10px 16px; border-bottom: 3px solid #0D0D0D; display: flex; gap: 16px; align-items: baseline; }
  header small { color: #6B7280; }
  #wrap { position: relative; height: calc(100vh - 50px); }
  #map { width: 100%; height: 100%; background: #FAFAFA; }
  .panel { position: absolute; background: #fff; border: 2px solid #0D0D0D; box-shadow: 3px 3px 0 #0D0D0D; padding: 10px; font-size: 12px; }
  #controls { top: 12px; left: 12px; display: flex; flex-direction: column; gap: 6px; }
  #legend { top: 12px; right: 12px; width: 240px; max-height: 60vh; overflow-y: auto; }
  #detail { bottom: 12px; right: 12px; width: 300px; display: none; }
  #stats { bottom: 12px; left: 12px; }
  #conn-legend { bottom: 60px; left: 12px; display: none; }
  #base-status { top: 12px; left: 80px; color: #F97316; display: none; }
  button { font-family: inherit; border: 2px solid #0D0D0D; background: #fff; cursor: pointer; padding: 3px 8px; }
  button:hover { background: #F3F4F6; }
  .row { display: flex; gap: 6px; align-items: center; width: 100%; text-align: left; border: none; padding: 3px; }
  .dot { width: 10px; height: 10px; border-radius: 50%; border: 2px solid #0D0D0D; display: inline-block; }
  .on { color: #10B981; } .off { color: #F97316; }
</style>
</head>
<body>
<header><b>pNode Topology</b><small>__SOURCE_LABEL__</small></header>
<div id="wrap">
  <svg id="map" viewBox="0 0 1000 500" preserveAspectRatio="xMidYMid meet"></svg>
  <div id="controls" class="panel">
    <button onclick="act('zoom_in')">+</button>
    <button onclick="act('zoom_out')">−</button>
    <button onclick="act('reset')">⟲</button>
    <button onclick="act('toggle_connections')" id="lines-btn">Lines OFF</button>
  </div>
  <div id="base-status" class="panel"></div>
  <div id="legend" class="panel"></div>
  <div id="detail" class="panel"></div>
  <div id="conn-legend" class="panel"></div>
  <div id="stats" class="panel"></div>
</div>
<script>
let VIEW = null, STYLES = null, REGIONS = [], CLUSTERS = [], COUNTRY = null, TOPO = null, NODES = {};
const W = 1000, H = 500;

async function api(path, opts) {
  const r = await fetch('/api' + path, opts);
  const j = await r.json();
  if (!j.ok) throw new Error(j.error || ('HTTP ' + r.status));
  return j.data;
}

function project(lng, lat) {
  const c = VIEW.camera, z = c.zoom;
  const x = (lng - c.center[0]) * (W / 360) * z + W / 2;
  const y = (c.center[1] - lat) * (H / 180) * z + H / 2;
  return [x, y];
}

function decodeArcs(topo) {
  const t = topo.transform;
  return topo.arcs.map(arc => {
    let x = 0, y = 0;
    return arc.map(p => {
      if (t) { x += p[0]; y += p[1]; return [x * t.scale[0] + t.translate[0], y * t.scale[1] + t.translate[1]]; }
      return p;
    });
  });
}

function ringPath(arcs, ring) {
  let pts = [];
  ring.forEach(i => {
    const a = i < 0 ? arcs[~i].slice().reverse() : arcs[i];
    pts = pts.concat(pts.length ? a.slice(1) : a);
  });
  return 'M' + pts.map(p => project(p[0], p[1]).map(v => v.toFixed(1)).join(',')).join('L') + 'Z';
}

function drawBase(svg, matches) {
  if (!TOPO) return;
  const arcs = decodeArcs(TOPO);
  const regionOf = {};
  CLUSTERS.forEach(c => { regionOf[c.country_code] = c.region; });
  (TOPO.objects.countries.geometries || []).forEach(g => {
    const polys = g.type === 'Polygon' ? [g.arcs] : (g.type === 'MultiPolygon' ? g.arcs : []);
    const d = polys.map(poly => poly.map(r => ringPath(arcs, r)).join('')).join('');
    const code = matches[g.properties && g.properties.name];
    const fill = code ? (STYLES.regions[regionOf[code]] || '#6B7280') : '#F3F4F6';
    const el = document.createElementNS('http://www.w3.org/2000/svg', 'path');
    el.setAttribute('d', d); el.setAttribute('fill', fill);
    el.setAttribute('stroke', '#0D0D0D'); el.setAttribute('stroke-width', '0.5');
    if (code) { el.style.cursor = 'pointer'; el.onclick = () => act('country', {country: code}); }
    svg.appendChild(el);
  });
}

function svgEl(tag, attrs) {
  const el = document.createElementNS('http://www.w3.org/2000/svg', tag);
  Object.entries(attrs).forEach(([k, v]) => el.setAttribute(k, v));
  return el;
}

async function render() {
  const svg = document.getElementById('map');
  svg.innerHTML = '';
  let matches = {};
  try {
    const b = await api('/boundaries' + (TOPO ? '' : '?include=topology'));
    const bs = document.getElementById('base-status');
    if (b.status === 'ready') { if (b.topology) TOPO = b.topology; matches = b.matches || {}; bs.style.display = 'none'; }
    else if (b.status === 'error') { bs.textContent = 'Map outline unavailable: ' + b.error; bs.style.display = 'block'; }
    else { bs.textContent = 'Loading map…'; bs.style.display = 'block'; setTimeout(render, 1500); }
  } catch (e) { /* base layer is optional */ }
  drawBase(svg, matches);

  if (VIEW.show_connections) {
    const q = VIEW.level === 'country' && VIEW.country ? '?country=' + VIEW.country : '?drawable=1';
    const edges = await api('/connections' + q);
    edges.filter(e => e.from && e.to).forEach(e => {
      const s = STYLES.connections[e.type], a = project(e.from[0], e.from[1]), b = project(e.to[0], e.to[1]);
      svg.appendChild(svgEl('line', {x1: a[0], y1: a[1], x2: b[0], y2: b[1], stroke: s.color,
        'stroke-width': s.width, 'stroke-dasharray': s.dash_array, 'stroke-opacity': 0.8, 'stroke-linecap': 'round'}));
    });
  }

  if (VIEW.level === 'country' && COUNTRY) {
    const pos = await api('/positions?country=' + COUNTRY.country_code);
    COUNTRY.nodes.forEach(addr => {
      const n = NODES[addr]; if (!n || !pos[addr]) return;
      const p = project(pos[addr][0], pos[addr][1]);
      const c = svgEl('circle', {cx: p[0], cy: p[1], r: VIEW.node === addr ? 9 : 6,
        fill: n.status === 'online' ? '#10B981' : '#F97316', stroke: '#0D0D0D', 'stroke-width': 2});
      c.style.cursor = 'pointer'; c.onclick = () => act('node', {node: addr});
      svg.appendChild(c);
    });
  } else {
    CLUSTERS.forEach(cl => {
      const p = project(cl.coordinates[0], cl.coordinates[1]);
      const c = svgEl('circle', {cx: p[0], cy: p[1], r: Math.min(22, 5 + Math.sqrt(cl.total) * 2),
        fill: STYLES.regions[cl.region] || '#6B7280', stroke: '#0D0D0D', 'stroke-width': 2, 'fill-opacity': 0.85});
      c.style.cursor = 'pointer'; c.onclick = () => act('country', {country: cl.country_code});
      svg.appendChild(c);
    });
  }
  renderPanels();
}

function renderPanels() {
  const lg = document.getElementById('legend');
  let html = VIEW.level !== 'world' ? '<button onclick="act(\'back\')" style="width:100%">‹ Back</button><hr>' : '';
  html += '<b>' + TITLE + '</b><br>';
  if (VIEW.level === 'world') {
    REGIONS.forEach(r => { html += `<button class="row" onclick="act('region',{region:'${r.region}'})"><span class="dot" style="background:${r.color}"></span><span style="flex:1">${r.region}</span>(${r.total_nodes})</button>`; });
  } else if (VIEW.level === 'region') {
    CLUSTERS.forEach(c => { html += `<button class="row" onclick="act('country',{country:'${c.country_code}'})">${c.flag} <span style="flex:1">${c.country_name}</span><span class="on">${c.online}</span>/${c.total}</button>`; });
  } else if (COUNTRY) {
    html += `<div class="on">${COUNTRY.online} online</div><div class="off">${COUNTRY.offline} offline</div><hr>`;
    COUNTRY.nodes.forEach(addr => { const n = NODES[addr] || {}; html += `<button class="row" onclick="act('node',{node:'${addr}'})"><span class="${n.status === 'online' ? 'on' : 'off'}">●</span>${n.display_name || addr}</button>`; });
  }
  lg.innerHTML = html;

  const dt = document.getElementById('detail');
  const n = VIEW.node && NODES[VIEW.node];
  if (n) {
    dt.style.display = 'block';
    dt.innerHTML = `<button onclick="act('clear_node')" style="float:right">×</button><b>${n.display_name}</b><br>${n.address}<br>
      <span class="${n.status === 'online' ? 'on' : 'off'}">${n.status.toUpperCase()}</span><br>
      ${n.location ? (n.location.city || '') + ', ' + (n.location.country || '') : ''}<br>
      ${n.version_text ? 'v' + n.version_text + '<br>' : ''}
      ${n.stats ? 'CPU ' + n.stats.cpu_percent.toFixed(1) + '% · up ' + n.uptime_text : ''}`;
  } else { dt.style.display = 'none'; }

  document.getElementById('lines-btn').textContent = VIEW.show_connections ? 'Lines ON' : 'Lines OFF';
  const cl = document.getElementById('conn-legend');
  cl.style.display = VIEW.show_connections ? 'block' : 'none';
  cl.innerHTML = '<b>CONNECTIONS</b><br>' + Object.entries(STYLES.connections).map(([k, s]) =>
    `<svg width="24" height="4"><line x1="0" y1="2" x2="24" y2="2" stroke="${s.color}" stroke-width="${s.width}" stroke-dasharray="${s.dash_array}"/></svg> ${k}`).join('<br>');
}

let TITLE = 'Regions';
async function act(action, args) {
  const out = await api('/view', {method: 'POST', headers: {'Content-Type': 'application/json'},
    body: JSON.stringify(Object.assign({state: VIEW, action: action}, args || {}))});
  VIEW = out.state; TITLE = out.title; CLUSTERS = out.clusters; COUNTRY = out.country;
  await render();
}

async function refresh() {
  const [snap, regions, nodes] = await Promise.all([api('/snapshot'), api('/regions'), api('/nodes')]);
  REGIONS = regions.regions;
  NODES = {}; nodes.forEach(n => { NODES[n.address] = n; });
  const t = snap.totals;
  document.getElementById('stats').innerHTML = `${t.nodes} nodes | <span class="${t.countries ? 'on' : 'off'}">${t.countries} countries</span> | ${t.online} online | Zoom: ${VIEW.camera.zoom.toFixed(1)}x`
    + (t.locations_pending ? '<br><span class="off">● Loading locations...</span>' : '');
  await act(VIEW.level === 'world' ? 'clear_node' : 'node', VIEW.level === 'world' ? {} : {node: VIEW.node});
}

(async () => {
  STYLES = await api('/styles');
  VIEW = {level: 'world', region: null, country: null, node: null, camera: {center: [0, 20], zoom: 1}, show_connections: false};
  await refresh();
  setInterval(refresh, 30000);
})();
</script>
</body>
</html>
"""


# ----------------- CLI entry -----------------


def main():
    ap = argparse.ArgumentParser(description="pNode Topology Dashboard")
    ap.add_argument("--config", default=None, help="YAML settings file")
    ap.add_argument("--host", default=None)
    ap.add_argument("--port", type=int, default=None)
    ap.add_argument("--snapshot", default=None, help="Node snapshot file (embedded mode)")
    ap.add_argument("--registry", default=None, help="Registry URL (embedded mode)")
    ap.add_argument("--remote", default=None, help="Remote topology API base URL (e.g. http://127.0.0.1:8080)")
    ap.add_argument("--remote-timeout", type=float, default=None, help="Timeout in seconds for remote calls")
    ap.add_argument("--log-level", default=None)
    ap.add_argument("--debug", action="store_true")
    args = ap.parse_args()

    settings = load_settings(args.config).with_overrides(
        ui_host=args.host, ui_port=args.port, snapshot_path=args.snapshot, registry_url=args.registry,
        remote=args.remote, request_timeout=args.remote_timeout, log_level=args.log_level,
    )
    configure_logging(settings.log_level)
    app = create_dashboard(settings)
    app.run(host=settings.ui_host, port=settings.ui_port, debug=args.debug)


if __name__ == "__main__":
    main()
