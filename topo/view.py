#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
topo/view.py: map drill-down state (world → region → country).

ViewState is immutable; every transition takes a state and returns a new one.
Camera moves (zoom buttons, pan/zoom gestures) never change the drill-down
level; only region/country selection, go_back() and reset_view() do.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from . import geo
from .clusters import CountryCluster

WORLD = "world"
REGION = "region"
COUNTRY = "country"
LEVELS = (WORLD, REGION, COUNTRY)

MIN_ZOOM = 1.0
MAX_ZOOM = 10.0
ZOOM_STEP = 1.5


def clamp_zoom(zoom: float) -> float:
    return max(MIN_ZOOM, min(MAX_ZOOM, float(zoom)))


@dataclass(frozen=True)
class Camera:
    center: Tuple[float, float] = (0.0, 20.0)
    zoom: float = 1.0

    @classmethod
    def from_preset(cls, preset: geo.CameraPreset) -> "Camera":
        return cls(center=preset.center, zoom=preset.zoom)


def _default_camera() -> Camera:
    return Camera.from_preset(geo.default_camera())


@dataclass(frozen=True)
class ViewState:
    level: str = WORLD
    region: Optional[str] = None
    country: Optional[str] = None
    node: Optional[str] = None
    camera: Camera = field(default_factory=_default_camera)
    show_connections: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level,
            "region": self.region,
            "country": self.country,
            "node": self.node,
            "camera": {"center": list(self.camera.center), "zoom": self.camera.zoom},
            "show_connections": self.show_connections,
        }

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> "ViewState":
        if not raw:
            return cls()
        if not isinstance(raw, dict):
            raise ValueError("view state must be an object")
        cam = raw.get("camera") or {}
        if not isinstance(cam, dict):
            raise ValueError("camera must be {center: [lng, lat], zoom: number}")
        center = cam.get("center")
        camera = _default_camera()
        if center is not None or cam.get("zoom") is not None:
            try:
                camera = Camera(
                    center=(float(center[0]), float(center[1])) if center is not None else camera.center,
                    zoom=clamp_zoom(cam.get("zoom", camera.zoom)),
                )
            except (TypeError, ValueError, IndexError):
                raise ValueError("camera must be {center: [lng, lat], zoom: number}")
        level = raw.get("level") or WORLD
        if level not in LEVELS:
            raise ValueError(f"unknown view level: {level}")
        for key in ("region", "country", "node"):
            if raw.get(key) is not None and not isinstance(raw[key], str):
                raise ValueError(f"view state '{key}' must be a string")
        state = cls(
            level=level,
            region=raw.get("region") or None,
            country=raw.get("country") or None,
            node=raw.get("node") or None,
            camera=camera,
            show_connections=bool(raw.get("show_connections", False)),
        )
        # selections deeper than the level are meaningless
        if level == WORLD:
            state = replace(state, region=None, country=None)
        elif level == REGION:
            state = replace(state, country=None)
        return state


INITIAL_STATE = ViewState()


# -----------------------------
# Transitions
# -----------------------------

def reset_view(state: ViewState) -> ViewState:
    return replace(
        state,
        level=WORLD,
        region=None,
        country=None,
        node=None,
        camera=_default_camera(),
    )


def zoom_to_region(state: ViewState, region: str) -> ViewState:
    return replace(
        state,
        level=REGION,
        region=region,
        country=None,
        camera=Camera.from_preset(geo.region_preset(region)),
    )


def zoom_to_country(state: ViewState, cluster: CountryCluster) -> ViewState:
    # the selected region is kept; go_back() returns to it
    return replace(
        state,
        level=COUNTRY,
        country=cluster.country_code,
        camera=Camera(center=tuple(cluster.coordinates), zoom=geo.country_zoom()),
    )


def go_back(state: ViewState) -> ViewState:
    if state.level == COUNTRY and state.region:
        return zoom_to_region(state, state.region)
    return reset_view(state)


def zoom_in(state: ViewState) -> ViewState:
    return replace(state, camera=replace(state.camera, zoom=clamp_zoom(state.camera.zoom * ZOOM_STEP)))


def zoom_out(state: ViewState) -> ViewState:
    return replace(state, camera=replace(state.camera, zoom=clamp_zoom(state.camera.zoom / ZOOM_STEP)))


def move_end(state: ViewState, center: Tuple[float, float], zoom: float) -> ViewState:
    """Camera after a pan/zoom gesture; the drill-down level is untouched."""
    return replace(state, camera=Camera(center=(float(center[0]), float(center[1])), zoom=clamp_zoom(zoom)))


def select_node(state: ViewState, address: Optional[str]) -> ViewState:
    return replace(state, node=address or None)


def clear_node(state: ViewState) -> ViewState:
    return replace(state, node=None)


def toggle_connections(state: ViewState) -> ViewState:
    return replace(state, show_connections=not state.show_connections)


# -----------------------------
# Derived view data
# -----------------------------

def visible_clusters(clusters: Dict[str, CountryCluster], state: ViewState) -> List[CountryCluster]:
    if state.level == REGION and state.region:
        return [c for c in clusters.values() if c.region == state.region]
    return list(clusters.values())


def selected_cluster(clusters: Dict[str, CountryCluster], state: ViewState) -> Optional[CountryCluster]:
    if state.level != COUNTRY or not state.country:
        return None
    return clusters.get(state.country)


def panel_title(state: ViewState, clusters: Dict[str, CountryCluster]) -> str:
    if state.level == WORLD:
        return "Regions"
    if state.level == REGION:
        return state.region or ""
    cluster = clusters.get(state.country or "")
    return cluster.country_name if cluster else (state.country or "")


# -----------------------------
# Named-action dispatch (HTTP API)
# -----------------------------

def apply_action(
    state: ViewState,
    action: str,
    clusters: Optional[Dict[str, CountryCluster]] = None,
    **args: Any,
) -> ViewState:
    """
    Apply a transition by name. Country selection needs `clusters` to resolve
    the code into a centroid. Raises ValueError on unknown actions or args.
    """
    simple: Dict[str, Callable[[ViewState], ViewState]] = {
        "reset": reset_view,
        "back": go_back,
        "zoom_in": zoom_in,
        "zoom_out": zoom_out,
        "clear_node": clear_node,
        "toggle_connections": toggle_connections,
    }
    if action in simple:
        return simple[action](state)
    if action == "region":
        region = args.get("region")
        if not region or not isinstance(region, str):
            raise ValueError("action 'region' needs 'region'")
        return zoom_to_region(state, region)
    if action == "country":
        code = args.get("country") or ""
        if not isinstance(code, str):
            raise ValueError("action 'country' needs a country code")
        code = code.upper()
        cluster = (clusters or {}).get(code)
        if cluster is None:
            raise ValueError(f"unknown country cluster: {code or '(none)'}")
        return zoom_to_country(state, cluster)
    if action == "move":
        center = args.get("center")
        if not isinstance(center, (list, tuple)) or len(center) != 2:
            raise ValueError("action 'move' needs 'center': [lng, lat]")
        try:
            return move_end(state, (center[0], center[1]), args.get("zoom", state.camera.zoom))
        except (TypeError, ValueError):
            raise ValueError("action 'move' needs numeric 'center' and 'zoom'")
    if action == "node":
        node = args.get("node")
        if node is not None and not isinstance(node, str):
            raise ValueError("action 'node' needs an address")
        return select_node(state, node)
    raise ValueError(f"unknown view action: {action}")


ACTIONS: Iterable[str] = (
    "reset", "back", "zoom_in", "zoom_out", "clear_node", "toggle_connections",
    "region", "country", "move", "node",
)
