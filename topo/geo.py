#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
topo/geo.py: static geography tables for the topology map.

Loads topo/data/geo.yaml once and exposes:
- country code -> region (six continent-level regions, else "Unknown")
- country code -> centroid [lng, lat]
- region -> camera preset and display colour
- registry country name -> world-atlas geography name (explicit alias table)

Coordinates are (lng, lat) tuples throughout.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import yaml

log = logging.getLogger(__name__)

GEO_DATA_PATH = Path(__file__).resolve().parent / "data" / "geo.yaml"

UNKNOWN = "Unknown"
REGION_NAMES = (
    "North America",
    "Europe",
    "Asia",
    "Oceania",
    "South America",
    "Africa",
)

Coord = Tuple[float, float]


@dataclass(frozen=True)
class CameraPreset:
    center: Coord
    zoom: float

    def as_dict(self) -> Dict[str, Any]:
        return {"center": list(self.center), "zoom": self.zoom}


# -----------------------------
# Loading
# -----------------------------

def load_geo_tables(path: Optional[Path] = None) -> Dict[str, Any]:
    with open(path or GEO_DATA_PATH, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


@lru_cache(maxsize=1)
def _tables() -> Dict[str, Any]:
    return load_geo_tables()


def _coord(raw: Any, default: Coord = (0.0, 0.0)) -> Coord:
    try:
        return float(raw[0]), float(raw[1])
    except (TypeError, ValueError, IndexError):
        return default


@lru_cache(maxsize=1)
def _region_by_country() -> Dict[str, str]:
    out: Dict[str, str] = {}
    for region, entry in (_tables().get("regions") or {}).items():
        for code in entry.get("countries") or []:
            out[str(code).upper()] = region
    return out


@lru_cache(maxsize=1)
def _centroids() -> Dict[str, Coord]:
    return {str(k).upper(): _coord(v) for k, v in (_tables().get("centroids") or {}).items()}


@lru_cache(maxsize=1)
def _aliases() -> Dict[str, str]:
    raw = _tables().get("country_aliases") or {}
    return {str(k).strip().lower(): str(v).strip().lower() for k, v in raw.items()}


# -----------------------------
# Public lookups
# -----------------------------

def geography_url() -> str:
    return str(_tables().get("geography_url") or "")


def default_camera() -> CameraPreset:
    cam = _tables().get("default_camera") or {}
    return CameraPreset(center=_coord(cam.get("center"), (0.0, 20.0)), zoom=float(cam.get("zoom", 1)))


def country_zoom() -> float:
    return float(_tables().get("country_zoom", 6))


def known_country_codes() -> List[str]:
    return sorted(_region_by_country())


def region_for_country(country_code: Optional[str]) -> str:
    if not country_code:
        return UNKNOWN
    return _region_by_country().get(country_code.upper(), UNKNOWN)


def centroid_for_country(country_code: Optional[str]) -> Coord:
    """Centroid for a country code; (0, 0) when the code is not in the table."""
    if not country_code:
        return (0.0, 0.0)
    return _centroids().get(country_code.upper(), (0.0, 0.0))


def has_centroid(country_code: Optional[str]) -> bool:
    return bool(country_code) and country_code.upper() in _centroids()


def region_preset(region: Optional[str]) -> CameraPreset:
    entry = (_tables().get("regions") or {}).get(region or "")
    if not entry:
        return default_camera()
    return CameraPreset(center=_coord(entry.get("center")), zoom=float(entry.get("zoom", 1)))


def region_color(region: Optional[str]) -> str:
    entry = (_tables().get("regions") or {}).get(region or "")
    if entry and entry.get("color"):
        return str(entry["color"])
    return str((_tables().get("unknown_region") or {}).get("color", "#6B7280"))


# -----------------------------
# Country names
# -----------------------------

def normalize_country_name(name: Optional[str]) -> str:
    """Map a registry country name onto the geography dataset's naming."""
    if not name:
        return ""
    lower = name.strip().lower()
    return _aliases().get(lower, lower)


def reverse_aliases() -> Dict[str, List[str]]:
    """Geography name -> every registry spelling that maps onto it."""
    out: Dict[str, List[str]] = {}
    for src, dst in _aliases().items():
        out.setdefault(dst, []).append(src)
    return out


def check_aliases(geography_names: Iterable[str], registry_names: Iterable[str] = ()) -> List[str]:
    """
    Cross-check the alias table against a geography dataset's name set.

    Returns human-readable warnings for alias targets missing from the dataset
    and for registry names that neither alias nor match a geography verbatim.
    """
    geo = {str(n).strip().lower() for n in geography_names if n}
    warnings: List[str] = []
    for dst, sources in sorted(reverse_aliases().items()):
        if dst not in geo:
            warnings.append(f"alias target '{dst}' (from {', '.join(sorted(sources))}) not in geography dataset")
    for name in sorted({str(n) for n in registry_names if n}):
        if normalize_country_name(name) not in geo:
            warnings.append(f"registry country '{name}' has no geography match")
    for w in warnings:
        log.warning(w)
    return warnings


def flag_emoji(country_code: Optional[str]) -> str:
    if not country_code or len(country_code) != 2 or not country_code.isalpha():
        return ""
    return "".join(chr(127397 + ord(c)) for c in country_code.upper())
