#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
topo/models.py: node snapshot records.

The registry hands us loosely shaped JSON (camelCase location keys, peer lists
nested under "pods", version wrapped in an object). node_from_dict() is the one
place that shape is normalized; everything downstream works on NodeRecord.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .validators import lint_node

log = logging.getLogger(__name__)

STATUSES = ("online", "offline", "loading")
UNKNOWN_COUNTRY = "Unknown"


def safe_float(x: Any, default: float = 0.0) -> float:
    try:
        v = float(x)
    except (TypeError, ValueError):
        return default
    return v if math.isfinite(v) else default


def _opt_float(x: Any) -> Optional[float]:
    if x is None:
        return None
    try:
        v = float(x)
    except (TypeError, ValueError):
        return None
    return v if math.isfinite(v) else None


def peer_ip(address: str) -> str:
    """Strip the port from an address ("1.2.3.4:9000" -> "1.2.3.4", "[::1]:9000" -> "::1")."""
    address = (address or "").strip()
    if address.startswith("["):
        end = address.find("]")
        if end > 0:
            return address[1:end]
    return address.split(":", 1)[0]


@dataclass(frozen=True)
class PeerEntry:
    address: str
    last_seen_timestamp: float = 0.0

    @property
    def ip(self) -> str:
        return peer_ip(self.address)


@dataclass(frozen=True)
class NodeLocation:
    country: Optional[str] = None
    country_code: Optional[str] = None
    city: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lng is not None


@dataclass(frozen=True)
class NodeStats:
    cpu_percent: float = 0.0
    ram_used: float = 0.0
    ram_total: float = 0.0
    file_size: float = 0.0
    uptime: float = 0.0


@dataclass(frozen=True)
class NodeRecord:
    address: str
    label: str = ""
    status: str = "offline"
    pubkey: Optional[str] = None
    location: Optional[NodeLocation] = None
    stats: Optional[NodeStats] = None
    peers: Tuple[PeerEntry, ...] = field(default_factory=tuple)
    version: Optional[str] = None

    @property
    def ip(self) -> str:
        return peer_ip(self.address)

    @property
    def is_online(self) -> bool:
        return self.status == "online"

    @property
    def country_code(self) -> str:
        if self.location and self.location.country_code:
            return self.location.country_code
        return UNKNOWN_COUNTRY

    @property
    def country_name(self) -> str:
        if self.location and self.location.country:
            return self.location.country
        return UNKNOWN_COUNTRY

    @property
    def coordinates(self) -> Optional[Tuple[float, float]]:
        """(lng, lat) when the node carries real coordinates."""
        loc = self.location
        if loc is None or not loc.has_coordinates:
            return None
        return (loc.lng, loc.lat)  # type: ignore[return-value]


# -----------------------------
# Ingestion
# -----------------------------

def _location_from(raw: Any) -> Optional[NodeLocation]:
    if not isinstance(raw, dict):
        return None
    code = str(raw.get("countryCode") or raw.get("country_code") or "").strip()
    # the registry writes "Unknown" for unresolved lookups
    if code.lower() == UNKNOWN_COUNTRY.lower():
        code = ""
    return NodeLocation(
        country=raw.get("country") or None,
        country_code=code.upper() or None,
        city=raw.get("city") or None,
        lat=_opt_float(raw.get("lat")),
        lng=_opt_float(raw.get("lng", raw.get("lon"))),
    )


def _stats_from(raw: Any) -> Optional[NodeStats]:
    if not isinstance(raw, dict):
        return None
    return NodeStats(
        cpu_percent=safe_float(raw.get("cpu_percent")),
        ram_used=safe_float(raw.get("ram_used")),
        ram_total=safe_float(raw.get("ram_total")),
        file_size=safe_float(raw.get("file_size")),
        uptime=safe_float(raw.get("uptime")),
    )


def _peers_from(raw: Dict[str, Any]) -> Tuple[PeerEntry, ...]:
    items = raw.get("peers")
    if items is None:
        pods = raw.get("pods")
        items = pods.get("pods") if isinstance(pods, dict) else None
    out: List[PeerEntry] = []
    for p in items or []:
        if not isinstance(p, dict) or not p.get("address"):
            continue
        out.append(PeerEntry(address=str(p["address"]), last_seen_timestamp=safe_float(p.get("last_seen_timestamp"))))
    return tuple(out)


def _version_from(raw: Any) -> Optional[str]:
    if isinstance(raw, dict):
        raw = raw.get("version")
    return str(raw) if raw else None


def node_from_dict(raw: Dict[str, Any]) -> NodeRecord:
    address = str(raw.get("address") or "")
    status = raw.get("status") if raw.get("status") in STATUSES else "offline"
    return NodeRecord(
        address=address,
        label=str(raw.get("label") or address),
        status=status,
        pubkey=raw.get("pubkey") or None,
        location=_location_from(raw.get("location")),
        stats=_stats_from(raw.get("stats")),
        peers=_peers_from(raw),
        version=_version_from(raw.get("version")),
    )


def node_to_dict(node: NodeRecord) -> Dict[str, Any]:
    loc = node.location
    st = node.stats
    return {
        "address": node.address,
        "label": node.label,
        "status": node.status,
        "pubkey": node.pubkey,
        "location": None if loc is None else {
            "country": loc.country,
            "countryCode": loc.country_code,
            "city": loc.city,
            "lat": loc.lat,
            "lng": loc.lng,
        },
        "stats": None if st is None else {
            "cpu_percent": st.cpu_percent,
            "ram_used": st.ram_used,
            "ram_total": st.ram_total,
            "file_size": st.file_size,
            "uptime": st.uptime,
        },
        "peers": [{"address": p.address, "last_seen_timestamp": p.last_seen_timestamp} for p in node.peers],
        "version": node.version,
    }


def ingest_nodes(raw_nodes: Iterable[Any], validate: bool = True) -> List[NodeRecord]:
    """
    Normalize a registry node list. Records failing the node schema are skipped
    (logged) so one bad entry never blanks the map.
    """
    out: List[NodeRecord] = []
    for idx, raw in enumerate(raw_nodes or []):
        if not isinstance(raw, dict):
            log.warning("skipping node #%d: not an object", idx)
            continue
        if validate:
            problems = lint_node(raw)
            if problems:
                ptr, msg = problems[0]
                log.warning("skipping node #%d (%s): %s at %s", idx, raw.get("address"), msg, ptr)
                continue
        elif not raw.get("address"):
            continue
        out.append(node_from_dict(raw))
    return out


# -----------------------------
# Display helpers
# -----------------------------

def shorten_address(value: str, chars: int = 4) -> str:
    if not value or len(value) <= chars * 2 + 3:
        return value or ""
    return f"{value[:chars]}...{value[-chars:]}"


def display_name(node: NodeRecord) -> str:
    return shorten_address(node.pubkey, 4) if node.pubkey else node.label


def format_uptime(seconds: float) -> str:
    seconds = int(max(0, safe_float(seconds)))
    days = seconds // 86400
    hours = (seconds % 86400) // 3600
    if days > 0:
        return f"{days}d {hours}h"
    minutes = (seconds % 3600) // 60
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def short_version(version: Optional[str]) -> str:
    if not version:
        return ""
    if len(version) > 20:
        return f"{version[:8]}…{version[-8:]}"
    return version
