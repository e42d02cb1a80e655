#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
topo/boundaries.py: world country boundaries (world-atlas TopoJSON).

The dataset is fetched once per BoundaryLayer. The layer carries an explicit
status (idle → loading → ready | error) so the map base layer can show a
loading or error state instead of an empty canvas.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Dict, Iterable, List, Optional

import requests

from . import geo

log = logging.getLogger(__name__)

IDLE = "idle"
LOADING = "loading"
READY = "ready"
ERROR = "error"


class BoundaryFetchError(RuntimeError):
    pass


def fetch_topology(url: str, timeout: float = 10.0, session: Optional[requests.Session] = None) -> Dict[str, Any]:
    http = session or requests
    try:
        resp = http.get(url, timeout=timeout)
        resp.raise_for_status()
        data = resp.json()
    except requests.RequestException as exc:
        raise BoundaryFetchError(f"fetch {url} failed: {exc}") from exc
    except ValueError as exc:
        raise BoundaryFetchError(f"{url} did not return JSON") from exc
    if not isinstance(data, dict) or data.get("type") != "Topology":
        raise BoundaryFetchError(f"{url} is not a TopoJSON topology")
    return data


def geography_names(topology: Dict[str, Any], object_name: str = "countries") -> List[str]:
    obj = ((topology or {}).get("objects") or {}).get(object_name) or {}
    names = []
    for g in obj.get("geometries") or []:
        name = (g.get("properties") or {}).get("name")
        if name:
            names.append(str(name))
    return names


def match_geographies(names: Iterable[str], clusters: Dict[str, Any]) -> Dict[str, str]:
    """
    Geography name -> country code of the cluster drawn in it. Matching is exact
    on normalized names; aliases cover the registry/dataset spelling gaps.
    """
    by_name: Dict[str, str] = {}
    for code, cluster in clusters.items():
        key = geo.normalize_country_name(cluster.country_name)
        if key:
            by_name.setdefault(key, code)
    out: Dict[str, str] = {}
    for name in names:
        code = by_name.get(geo.normalize_country_name(name))
        if code:
            out[name] = code
    return out


class BoundaryLayer:
    def __init__(self, url: Optional[str] = None, timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        self.url = url or geo.geography_url()
        self.timeout = timeout
        self._session = session
        self._lock = threading.Lock()
        self._status = IDLE
        self._error: Optional[str] = None
        self._topology: Optional[Dict[str, Any]] = None
        self._fetched_at: Optional[float] = None

    @property
    def status(self) -> str:
        with self._lock:
            return self._status

    def load(self, force: bool = False) -> str:
        """Fetch the dataset unless already loaded; returns the resulting status."""
        with self._lock:
            if self._status == READY and not force:
                return self._status
            if self._status == LOADING:
                return self._status
            self._status = LOADING
            self._error = None
        try:
            topo = fetch_topology(self.url, timeout=self.timeout, session=self._session)
        except BoundaryFetchError as exc:
            log.warning("boundary layer unavailable: %s", exc)
            with self._lock:
                self._status = ERROR
                self._error = str(exc)
            return ERROR
        with self._lock:
            self._topology = topo
            self._status = READY
            self._fetched_at = time.time()
        log.info("boundary layer loaded (%d geographies)", len(geography_names(topo)))
        return READY

    def load_async(self) -> None:
        threading.Thread(target=self.load, name="BoundaryLayer", daemon=True).start()

    def topology(self) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self._topology

    def names(self) -> List[str]:
        topo = self.topology()
        return geography_names(topo) if topo else []

    def describe(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "url": self.url,
                "status": self._status,
                "error": self._error,
                "fetched_at": self._fetched_at,
            }
