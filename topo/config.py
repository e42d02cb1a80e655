#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Runtime settings.

Precedence: built-in defaults < YAML file (PNODE_CONFIG or --config) < PNODE_*
environment variables < explicit CLI flags (applied by the caller).

Example config.yaml
-------------------
registry_url: http://127.0.0.1:3000/api/pnodes
refresh_sec: 30
max_connections: 500
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from . import geo

log = logging.getLogger(__name__)

ENV_PREFIX = "PNODE_"


@dataclass(frozen=True)
class Settings:
    registry_url: Optional[str] = None
    snapshot_path: Optional[str] = None
    refresh_sec: float = 30.0
    request_timeout: float = 10.0
    geography_url: str = ""
    max_connections: int = 500
    active_window_sec: float = 300.0
    api_host: str = "127.0.0.1"
    api_port: int = 8080
    ui_host: str = "127.0.0.1"
    ui_port: int = 8090
    remote: Optional[str] = None
    log_level: str = "INFO"

    def with_overrides(self, **kw: Any) -> "Settings":
        return replace(self, **{k: v for k, v in kw.items() if v is not None})


def _coerce(name: str, value: Any) -> Any:
    target = {f.name: f.type for f in fields(Settings)}[name]
    if value is None:
        return None
    if target in ("float", float):
        return float(value)
    if target in ("int", int):
        return int(value)
    return str(value)


def _from_mapping(base: Settings, data: Mapping[str, Any], source: str) -> Settings:
    known = {f.name for f in fields(Settings)}
    updates: Dict[str, Any] = {}
    for key, value in data.items():
        if key not in known:
            log.warning("%s: ignoring unknown setting %r", source, key)
            continue
        try:
            updates[key] = _coerce(key, value)
        except (TypeError, ValueError):
            log.warning("%s: bad value for %s: %r", source, key, value)
    return replace(base, **updates)


def load_settings(path: Optional[str] = None, env: Optional[Mapping[str, str]] = None) -> Settings:
    env = os.environ if env is None else env
    settings = Settings(geography_url=geo.geography_url())

    cfg_path = path or env.get(ENV_PREFIX + "CONFIG")
    if cfg_path:
        p = Path(cfg_path)
        if p.exists():
            with open(p, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                raise ValueError(f"{p}: config must be a mapping")
            settings = _from_mapping(settings, data, p.as_posix())
        else:
            log.warning("config file %s not found; using defaults", p)

    env_values = {
        f.name: env[ENV_PREFIX + f.name.upper()]
        for f in fields(Settings)
        if ENV_PREFIX + f.name.upper() in env
    }
    if env_values:
        settings = _from_mapping(settings, env_values, "environment")
    return settings


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
