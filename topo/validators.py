#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
topo/validators.py: schema checks at the ingestion boundary.

Registry records are checked against the YAML-encoded Draft 2020-12 schemas in
topo/schemas. Problems come back as (instance_pointer, message) pairs so one
bad record can be skipped while the rest of the snapshot still loads.

    lint_node(raw)       -> [(pointer, message), ...]   never raises
    assert_node(raw)     -> raises ValidationError on the first problem
    lint_snapshot(doc)   -> same, for a whole snapshot document

Schema defaults (status: offline) are written into the record only when a
caller passes apply_defaults=True.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import yaml
from jsonschema import Draft202012Validator, validators

SCHEMAS_DIR = Path(__file__).resolve().parent / "schemas"
NODE_SCHEMA = "node.schema.yaml"
SNAPSHOT_SCHEMA = "snapshot.schema.yaml"

Problem = Tuple[str, str]


class ValidationError(RuntimeError):
    """First schema violation in a document, with pointers into instance and schema."""

    def __init__(self, where: str, message: str, schema_path: str = "", instance_path: str = ""):
        self.where = where
        self.message = message
        self.schema_path = schema_path
        self.instance_path = instance_path
        super().__init__(f"{where}: {message} at $.{instance_path or '(root)'}")


def _pointer(parts: Iterable[Any]) -> str:
    return "/".join(str(p) for p in parts)


def _with_defaults(base):
    check_properties = base.VALIDATORS["properties"]

    def properties(validator, props, instance, schema):
        if isinstance(instance, dict):
            for name, sub in props.items():
                if isinstance(sub, dict) and "default" in sub:
                    instance.setdefault(name, sub["default"])
        yield from check_properties(validator, props, instance, schema)

    return validators.extend(base, {"properties": properties})


DefaultingValidator = _with_defaults(Draft202012Validator)


def load_document(path: Path) -> Any:
    """JSON for *.json, YAML for anything else."""
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        return json.loads(text)
    return yaml.safe_load(text)


class SchemaRegistry:
    """Schemas from one directory, compiled on first use."""

    def __init__(self, schemas_dir: Optional[Path] = None):
        self.schemas_dir = Path(schemas_dir) if schemas_dir else SCHEMAS_DIR
        self._compiled: Dict[Tuple[str, bool], Draft202012Validator] = {}

    def validator(self, name: str, apply_defaults: bool = False) -> Draft202012Validator:
        key = (name, bool(apply_defaults))
        if key not in self._compiled:
            path = self.schemas_dir / name
            if not path.is_file():
                raise FileNotFoundError(f"schema {name} not found in {self.schemas_dir}")
            schema = load_document(path)
            Draft202012Validator.check_schema(schema)
            cls = DefaultingValidator if apply_defaults else Draft202012Validator
            self._compiled[key] = cls(schema)
        return self._compiled[key]

    def errors(self, instance: Any, name: str, apply_defaults: bool = False) -> list:
        found = self.validator(name, apply_defaults).iter_errors(instance)
        return sorted(found, key=lambda e: _pointer(e.path))


@lru_cache(maxsize=1)
def default_registry() -> SchemaRegistry:
    return SchemaRegistry()


# ---- generic ----

def lint_instance(instance: Any, schema_file: str, registry: Optional[SchemaRegistry] = None,
                  apply_defaults: bool = False) -> List[Problem]:
    reg = registry or default_registry()
    return [(_pointer(e.path) or "(root)", e.message) for e in reg.errors(instance, schema_file, apply_defaults)]


def assert_instance(instance: Any, schema_file: str, where: str = "instance",
                    registry: Optional[SchemaRegistry] = None, apply_defaults: bool = False) -> None:
    reg = registry or default_registry()
    errors = reg.errors(instance, schema_file, apply_defaults)
    if errors:
        first = errors[0]
        raise ValidationError(where, first.message, _pointer(first.schema_path), _pointer(first.path))


# ---- node records / snapshots ----

def lint_node(node: Any, registry: Optional[SchemaRegistry] = None, apply_defaults: bool = False) -> List[Problem]:
    return lint_instance(node, NODE_SCHEMA, registry=registry, apply_defaults=apply_defaults)


def assert_node(node: Any, registry: Optional[SchemaRegistry] = None, apply_defaults: bool = False) -> None:
    where = str(node.get("address") or "node") if isinstance(node, dict) else "node"
    assert_instance(node, NODE_SCHEMA, where=where, registry=registry, apply_defaults=apply_defaults)


def lint_snapshot(doc: Any, registry: Optional[SchemaRegistry] = None) -> List[Problem]:
    return lint_instance(doc, SNAPSHOT_SCHEMA, registry=registry)


def assert_snapshot(doc: Any, registry: Optional[SchemaRegistry] = None) -> None:
    assert_instance(doc, SNAPSHOT_SCHEMA, where="snapshot", registry=registry)


def snapshot_nodes(doc: Any) -> List[Any]:
    """Node list out of a snapshot document (bare list or {"nodes": [...]})."""
    if isinstance(doc, list):
        return doc
    if isinstance(doc, dict) and isinstance(doc.get("nodes"), list):
        return doc["nodes"]
    return []


@dataclass
class RecordReport:
    index: int
    address: Optional[str]
    problems: List[Problem] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.problems


@dataclass
class SnapshotReport:
    records: List[RecordReport] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.records)

    @property
    def valid(self) -> int:
        return sum(1 for r in self.records if r.valid)

    @property
    def invalid(self) -> int:
        return self.total - self.valid


def validate_snapshot_file(path: Path, registry: Optional[SchemaRegistry] = None) -> SnapshotReport:
    """Check the document shape, then every node record in it."""
    reg = registry or default_registry()
    doc = load_document(Path(path))
    assert_snapshot(doc, registry=reg)
    report = SnapshotReport()
    for idx, raw in enumerate(snapshot_nodes(doc)):
        address = raw.get("address") if isinstance(raw, dict) else None
        report.records.append(RecordReport(idx, address, lint_node(raw, registry=reg)))
    return report
