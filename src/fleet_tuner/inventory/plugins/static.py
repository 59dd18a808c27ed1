"""
Static inventory plugin.

Reads a local JSON or YAML file, selected by suffix.
This is useful for planning a new infrastructure, for tests, and for nodes
whose facts cannot be queried.

Schema example (YAML)
nodes:
  primary.example.com:
    resources:
      cpu: 8
      ram: 16g
    newer_runtime: true
  compiler1.example.com:
    resources: {cpu: 4, ram: 8192}
roles:
  primary_controller_host: primary.example.com
  compiler_hosts: [compiler1.example.com]

Instead of roles an inventory may carry discovered memberships:
memberships:
  certificate_authority: [primary.example.com]
  compiler: [primary.example.com, compiler1.example.com]

ram is megabytes as an integer, or a string with a b, k, m or g suffix.
List roles also accept a single string.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from fleet_tuner.core.errors import InventoryError
from fleet_tuner.core.settings import parse_megabytes
from fleet_tuner.core.types import Capacity, InventoryRoles, NodeRecord
from fleet_tuner.inventory.plugins.base import InventoryLoadResult, InventoryPlugin
from fleet_tuner.inventory.store import NodeStore

_SINGLE_ROLES = ("primary_controller_host", "console_host", "database_host", "replica_host")
_LIST_ROLES = ("job_queue_hosts", "compiler_hosts")
_YAML_SUFFIXES = {".yaml", ".yml"}


def _as_int(value: Any, what: str) -> int:
    if value is None:
        return 0
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise InventoryError(f"invalid {what}: {value!r}") from exc


def _node_from_dict(name: str, obj: Any) -> NodeRecord:
    """Convert one node entry into a NodeRecord. Missing resources become zero."""
    if obj is None:
        obj = {}
    if not isinstance(obj, dict):
        raise InventoryError(f"node {name} must be a mapping")

    resources = obj.get("resources", {}) or {}
    if not isinstance(resources, dict):
        raise InventoryError(f"resources of node {name} must be a mapping")

    raw_ram = resources.get("ram")
    try:
        ram_mb = parse_megabytes(raw_ram) if raw_ram is not None else 0
    except ValueError as exc:
        raise InventoryError(f"invalid ram for node {name}: {raw_ram!r}") from exc

    return NodeRecord(
        name=str(name),
        capacity=Capacity(
            cpu_cores=_as_int(resources.get("cpu"), f"cpu for node {name}"),
            ram_mb=ram_mb,
        ),
        newer_runtime=bool(obj.get("newer_runtime", False)),
    )


def _as_hosts(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, list):
        return tuple(str(v) for v in value if v)
    raise InventoryError(f"expected a host name or a list of host names, got {value!r}")


def _roles_from_dict(obj: Any) -> InventoryRoles:
    if not isinstance(obj, dict):
        raise InventoryError("roles must be a mapping")

    unknown = sorted(set(obj) - set(_SINGLE_ROLES) - set(_LIST_ROLES))
    if unknown:
        raise InventoryError(f"unknown roles: {unknown}")

    single = {key: (str(obj[key]) if obj.get(key) else None) for key in _SINGLE_ROLES}
    lists = {key: _as_hosts(obj.get(key)) for key in _LIST_ROLES}
    return InventoryRoles(**single, **lists)


def _memberships_from_dict(obj: Any) -> Dict[str, List[str]]:
    if not isinstance(obj, dict):
        raise InventoryError("memberships must be a mapping")
    return {str(cls): list(_as_hosts(nodes)) for cls, nodes in obj.items()}


def parse_inventory(data: Any, source: str) -> InventoryLoadResult:
    """
    Normalize an inventory document.

    Shared by every plugin whose source speaks this schema.
    """
    if not isinstance(data, dict):
        raise InventoryError(f"{source}: inventory must be a mapping")

    nodes = data.get("nodes", {}) or {}
    if not isinstance(nodes, dict):
        raise InventoryError(f"{source}: nodes must be a mapping")

    store = NodeStore()
    for name, obj in nodes.items():
        store.add(_node_from_dict(str(name), obj))

    roles: Optional[InventoryRoles] = None
    memberships: Optional[Dict[str, List[str]]] = None
    if data.get("roles") is not None:
        roles = _roles_from_dict(data["roles"])
    if data.get("memberships") is not None:
        memberships = _memberships_from_dict(data["memberships"])
    if roles is None and memberships is None:
        raise InventoryError(f"{source}: inventory needs roles or memberships")

    return InventoryLoadResult(
        store=store,
        roles=roles,
        memberships=memberships,
        evidence={"source": source, "node_count": len(store), "nodes": store.names()},
    )


@dataclass(frozen=True)
class StaticInventoryPlugin(InventoryPlugin):
    """
    Load inventory from a local file.

    path points to a JSON or YAML file matching the schema described in the
    module docstring. Files ending in .yaml or .yml are read as YAML.
    """

    path: Path

    def load(self) -> InventoryLoadResult:
        path = Path(self.path)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise InventoryError(f"unable to read inventory file {path}: {exc}") from exc

        try:
            if path.suffix.lower() in _YAML_SUFFIXES:
                data = yaml.safe_load(text)
            else:
                data = json.loads(text)
        except (yaml.YAMLError, json.JSONDecodeError) as exc:
            raise InventoryError(f"unable to parse inventory file {path}: {exc}") from exc

        return parse_inventory(data, str(path))
