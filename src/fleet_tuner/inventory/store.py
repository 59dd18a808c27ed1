"""
Node store.

We keep a simple in memory store as the normalized view of the fleet.
Inventory plugins fill it, and the runner reads capacities from it.

Why not keep raw fact payloads
We want a stable internal representation that does not leak the schema of
a fact source into the classifier or the budgeter.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

from fleet_tuner.core.types import Capacity, NodeRecord


@dataclass
class NodeStore:
    """
    Node registry keyed by node name.

    A node referenced by the topology but missing from the store is treated
    as having zero capacity.
    """

    _nodes: Dict[str, NodeRecord] = field(default_factory=dict)

    def add(self, node: NodeRecord) -> None:
        """Add or replace a node record."""
        self._nodes[node.name] = node

    def capacity_of(self, name: str) -> Capacity:
        node = self._nodes.get(name)
        return node.capacity if node else Capacity()

    def newer_runtime(self, name: str) -> bool:
        node = self._nodes.get(name)
        return bool(node and node.newer_runtime)

    def names(self) -> List[str]:
        """Return sorted node names. Useful for deterministic outputs."""
        return sorted(self._nodes.keys())

    def __len__(self) -> int:
        return len(self._nodes)
