"""
Inventory plugin interfaces.

Goal
Provide pluggable fact ingestion so the tuner is source agnostic.

A plugin returns node capacities plus either declared roles or discovered
class memberships. The runner classifies whichever one is present.

We keep the interface narrow so it is easy to mock in tests.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol

from fleet_tuner.core.types import InventoryRoles
from fleet_tuner.inventory.store import NodeStore


@dataclass(frozen=True)
class InventoryLoadResult:
    """
    Normalized inventory.

    store holds node capacities.
    roles or memberships describes the infrastructure. When both are set,
    memberships win because they were discovered rather than declared.
    evidence is structured metadata about the source and counts.
    """

    store: NodeStore
    roles: Optional[InventoryRoles] = None
    memberships: Optional[Dict[str, List[str]]] = None
    evidence: Dict[str, object] = field(default_factory=dict)


class InventoryPlugin(Protocol):
    """
    Inventory plugin interface.

    load returns a fully populated InventoryLoadResult or raises InventoryError.
    """

    def load(self) -> InventoryLoadResult:
        """Load the fleet inventory."""
