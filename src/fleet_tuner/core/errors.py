"""
Error taxonomy.

We separate error types so callers can react correctly.
Example:
UnknownTopology stops the whole run, nothing downstream is computable.
TopologyInvalid should block before any node is budgeted.
BelowMinimumRequirements stops processing for one node.
InventoryError is raised by inventory sources before the core is invoked.

An infeasible budget is not an exception. The budgeter returns an empty
settings map with the failing checkpoint attached.
"""

from __future__ import annotations

from fleet_tuner.core.types import Capacity


class TunerError(Exception):
    """Base class for all tuner exceptions."""


class TopologyInvalid(TunerError):
    """Raised when classified roles violate a topology invariant."""


class UnknownTopology(TopologyInvalid):
    """Raised when no primary controller can be identified."""


class InventoryError(TunerError):
    """Raised when an inventory or fact source cannot be read or parsed."""


class BelowMinimumRequirements(TunerError):
    """Raised when a node does not meet the minimum system requirements."""

    def __init__(self, node: str, capacity: Capacity) -> None:
        self.node = node
        self.capacity = capacity
        super().__init__(
            f"{node} does not meet the minimum system requirements to optimize its settings "
            f"({capacity.cpu_cores} CPU / {capacity.ram_mb} MB RAM)"
        )
