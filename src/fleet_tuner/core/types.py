"""
Core types.

This file defines the shared data structures used across the tuner.

Important design choice
Everything here is plain immutable data. The classifier and the budgeter are
pure functions over these records, which keeps a tuning run deterministic and
lets callers budget nodes in any order.

Capacity is always expressed as processor count and megabytes of RAM.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple


class ServiceClass(str, Enum):
    """
    Control plane service classes.

    primary_controller
      The controller that owns the certificate authority.

    replica
      Full standby of the primary controller.

    certificate_authority
      Signs agent certificates. Only ever one.

    compiler
      Compiles catalogs. The primary and replica are compilers too.

    console
      Web console service.

    job_queue
      Command processing and storage service for agent data.

    database
      Relational database backing the job queue.

    message_broker
      Message broker used by agents.

    orchestrator
      Job orchestration service.
    """

    primary_controller = "primary_controller"
    replica = "replica"
    certificate_authority = "certificate_authority"
    compiler = "compiler"
    console = "console"
    job_queue = "job_queue"
    database = "database"
    message_broker = "message_broker"
    orchestrator = "orchestrator"


class NodeProfile(str, Enum):
    """
    Budget profile for a node.

    primary and replica run every service side by side with the broker and
    orchestrator. The other profiles are dedicated roles in split
    infrastructures.
    """

    primary = "primary"
    replica = "replica"
    compiler = "compiler"
    console = "console"
    job_queue = "job_queue"
    database = "database"

    @property
    def label(self) -> str:
        return _PROFILE_LABELS[self]


_PROFILE_LABELS = {
    NodeProfile.primary: "Primary Controller",
    NodeProfile.replica: "Replica Controller",
    NodeProfile.compiler: "Compiler",
    NodeProfile.console: "Console Host",
    NodeProfile.job_queue: "Job Queue Host",
    NodeProfile.database: "Database Host",
}


@dataclass(frozen=True)
class Capacity:
    """
    Processor and memory capacity of a node.

    Missing facts are represented as zero. The budgeter rejects such nodes
    through its normal checkpoints rather than treating them as errors.
    """

    cpu_cores: int = 0
    ram_mb: int = 0


@dataclass(frozen=True)
class NodeRecord:
    """
    A node in the inventory.

    newer_runtime is True when the node runs the compiler runtime that needs a
    reserved code cache.
    """

    name: str
    capacity: Capacity
    newer_runtime: bool = False


@dataclass(frozen=True)
class ComponentFlags:
    """Which budgeted services are colocated on one node."""

    message_broker: bool = False
    console: bool = False
    database: bool = False
    orchestrator: bool = False
    job_queue: bool = False


@dataclass(frozen=True)
class InventoryRoles:
    """
    Declared infrastructure roles.

    primary_controller_host is required for classification.
    List roles keep declaration order because the first job queue host is
    the default database host.
    """

    primary_controller_host: Optional[str] = None
    console_host: Optional[str] = None
    job_queue_hosts: Tuple[str, ...] = ()
    database_host: Optional[str] = None
    replica_host: Optional[str] = None
    compiler_hosts: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Topology:
    """
    Resolved mapping of service class to node names.

    Every ServiceClass is present as a key, possibly with an empty set.
    Build instances through the classifier, which enforces invariants.
    """

    classes: Dict[ServiceClass, FrozenSet[str]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        normalized = {cls: frozenset(self.classes.get(cls, ())) for cls in ServiceClass}
        object.__setattr__(self, "classes", normalized)

    def nodes_with(self, cls: ServiceClass) -> FrozenSet[str]:
        """Return the nodes carrying a service class."""
        return self.classes[cls]

    def has(self, node: str, cls: ServiceClass) -> bool:
        return node in self.classes[cls]

    def memberships(self) -> Dict[str, List[str]]:
        """Return a plain, sorted representation suitable for reclassification."""
        return {cls.value: sorted(members) for cls, members in self.classes.items()}

    def __hash__(self) -> int:
        return hash(tuple((cls, self.classes[cls]) for cls in ServiceClass))


@dataclass(frozen=True)
class ResourceUsage:
    """Total and allocated amount of one resource."""

    total: int
    used: int

    @property
    def free(self) -> int:
        return self.total - self.used


@dataclass(frozen=True)
class UsageTotals:
    """
    Accounting summary of a successful budget.

    used never includes the memory reserved for the operating system.
    mem_per_worker is zero for recipes without a worker pool.
    """

    cpu: ResourceUsage
    ram: ResourceUsage
    mem_per_worker: int = 0


@dataclass(frozen=True)
class CheckpointFailure:
    """
    The first budget checkpoint that could not be satisfied.

    resource is "cpu" or "ram".
    """

    checkpoint: str
    resource: str
    required: int
    available: int

    @property
    def shortfall(self) -> int:
        return self.required - self.available

    def describe(self) -> str:
        unit = "MB" if self.resource == "ram" else "processors"
        return (
            f"{self.checkpoint}: available {self.resource} {self.available} {unit} "
            f"is less than minimum {self.required} {unit}"
        )
