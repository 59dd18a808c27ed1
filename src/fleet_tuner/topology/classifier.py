"""
Topology classifier.

This module turns declared infrastructure roles, or class memberships
discovered from a catalog, into one canonical Topology.

Design goals
1. Fresh state on every call. Two classifications never share sets.
2. One validation routine for both paths, run before anything is budgeted.
3. Fixed assignment order so the result is deterministic.

Assignment order for declared roles
1. primary controller and its implied services
2. console host
3. job queue hosts, the first one defaulting to the database
4. database host
5. replica
6. compilers
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Mapping, Set, Union

from fleet_tuner.core.errors import TopologyInvalid, UnknownTopology
from fleet_tuner.core.types import ComponentFlags, InventoryRoles, ServiceClass, Topology

logger = logging.getLogger(__name__)

# Services that always run on the primary controller.
PRIMARY_SERVICES = (
    ServiceClass.certificate_authority,
    ServiceClass.primary_controller,
    ServiceClass.compiler,
    ServiceClass.message_broker,
    ServiceClass.orchestrator,
)

# A replica is a full standby of the primary, minus the certificate authority.
REPLICA_SERVICES = (
    ServiceClass.replica,
    ServiceClass.compiler,
    ServiceClass.console,
    ServiceClass.job_queue,
    ServiceClass.database,
    ServiceClass.message_broker,
    ServiceClass.orchestrator,
)


def _empty_classes() -> Dict[ServiceClass, Set[str]]:
    return {cls: set() for cls in ServiceClass}


def _assign(classes: Dict[ServiceClass, Set[str]], node: str, services: Iterable[ServiceClass]) -> None:
    for cls in services:
        classes[cls].add(node)


# ---------------------------
# DECLARED ROLES
# ---------------------------

def classify_roles(roles: InventoryRoles) -> Topology:
    """
    Build a Topology from declared infrastructure roles.

    Raises UnknownTopology when no primary controller is declared and
    TopologyInvalid when the result violates an invariant.
    """
    primary = roles.primary_controller_host
    if not primary:
        raise UnknownTopology("no controller identified")

    classes = _empty_classes()
    job_queue_hosts = [h for h in roles.job_queue_hosts if h]
    compiler_hosts = [h for h in roles.compiler_hosts if h]

    _assign(classes, primary, PRIMARY_SERVICES)
    if not roles.console_host:
        classes[ServiceClass.console].add(primary)
    if not job_queue_hosts:
        classes[ServiceClass.job_queue].add(primary)
        if not roles.database_host:
            classes[ServiceClass.database].add(primary)

    if roles.console_host:
        classes[ServiceClass.console].add(roles.console_host)

    if job_queue_hosts:
        classes[ServiceClass.job_queue].update(job_queue_hosts)
        if not roles.database_host:
            logger.debug("Database defaults to the first job queue host %s", job_queue_hosts[0])
            classes[ServiceClass.database].add(job_queue_hosts[0])

    if roles.database_host:
        classes[ServiceClass.database].add(roles.database_host)

    if roles.replica_host:
        _assign(classes, roles.replica_host, REPLICA_SERVICES)

    classes[ServiceClass.compiler].update(compiler_hosts)

    topology = Topology({cls: frozenset(nodes) for cls, nodes in classes.items()})
    validate_topology(topology)
    return topology


# ---------------------------
# DISCOVERED MEMBERSHIPS
# ---------------------------

# Services that fall back to the primary when no other node runs them.
DEFAULTED_SERVICES = (
    ServiceClass.console,
    ServiceClass.job_queue,
    ServiceClass.database,
)


def classify_memberships(memberships: Mapping[Union[str, ServiceClass], Iterable[str]]) -> Topology:
    """
    Build a Topology from discovered class memberships.

    Keys may be ServiceClass members or their string values.
    When no primary controller is listed it is inferred as the certificate
    authority that is not the replica.

    Catalogs often list only the certificate authority and the compilers.
    The primary always runs its own services, so those are added to it.
    Console, job queue and database are added to the primary when no node
    other than the replica runs them.
    """
    classes = _empty_classes()
    for raw_cls, nodes in memberships.items():
        try:
            cls = ServiceClass(raw_cls)
        except ValueError as exc:
            raise TopologyInvalid(f"unknown service class {raw_cls!r}") from exc
        if isinstance(nodes, str):
            nodes = [nodes]
        classes[cls].update(n for n in nodes if n)

    replicas = classes[ServiceClass.replica]
    if not classes[ServiceClass.primary_controller]:
        inferred = classes[ServiceClass.certificate_authority] - replicas
        logger.debug("Inferred primary controller %s", sorted(inferred))
        classes[ServiceClass.primary_controller] = set(inferred)

    primaries = sorted(classes[ServiceClass.primary_controller])
    for node in primaries:
        _assign(classes, node, PRIMARY_SERVICES)
    for cls in DEFAULTED_SERVICES:
        if not classes[cls] - replicas:
            logger.debug("No %s node listed, defaulting to %s", cls.value, primaries)
            classes[cls].update(primaries)

    topology = Topology({cls: frozenset(nodes) for cls, nodes in classes.items()})
    validate_topology(topology)
    return topology


# ---------------------------
# VALIDATION
# ---------------------------

def validate_topology(topology: Topology) -> None:
    """
    Enforce topology invariants.

    Checks
    a primary controller exists
    at most one certificate authority, replica, and primary controller
    at most one active console, the replica's standby does not count
    the primary carries every service it always runs
    the primary is not also the replica
    """
    primaries = topology.nodes_with(ServiceClass.primary_controller)
    replicas = topology.nodes_with(ServiceClass.replica)

    if not primaries:
        raise UnknownTopology("no controller identified")

    for cls in (
        ServiceClass.certificate_authority,
        ServiceClass.replica,
        ServiceClass.primary_controller,
    ):
        members = topology.nodes_with(cls)
        if len(members) > 1:
            raise TopologyInvalid(f"more than one {cls.value} node: {sorted(members)}")

    active_consoles = topology.nodes_with(ServiceClass.console) - replicas
    if len(active_consoles) > 1:
        raise TopologyInvalid(f"more than one console node: {sorted(active_consoles)}")

    if primaries & replicas:
        raise TopologyInvalid(f"primary controller is also the replica: {sorted(primaries)}")

    for node in primaries:
        missing = [cls.value for cls in PRIMARY_SERVICES if not topology.has(node, cls)]
        if missing:
            raise TopologyInvalid(f"primary controller {node} is missing {missing}")


def component_flags_for(topology: Topology, node: str) -> ComponentFlags:
    """Derive the budgeted services colocated on one node."""
    return ComponentFlags(
        message_broker=topology.has(node, ServiceClass.message_broker),
        console=topology.has(node, ServiceClass.console),
        database=topology.has(node, ServiceClass.database),
        orchestrator=topology.has(node, ServiceClass.orchestrator),
        job_queue=topology.has(node, ServiceClass.job_queue),
    )
