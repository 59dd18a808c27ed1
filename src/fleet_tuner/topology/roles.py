"""
Topology profile helpers.

Why this file exists
The topology records which services run where, but budgeting needs one
answer per node: which recipe applies. A node that runs several services is
budgeted once, by its most inclusive profile.

Profiles are derived with set differences, in this order:

- primary and replica come straight from their classes
- compilers exclude the controllers
- console hosts exclude the controllers
- job queue hosts exclude controllers and compilers
- database hosts exclude every profile above

We keep these helpers centralized so the runner and the aggregator agree on
which node is which.
"""

from __future__ import annotations

from typing import Dict, List

from fleet_tuner.core.types import NodeProfile, ServiceClass, Topology


def profile_nodes(topology: Topology) -> Dict[NodeProfile, List[str]]:
    """Return sorted node names for every profile, including empty profiles."""
    primary = topology.nodes_with(ServiceClass.primary_controller)
    replica = topology.nodes_with(ServiceClass.replica)
    controllers = primary | replica

    compilers = topology.nodes_with(ServiceClass.compiler) - controllers
    consoles = topology.nodes_with(ServiceClass.console) - controllers
    job_queues = topology.nodes_with(ServiceClass.job_queue) - controllers - compilers
    databases = topology.nodes_with(ServiceClass.database) - controllers - compilers - job_queues

    return {
        NodeProfile.primary: sorted(primary),
        NodeProfile.replica: sorted(replica),
        NodeProfile.compiler: sorted(compilers),
        NodeProfile.console: sorted(consoles),
        NodeProfile.job_queue: sorted(job_queues),
        NodeProfile.database: sorted(databases),
    }


def node_profiles(topology: Topology) -> Dict[str, NodeProfile]:
    """
    Return the profile of each node.

    Iteration follows NodeProfile order, so the primary is always first.
    """
    result: Dict[str, NodeProfile] = {}
    for profile, names in profile_nodes(topology).items():
        for name in names:
            result.setdefault(name, profile)
    return result


# ---------------------------
# INFRASTRUCTURE PREDICATES
# ---------------------------

def with_compilers(topology: Topology) -> bool:
    return bool(profile_nodes(topology)[NodeProfile.compiler])


def is_monolithic(topology: Topology) -> bool:
    """True when console and job queue both run on the controllers."""
    profiles = profile_nodes(topology)
    return not profiles[NodeProfile.console] and not profiles[NodeProfile.job_queue]


def with_ha(topology: Topology) -> bool:
    return bool(topology.nodes_with(ServiceClass.replica))


def with_external_database(topology: Topology) -> bool:
    """True when a dedicated database host exists."""
    return bool(profile_nodes(topology)[NodeProfile.database])
