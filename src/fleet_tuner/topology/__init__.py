"""
Topology package.

Classification of declared roles or discovered memberships, plus the
profile helpers used to pick a budget recipe per node.
"""

from fleet_tuner.topology.classifier import (
    classify_memberships,
    classify_roles,
    component_flags_for,
    validate_topology,
)
from fleet_tuner.topology.roles import node_profiles, profile_nodes

__all__ = [
    "classify_memberships",
    "classify_roles",
    "component_flags_for",
    "node_profiles",
    "profile_nodes",
    "validate_topology",
]
