"""
Minimum system requirements gate.

Nodes smaller than this are usually evaluation installs. Tuning them is
allowed, but only when the operator explicitly forces it.
"""

from __future__ import annotations

from fleet_tuner.core.errors import BelowMinimumRequirements
from fleet_tuner.core.types import Capacity

MINIMUM_CPU_CORES = 4
MINIMUM_RAM_MB = 8192


def meets_minimum_requirements(capacity: Capacity) -> bool:
    return capacity.cpu_cores >= MINIMUM_CPU_CORES and capacity.ram_mb >= MINIMUM_RAM_MB


def ensure_minimum_requirements(node: str, capacity: Capacity, force: bool = False) -> None:
    """Raise BelowMinimumRequirements for an undersized node unless forced."""
    if force or meets_minimum_requirements(capacity):
        return
    raise BelowMinimumRequirements(node, capacity)
