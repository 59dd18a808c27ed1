"""
Tier functions.

Every budget recipe buckets a node into small, medium, or large by processor
count or memory, and normalizes computed shares with one clamp primitive.

Thresholds follow the published monolithic tuning guidance:

    processors  <= 4 small, < 16 medium, >= 16 large
    memory MB   <= 8192 small, < 32768 medium, >= 32768 large

All functions are total and pure. Values above the upper bound saturate at
the large value.
"""

from __future__ import annotations

from typing import TypeVar

T = TypeVar("T")


# ---------------------------
# TIERS
# ---------------------------

def tier_by_cpu(cores: int, small: T, medium: T, large: T) -> T:
    """Return the value for the processor tier of a node."""
    if cores <= 4:
        return small
    if cores < 16:
        return medium
    return large


def tier_by_ram(ram_mb: int, small: T, medium: T, large: T) -> T:
    """Return the value for the memory tier of a node."""
    if ram_mb <= 8192:
        return small
    if ram_mb < 32768:
        return medium
    return large


# ---------------------------
# CLAMPS
# ---------------------------

def clamp(value: int, minimum: int, maximum: int) -> int:
    """
    Bound a value between minimum and maximum.

    The maximum is applied first, so the minimum wins when minimum > maximum.
    """
    return max(min(value, maximum), minimum)


def clamp_percent_of(resource: int, percent: float, minimum: int, maximum: int) -> int:
    """
    Return a percentage of a resource bounded by minimum and maximum.

        computed = floor(resource * percent / 100)
        result   = max(min(computed, maximum), minimum)

    On tiny nodes the minimum floor can legitimately exceed the
    percentage derived ceiling, and the floor wins.
    """
    computed = int(resource * percent) // 100
    return clamp(computed, minimum, maximum)
