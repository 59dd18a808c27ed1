"""
Aggregate package.

Fleet level views over per node budgets: the common settings layer and the
capacity estimate.
"""

from fleet_tuner.aggregate.capacity import CapacityEstimate, available_workers, estimate_capacity
from fleet_tuner.aggregate.common import CommonSettings, extract_common_settings

__all__ = [
    "CapacityEstimate",
    "CommonSettings",
    "available_workers",
    "estimate_capacity",
    "extract_common_settings",
]
