"""
Budget package.

Tier functions, the checkpoint pipeline, per profile recipes, and the
ResourceBudgeter that ties them together.
"""

from fleet_tuner.budget.budgeter import BudgeterConfig, BudgetOptions, ResourceBudgeter
from fleet_tuner.budget.requirements import (
    ensure_minimum_requirements,
    meets_minimum_requirements,
)

__all__ = [
    "BudgetOptions",
    "BudgeterConfig",
    "ResourceBudgeter",
    "ensure_minimum_requirements",
    "meets_minimum_requirements",
]
