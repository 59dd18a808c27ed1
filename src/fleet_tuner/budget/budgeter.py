"""
Resource budgeter.

Purpose
Given the capacity of one node, the services colocated on it, and the
profile it plays in the infrastructure, compute the settings that partition
its memory and processors between those services.

The budgeter is pure. It never reads the environment. Overrides that the
command line or an operator provides are passed in through BudgeterConfig.

Why recipes plus one pipeline
Each profile has different services and ratios, but they all follow the
same reserve then verify pattern. Recipes only choose steps, the pipeline
enforces the all or nothing rule once.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List

from fleet_tuner.budget.pipeline import BudgetStep, run_recipe
from fleet_tuner.budget.recipes import (
    RecipeInputs,
    compiler_recipe,
    console_recipe,
    controller_recipe,
    database_recipe,
    default_per_worker_mb,
    job_queue_recipe,
)
from fleet_tuner.core.settings import BudgetResult
from fleet_tuner.core.types import Capacity, ComponentFlags, NodeProfile

logger = logging.getLogger(__name__)

DEFAULT_OS_RESERVED_MB = 1024

Recipe = Callable[[RecipeInputs], List[BudgetStep]]

RECIPES: Dict[NodeProfile, Recipe] = {
    NodeProfile.primary: controller_recipe,
    NodeProfile.replica: controller_recipe,
    NodeProfile.compiler: compiler_recipe,
    NodeProfile.console: console_recipe,
    NodeProfile.job_queue: job_queue_recipe,
    NodeProfile.database: database_recipe,
}


@dataclass(frozen=True)
class BudgeterConfig:
    """
    Budgeter configuration.

    per_worker_mb
    Memory per compiler worker. Zero selects the tiered default.

    os_reserved_mb
    Memory held back for the operating system. Zero selects 1024.

    cpu_override, ram_override
    Replace the detected capacity of the primary controller. Zero keeps the
    detected value. Other profiles always use their own capacity.
    """

    per_worker_mb: int = 0
    os_reserved_mb: int = 0
    cpu_override: int = 0
    ram_override: int = 0

    @property
    def effective_os_reserved_mb(self) -> int:
        return self.os_reserved_mb or DEFAULT_OS_RESERVED_MB


@dataclass(frozen=True)
class BudgetOptions:
    """
    Infrastructure level facts that change a node's recipe.

    with_compilers
    True when the infrastructure has dedicated compilers.

    newer_runtime
    True when the node runs the runtime that needs a reserved code cache.

    current_per_worker_mb
    Memory per worker derived from the node's current settings. Used when
    no per_worker_mb is configured. Zero selects the tiered default.
    """

    with_compilers: bool = False
    newer_runtime: bool = False
    current_per_worker_mb: int = 0


class ResourceBudgeter:
    """
    Budget one node at a time.

    Results are deterministic for identical inputs and independent of the
    order in which nodes are budgeted.
    """

    def __init__(self, config: BudgeterConfig | None = None) -> None:
        self._config = config or BudgeterConfig()

    @property
    def config(self) -> BudgeterConfig:
        return self._config

    def effective_capacity(self, capacity: Capacity, profile: NodeProfile) -> Capacity:
        """Apply configured overrides. Only the primary controller is affected."""
        if profile != NodeProfile.primary:
            return capacity

        cpu = capacity.cpu_cores
        ram = capacity.ram_mb
        if self._config.cpu_override:
            logger.debug("Using %s processors instead of %s", self._config.cpu_override, cpu)
            cpu = self._config.cpu_override
        if self._config.ram_override:
            logger.debug("Using %s MB RAM instead of %s", self._config.ram_override, ram)
            ram = self._config.ram_override
        return Capacity(cpu_cores=cpu, ram_mb=ram)

    def budget(
        self,
        capacity: Capacity,
        flags: ComponentFlags,
        profile: NodeProfile,
        options: BudgetOptions | None = None,
    ) -> BudgetResult:
        """
        Compute settings for one node.

        Returns an infeasible BudgetResult, never raises, when the node
        cannot satisfy one of the recipe checkpoints.
        """
        options = options or BudgetOptions()
        capacity = self.effective_capacity(capacity, profile)

        per_worker_mb = (
            self._config.per_worker_mb
            or options.current_per_worker_mb
            or default_per_worker_mb(capacity.ram_mb)
        )
        inputs = RecipeInputs(
            capacity=capacity,
            flags=flags,
            with_compilers=options.with_compilers,
            newer_runtime=options.newer_runtime,
            per_worker_mb=per_worker_mb,
        )

        steps = RECIPES[profile](inputs)
        logger.debug(
            "Budgeting %s with %s processors and %s MB RAM",
            profile.label,
            capacity.cpu_cores,
            capacity.ram_mb,
        )
        return run_recipe(
            profile.value,
            capacity,
            self._config.effective_os_reserved_mb,
            steps,
        )
