"""
Budget checkpoint pipeline.

Every recipe is an ordered list of steps executed against one ledger.
A step checks the remaining budget against its floor, then reserves an
amount and records the setting it funds.

The first step whose checkpoint fails aborts the whole recipe. No partial
settings ever leave this module: run_recipe returns either a complete result
or an infeasible one carrying the failing checkpoint.

Memory accounting
available = ram - os_reserved - used

The operating system reservation reduces what is available but is never
reported as used.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol, Sequence

from fleet_tuner.budget.tiers import clamp
from fleet_tuner.core.settings import (
    SETTINGS_CATALOG,
    BudgetResult,
    SettingKey,
    SettingsMap,
    SettingValue,
)
from fleet_tuner.core.types import Capacity, CheckpointFailure, ResourceUsage, UsageTotals

logger = logging.getLogger(__name__)


@dataclass
class BudgetLedger:
    """
    Running allocation state for one recipe execution.

    The ledger is private to a single run_recipe call.
    """

    capacity: Capacity
    os_reserved_mb: int
    ram_used: int = 0
    cpu_used: int = 0
    mem_per_worker: int = 0
    settings: Dict[SettingKey, SettingValue] = field(default_factory=dict)

    @property
    def ram_available(self) -> int:
        return self.capacity.ram_mb - self.os_reserved_mb - self.ram_used

    def allocate_ram(self, setting: SettingKey, mb: int) -> None:
        self.settings[setting] = SETTINGS_CATALOG[setting].wrap(mb)
        self.ram_used += mb

    def allocate_cpu(self, setting: SettingKey, count: int) -> None:
        self.settings[setting] = SETTINGS_CATALOG[setting].wrap(count)
        self.cpu_used += count


class BudgetStep(Protocol):
    """
    One reserve then verify step.

    apply returns None on success, or the failing checkpoint.
    """

    checkpoint: str

    def apply(self, ledger: BudgetLedger) -> Optional[CheckpointFailure]:
        """Check the floor and reserve into the ledger."""


@dataclass(frozen=True)
class ReserveMemory:
    """
    Reserve memory for one service setting.

    floor is the smallest remainder that makes the reservation safe.
    The grant is the requested amount, limited to what is still available.
    """

    checkpoint: str
    setting: SettingKey
    amount: int
    floor: int

    def apply(self, ledger: BudgetLedger) -> Optional[CheckpointFailure]:
        available = ledger.ram_available
        if available < self.floor:
            return CheckpointFailure(self.checkpoint, "ram", self.floor, available)
        ledger.allocate_ram(self.setting, min(self.amount, available))
        return None


@dataclass(frozen=True)
class ReserveThreads:
    """
    Reserve processors for a thread pool.

    Thread pools are sized against total processors, not the remainder,
    so the checkpoint only verifies the node has the minimum.
    """

    checkpoint: str
    setting: SettingKey
    amount: int
    minimum: int

    def apply(self, ledger: BudgetLedger) -> Optional[CheckpointFailure]:
        cores = ledger.capacity.cpu_cores
        if cores < self.minimum:
            return CheckpointFailure(self.checkpoint, "cpu", self.minimum, cores)
        ledger.allocate_cpu(self.setting, self.amount)
        return None


@dataclass(frozen=True)
class FundWorkerPool:
    """
    Fund the compiler worker pool from whatever memory remains.

        workers = clamp(remaining // per_worker_mb, min_workers, max_workers)
        heap    = min(max(workers * per_worker_mb, preferred_heap), remaining)

    The checkpoint only requires room for the minimum pool. preferred_heap
    raises the heap when memory allows, and never beyond the remainder.
    """

    checkpoint: str
    per_worker_mb: int
    min_workers: int
    max_workers: int
    preferred_heap: int = 0

    def apply(self, ledger: BudgetLedger) -> Optional[CheckpointFailure]:
        cores = ledger.capacity.cpu_cores
        if cores < self.min_workers:
            return CheckpointFailure(self.checkpoint, "cpu", self.min_workers, cores)

        remaining = ledger.ram_available
        required = self.min_workers * self.per_worker_mb
        if remaining < required:
            return CheckpointFailure(self.checkpoint, "ram", required, remaining)

        workers = clamp(remaining // self.per_worker_mb, self.min_workers, self.max_workers)
        heap = min(max(workers * self.per_worker_mb, self.preferred_heap), remaining)

        ledger.allocate_cpu(SettingKey.worker_pool_size, workers)
        ledger.allocate_ram(SettingKey.controller_heap, heap)
        ledger.mem_per_worker = self.per_worker_mb
        return None


def run_recipe(
    name: str,
    capacity: Capacity,
    os_reserved_mb: int,
    steps: Sequence[BudgetStep],
) -> BudgetResult:
    """
    Execute steps in order against a fresh ledger.

    Returns an infeasible BudgetResult on the first failed checkpoint.
    """
    ledger = BudgetLedger(capacity=capacity, os_reserved_mb=os_reserved_mb)

    for step in steps:
        failure = step.apply(ledger)
        if failure is not None:
            logger.debug("%s recipe aborted: %s", name, failure.describe())
            return BudgetResult.infeasible(failure)

    totals = UsageTotals(
        cpu=ResourceUsage(total=capacity.cpu_cores, used=ledger.cpu_used),
        ram=ResourceUsage(total=capacity.ram_mb, used=ledger.ram_used),
        mem_per_worker=ledger.mem_per_worker,
    )
    return BudgetResult(settings=SettingsMap(ledger.settings), totals=totals)
