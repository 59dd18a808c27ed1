"""
Budget recipes.

A recipe selects the ordered checkpoint steps for one node profile.
All numbers live here. The shared first failure aborts rule lives in the
pipeline, so recipes stay declarative.

Levels and ratios model the published monolithic tuning guidance.

Controller recipe (primary and replica), in reservation order
  database buffer       25% of RAM, floor 2048/3072/4096, ceiling 16384
  job queue heap        10% of RAM (20% with compilers), floor 512/1024/2048, ceiling 8192
  job queue threads     25% of processors (75% with compilers), minimum 2, ceiling cores - 1
  console heap          512/768/1024
  orchestrator heap     512/768/1024
  broker heap           512/1024/2048
  code cache            512 with the newer runtime, 48 below 2048 MB otherwise
  worker pool           remaining memory at 512/768/1024 MB per worker,
                        heap preferably 2048/3072/4096 (halved with compilers)

The job queue thread split is the inverse of the worker pool split: with
compilers present the controller compiles less and processes more commands.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

from fleet_tuner.budget.pipeline import (
    BudgetStep,
    FundWorkerPool,
    ReserveMemory,
    ReserveThreads,
)
from fleet_tuner.budget.tiers import clamp_percent_of, tier_by_ram
from fleet_tuner.core.settings import SettingKey
from fleet_tuner.core.types import Capacity, ComponentFlags

DATABASE_BUFFER_CEILING = 16384
JOB_QUEUE_HEAP_CEILING = 8192
CONSOLE_HEAP_CEILING = 4096

NEWER_RUNTIME_CODE_CACHE = 512
LEGACY_SMALL_CODE_CACHE = 48


@dataclass(frozen=True)
class RecipeInputs:
    """
    Everything a recipe may depend on.

    per_worker_mb is the resolved memory quantum per worker.
    """

    capacity: Capacity
    flags: ComponentFlags
    with_compilers: bool
    newer_runtime: bool
    per_worker_mb: int


def default_per_worker_mb(ram_mb: int) -> int:
    return tier_by_ram(ram_mb, 512, 768, 1024)


def _database_buffer(ram: int) -> ReserveMemory:
    floor = tier_by_ram(ram, 2048, 3072, 4096)
    return ReserveMemory(
        checkpoint="database_buffer",
        setting=SettingKey.database_buffer,
        amount=clamp_percent_of(ram, 25, floor, DATABASE_BUFFER_CEILING),
        floor=floor,
    )


def _job_queue_heap(ram: int, percent: int) -> ReserveMemory:
    floor = tier_by_ram(ram, 512, 1024, 2048)
    return ReserveMemory(
        checkpoint="job_queue_heap",
        setting=SettingKey.job_queue_heap,
        amount=clamp_percent_of(ram, percent, floor, JOB_QUEUE_HEAP_CEILING),
        floor=floor,
    )


def _fixed_heap(checkpoint: str, setting: SettingKey, mb: int) -> ReserveMemory:
    return ReserveMemory(checkpoint=checkpoint, setting=setting, amount=mb, floor=mb)


def _code_cache(inputs: RecipeInputs) -> List[BudgetStep]:
    if inputs.newer_runtime:
        mb = NEWER_RUNTIME_CODE_CACHE
    elif inputs.capacity.ram_mb < 2048:
        mb = LEGACY_SMALL_CODE_CACHE
    else:
        return []
    return [_fixed_heap("reserved_code_cache", SettingKey.reserved_code_cache, mb)]


# ---------------------------
# CONTROLLER
# ---------------------------

def controller_recipe(inputs: RecipeInputs) -> List[BudgetStep]:
    """
    Primary or replica controller, colocated with every other service.

    Without compilers the controller compiles everything, so the worker
    pool gets 75% of processors and a larger preferred heap. With compilers the
    pool drops to 25% and the job queue takes the larger share.
    Without a colocated job queue the pool may use all processors.
    """
    ram = inputs.capacity.ram_mb
    cores = inputs.capacity.cpu_cores
    flags = inputs.flags
    steps: List[BudgetStep] = []

    if flags.database:
        steps.append(_database_buffer(ram))

    if flags.job_queue:
        steps.append(_job_queue_heap(ram, 20 if inputs.with_compilers else 10))
        threads_percent = 75 if inputs.with_compilers else 25
        steps.append(
            ReserveThreads(
                checkpoint="job_queue_threads",
                setting=SettingKey.job_queue_threads,
                amount=clamp_percent_of(cores, threads_percent, 2, cores - 1),
                minimum=2,
            )
        )

    if flags.console:
        steps.append(
            _fixed_heap("console_heap", SettingKey.console_heap, tier_by_ram(ram, 512, 768, 1024))
        )

    if flags.orchestrator:
        steps.append(
            _fixed_heap(
                "orchestrator_heap", SettingKey.orchestrator_heap, tier_by_ram(ram, 512, 768, 1024)
            )
        )

    if flags.message_broker:
        steps.append(
            _fixed_heap("broker_heap", SettingKey.broker_heap, tier_by_ram(ram, 512, 1024, 2048))
        )

    steps.extend(_code_cache(inputs))

    if not flags.job_queue:
        worker_share = 100
    elif inputs.with_compilers:
        worker_share = 25
    else:
        worker_share = 75

    min_workers = 2
    preferred_heap = tier_by_ram(ram, 2048, 3072, 4096)
    if inputs.with_compilers:
        preferred_heap //= 2

    steps.append(
        FundWorkerPool(
            checkpoint="worker_pool",
            per_worker_mb=inputs.per_worker_mb,
            min_workers=min_workers,
            max_workers=max(min_workers, cores * worker_share // 100 - 1),
            preferred_heap=preferred_heap,
        )
    )
    return steps


# ---------------------------
# DEDICATED ROLES
# ---------------------------

def compiler_recipe(inputs: RecipeInputs) -> List[BudgetStep]:
    """Compiler, optionally running a broker and orchestrator."""
    ram = inputs.capacity.ram_mb
    cores = inputs.capacity.cpu_cores
    steps: List[BudgetStep] = []

    if inputs.flags.orchestrator:
        steps.append(
            _fixed_heap(
                "orchestrator_heap", SettingKey.orchestrator_heap, tier_by_ram(ram, 512, 768, 1024)
            )
        )

    if inputs.flags.message_broker:
        steps.append(
            _fixed_heap("broker_heap", SettingKey.broker_heap, tier_by_ram(ram, 512, 1024, 2048))
        )

    steps.extend(_code_cache(inputs))

    steps.append(
        FundWorkerPool(
            checkpoint="worker_pool",
            per_worker_mb=inputs.per_worker_mb,
            min_workers=1,
            max_workers=max(1, cores - 1),
        )
    )
    return steps


def console_recipe(inputs: RecipeInputs) -> List[BudgetStep]:
    ram = inputs.capacity.ram_mb
    floor = tier_by_ram(ram, 512, 768, 1024)
    return [
        ReserveMemory(
            checkpoint="console_heap",
            setting=SettingKey.console_heap,
            amount=clamp_percent_of(ram, 75, floor, CONSOLE_HEAP_CEILING),
            floor=floor,
        )
    ]


def job_queue_recipe(inputs: RecipeInputs) -> List[BudgetStep]:
    """
    Dedicated job queue host.

    With a local database the heap shares memory with the buffer cache.
    With an external database the heap gets twice the share.
    """
    ram = inputs.capacity.ram_mb
    cores = inputs.capacity.cpu_cores
    steps: List[BudgetStep] = []

    if inputs.flags.database:
        steps.append(_database_buffer(ram))

    steps.append(_job_queue_heap(ram, 25 if inputs.flags.database else 50))
    steps.append(
        ReserveThreads(
            checkpoint="job_queue_threads",
            setting=SettingKey.job_queue_threads,
            amount=clamp_percent_of(cores, 75, 1, cores - 1),
            minimum=1,
        )
    )
    return steps


def database_recipe(inputs: RecipeInputs) -> List[BudgetStep]:
    return [_database_buffer(inputs.capacity.ram_mb)]
