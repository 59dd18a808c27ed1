"""
Capacity estimation.

This module estimates how many agents an infrastructure can serve from the
worker counts the budgeter assigned.

Little's law
L = lambda * W

L      requests in the system
lambda average arrival rate of catalog requests
W      average time a worker is held per request

A worker is held for roughly twice the average compile time, which covers
request handling around the compile itself.

Keep this module pure. The runner or CLI supplies the active node count,
run interval and average compile time.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Tuple

from fleet_tuner.core.settings import SettingKey, SettingsMap
from fleet_tuner.core.types import Capacity, NodeProfile

SECONDS_PER_DAY = 86400
MAXIMUM_RUN_SAMPLE = 10000
COMPILE_TIME_FACTOR = 2
FALLBACK_WORKER_LIMIT = 4

# Profiles whose workers serve agent catalog requests.
SERVING_PROFILES = (NodeProfile.primary, NodeProfile.compiler)


@dataclass(frozen=True)
class CapacityEstimate:
    """
    Result of estimate_capacity.

    maximum_nodes is how many active nodes the available workers can serve.
    minimum_workers is how many workers the active nodes need.
    run_sample is how many recent runs an average compile time should cover.
    """

    active_nodes: int
    available_workers: int
    run_interval: int
    average_compile_time: float
    run_sample: int
    maximum_nodes: int
    minimum_workers: int


def calculate_run_sample(active_nodes: int, run_interval: int) -> int:
    """
    Return the number of recent runs to sample.

    A zero interval means agents run continuously.
    """
    if run_interval <= 0:
        return min(active_nodes, MAXIMUM_RUN_SAMPLE)
    runs_per_day = SECONDS_PER_DAY // run_interval
    if runs_per_day < 1:
        return min(active_nodes * 7, MAXIMUM_RUN_SAMPLE)
    return min(active_nodes * runs_per_day, MAXIMUM_RUN_SAMPLE)


def calculate_maximum_nodes(average_compile_time: float, workers: int, run_interval: int) -> int:
    held = average_compile_time * COMPILE_TIME_FACTOR
    if held <= 0:
        raise ValueError("average compile time must be positive")
    return math.ceil(run_interval * workers / held)


def calculate_minimum_workers(active_nodes: int, average_compile_time: float, run_interval: int) -> int:
    if run_interval <= 0:
        raise ValueError("run interval must be positive")
    held = average_compile_time * COMPILE_TIME_FACTOR
    return math.ceil(active_nodes * held / run_interval)


def available_workers(nodes: Iterable[Tuple[NodeProfile, Capacity, SettingsMap]]) -> int:
    """
    Sum the worker pools that serve agents.

    Only the primary and compilers count. A node without a worker pool
    setting, usually an infeasible one, counts as min(cores - 1, 4).
    """
    total = 0
    for profile, capacity, settings in nodes:
        if profile not in SERVING_PROFILES:
            continue
        workers = settings.get(SettingKey.worker_pool_size)
        if workers is None:
            workers = max(0, min(capacity.cpu_cores - 1, FALLBACK_WORKER_LIMIT))
        total += int(workers)
    return total


def estimate_capacity(
    active_nodes: int,
    workers: int,
    run_interval: int,
    average_compile_time: float,
) -> CapacityEstimate:
    return CapacityEstimate(
        active_nodes=active_nodes,
        available_workers=workers,
        run_interval=run_interval,
        average_compile_time=average_compile_time,
        run_sample=calculate_run_sample(active_nodes, run_interval),
        maximum_nodes=calculate_maximum_nodes(average_compile_time, workers, run_interval),
        minimum_workers=calculate_minimum_workers(active_nodes, average_compile_time, run_interval),
    )
