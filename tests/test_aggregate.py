import pytest

from fleet_tuner.aggregate.capacity import (
    available_workers,
    calculate_maximum_nodes,
    calculate_minimum_workers,
    calculate_run_sample,
    estimate_capacity,
)
from fleet_tuner.aggregate.common import extract_common_settings
from fleet_tuner.core.settings import HeapSize, SettingKey, SettingsMap
from fleet_tuner.core.types import Capacity, NodeProfile


def compiler_settings(workers: int, heap: int) -> SettingsMap:
    return SettingsMap(
        {SettingKey.worker_pool_size: workers, SettingKey.controller_heap: HeapSize(heap)}
    )


# ---------------------------
# COMMON SETTINGS
# ---------------------------

def test_shared_values_move_to_common():
    nodes = {
        "c1": compiler_settings(3, 1536),
        "c2": compiler_settings(3, 1536),
        "primary": SettingsMap(
            {
                SettingKey.worker_pool_size: 2,
                SettingKey.controller_heap: HeapSize(1536),
                SettingKey.broker_heap: 512,
            }
        ),
    }

    result = extract_common_settings(nodes)

    assert dict(result.common) == {
        SettingKey.controller_heap: HeapSize(1536),
        SettingKey.broker_heap: 512,
    }
    assert dict(result.nodes["c1"]) == {SettingKey.worker_pool_size: 3}
    assert dict(result.nodes["primary"]) == {SettingKey.worker_pool_size: 2}


def test_inputs_are_not_mutated():
    nodes = {"c1": compiler_settings(3, 1536), "c2": compiler_settings(3, 1536)}

    extract_common_settings(nodes)

    assert len(nodes["c1"]) == 2


def test_infeasible_nodes_are_ignored():
    nodes = {"c1": compiler_settings(3, 1536), "broken": SettingsMap()}

    result = extract_common_settings(nodes)

    assert "broken" not in result.nodes
    assert len(result.common) == 2
    assert len(result.nodes["c1"]) == 0


def test_no_nodes_means_no_common_settings():
    result = extract_common_settings({})

    assert len(result.common) == 0
    assert result.nodes == {}


# ---------------------------
# CAPACITY
# ---------------------------

def test_run_sample():
    assert calculate_run_sample(100, 0) == 100
    assert calculate_run_sample(100, 1800) == 4800
    assert calculate_run_sample(1000, 1800) == 10000
    assert calculate_run_sample(100, 172800) == 700


def test_littles_law():
    assert calculate_maximum_nodes(average_compile_time=20, workers=8, run_interval=1800) == 360
    assert calculate_minimum_workers(active_nodes=1000, average_compile_time=20, run_interval=1800) == 23


def test_maximum_nodes_rejects_zero_compile_time():
    with pytest.raises(ValueError):
        calculate_maximum_nodes(0, 8, 1800)


def test_available_workers_counts_primary_and_compilers():
    nodes = [
        (NodeProfile.primary, Capacity(8, 16384), compiler_settings(5, 3840)),
        (NodeProfile.compiler, Capacity(4, 8192), compiler_settings(3, 1536)),
        (NodeProfile.compiler, Capacity(8, 8192), SettingsMap()),
        (NodeProfile.replica, Capacity(8, 16384), compiler_settings(5, 3840)),
        (NodeProfile.console, Capacity(4, 8192), SettingsMap()),
    ]

    # 5 + 3 + min(8 - 1, 4)
    assert available_workers(nodes) == 12


def test_estimate_capacity():
    estimate = estimate_capacity(
        active_nodes=1000, workers=8, run_interval=1800, average_compile_time=20
    )

    assert estimate.maximum_nodes == 360
    assert estimate.minimum_workers == 23
    assert estimate.run_sample == 10000
