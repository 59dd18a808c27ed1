from __future__ import annotations

from pathlib import Path

import pytest

from fleet_tuner.budget.budgeter import BudgeterConfig
from fleet_tuner.core.errors import UnknownTopology
from fleet_tuner.core.settings import HeapSize, SettingKey, SettingsMap
from fleet_tuner.core.types import NodeProfile
from fleet_tuner.inventory.plugins.local import LocalSystemInventoryPlugin
from fleet_tuner.inventory.plugins.static import StaticInventoryPlugin
from fleet_tuner.output.hiera import HieraStore
from fleet_tuner.runner import RunnerConfig, TuneRunner

SPLIT_INVENTORY = """
nodes:
  primary:
    resources: {cpu: 4, ram: 8g}
  c1:
    resources: {cpu: 4, ram: 8g}
  c2:
    resources: {cpu: 4, ram: 8g}
roles:
  primary_controller_host: primary
  compiler_hosts: [c1, c2]
"""


def write_inventory(tmp_path: Path, text: str = SPLIT_INVENTORY) -> Path:
    path = tmp_path / "inventory.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_runner_budgets_every_node(tmp_path: Path):
    runner = TuneRunner(StaticInventoryPlugin(path=write_inventory(tmp_path)))

    report = runner.run()

    assert report.ok
    assert [n.name for n in report.nodes] == ["primary", "c1", "c2"]
    assert report.nodes[0].profile == NodeProfile.primary
    assert report.summary.with_compilers
    primary = report.nodes[0].result.settings
    # With compilers the preferred controller heap is halved.
    assert primary[SettingKey.controller_heap] == HeapSize(1024)
    assert report.nodes[1].result.settings[SettingKey.worker_pool_size] == 3


def test_runner_extracts_common_settings(tmp_path: Path):
    config = RunnerConfig(extract_common=True)
    report = TuneRunner(StaticInventoryPlugin(path=write_inventory(tmp_path)), config).run()

    assert report.common is not None
    # Both compilers share every setting, but the primary pool differs.
    assert SettingKey.worker_pool_size not in report.common.common
    assert report.node_settings()["c1"][SettingKey.worker_pool_size] == 3


def test_undersized_node_is_recorded_and_others_continue(tmp_path: Path):
    text = SPLIT_INVENTORY.replace("c2:\n    resources: {cpu: 4, ram: 8g}", "c2:\n    resources: {cpu: 2, ram: 4g}")
    report = TuneRunner(StaticInventoryPlugin(path=write_inventory(tmp_path, text))).run()

    assert not report.ok
    [failure] = report.failures
    assert failure.name == "c2"
    assert "minimum system requirements" in failure.describe_failure()
    assert report.nodes[1].ok


def test_force_budgets_undersized_nodes(tmp_path: Path):
    text = SPLIT_INVENTORY.replace("c2:\n    resources: {cpu: 4, ram: 8g}", "c2:\n    resources: {cpu: 2, ram: 4g}")
    config = RunnerConfig(force=True)
    report = TuneRunner(StaticInventoryPlugin(path=write_inventory(tmp_path, text)), config).run()

    assert report.ok
    assert report.nodes[2].result.settings[SettingKey.worker_pool_size] == 1


def test_infeasible_node_is_recorded(tmp_path: Path):
    plugin = LocalSystemInventoryPlugin(hostname="tiny", cpu_cores=1, ram_mb=512)
    report = TuneRunner(plugin, RunnerConfig(force=True)).run()

    assert not report.ok
    assert report.failures[0].result.failure is not None
    assert "unable to calculate settings" in report.failures[0].describe_failure()


def test_unknown_topology_propagates(tmp_path: Path):
    text = "nodes: {c1: {resources: {cpu: 4, ram: 8192}}}\nmemberships: {compiler: [c1]}\n"

    with pytest.raises(UnknownTopology):
        TuneRunner(StaticInventoryPlugin(path=write_inventory(tmp_path, text))).run()


def test_capacity_estimate(tmp_path: Path):
    config = RunnerConfig(
        estimate=True, active_nodes=1000, run_interval=1800, average_compile_time=20
    )
    report = TuneRunner(StaticInventoryPlugin(path=write_inventory(tmp_path)), config).run()

    # Primary 2 workers plus two compilers with 3 each.
    assert report.estimate.available_workers == 8
    assert report.estimate.maximum_nodes == 360


def test_persist_writes_files_only_when_every_node_succeeded(tmp_path: Path):
    hiera = HieraStore(directory=tmp_path / "hiera")
    runner = TuneRunner(
        StaticInventoryPlugin(path=write_inventory(tmp_path)),
        RunnerConfig(extract_common=True),
        hiera=hiera,
    )

    written = runner.persist(runner.run())

    assert hiera.node_path("primary") in written
    assert hiera.common_path in written


def test_persist_skips_failed_runs(tmp_path: Path):
    hiera = HieraStore(directory=tmp_path / "hiera")
    runner = TuneRunner(
        LocalSystemInventoryPlugin(hostname="tiny", cpu_cores=1, ram_mb=512), hiera=hiera
    )

    assert runner.persist(runner.run()) == []
    assert not (tmp_path / "hiera").exists()


def test_current_settings_are_read_from_hiera(tmp_path: Path):
    hiera = HieraStore(directory=tmp_path / "hiera")
    plugin = LocalSystemInventoryPlugin(hostname="me", cpu_cores=4, ram_mb=8192)
    first = TuneRunner(plugin, hiera=hiera)
    first.persist(first.run())

    report = TuneRunner(plugin, RunnerConfig(read_current=True), hiera=hiera).run()

    assert report.nodes[0].current == report.nodes[0].result.settings


def test_primary_capacity_override(tmp_path: Path):
    plugin = LocalSystemInventoryPlugin(hostname="me", cpu_cores=4, ram_mb=8192)
    config = RunnerConfig(budgeter=BudgeterConfig(cpu_override=16, ram_override=32768))

    report = TuneRunner(plugin, config).run()

    assert report.nodes[0].result.settings[SettingKey.worker_pool_size] == 11


CATALOG_INVENTORY = """
nodes:
  primary.example.com:
    resources:
      cpu: 8
      ram: 16g
    newer_runtime: true
  compiler1.example.com:
    resources: {cpu: 4, ram: 8192}
memberships:
  certificate_authority: [primary.example.com]
  compiler: [primary.example.com, compiler1.example.com]
"""


def test_memberships_listing_only_authority_and_compilers(tmp_path: Path):
    report = TuneRunner(
        StaticInventoryPlugin(path=write_inventory(tmp_path, CATALOG_INVENTORY))
    ).run()

    assert report.ok, [n.describe_failure() for n in report.failures]
    assert [(n.name, n.profile) for n in report.nodes] == [
        ("primary.example.com", NodeProfile.primary),
        ("compiler1.example.com", NodeProfile.compiler),
    ]
    assert report.summary.monolithic
    assert report.summary.with_compilers
    primary = report.nodes[0].result.settings
    assert primary[SettingKey.worker_pool_size] == 2
    assert primary[SettingKey.controller_heap] == HeapSize(1536)
    assert SettingKey.database_buffer in primary


def test_current_memory_per_worker_comes_from_hiera(tmp_path: Path):
    hiera = HieraStore(directory=tmp_path / "hiera")
    hiera.write_node(
        "me",
        SettingsMap({SettingKey.controller_heap: HeapSize(3072), SettingKey.worker_pool_size: 4}),
    )
    plugin = LocalSystemInventoryPlugin(hostname="me", cpu_cores=4, ram_mb=8192)

    report = TuneRunner(plugin, RunnerConfig(use_current_per_worker=True), hiera=hiera).run()

    assert report.ok
    assert report.nodes[0].result.totals.mem_per_worker == 768
    assert report.nodes[0].result.settings[SettingKey.worker_pool_size] == 2


def test_nodes_without_current_settings_use_the_default_per_worker(tmp_path: Path):
    hiera = HieraStore(directory=tmp_path / "hiera")
    plugin = LocalSystemInventoryPlugin(hostname="me", cpu_cores=4, ram_mb=8192)

    report = TuneRunner(plugin, RunnerConfig(use_current_per_worker=True), hiera=hiera).run()

    assert report.nodes[0].result.totals.mem_per_worker == 512
