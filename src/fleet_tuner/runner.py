"""
Tune runner.

Purpose
One tuning run:
- Load inventory
- Classify topology
- Gate and budget every node
- Aggregate common settings and the capacity estimate

This is the composition layer of the system.
It wires the inventory plugin, classifier, budgeter, and aggregator.

Core logic remains pure.
Runner handles configuration and collects per node failures, so one
undersized or infeasible node does not hide the results of the others.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from fleet_tuner.aggregate.capacity import CapacityEstimate, available_workers, estimate_capacity
from fleet_tuner.aggregate.common import CommonSettings, extract_common_settings
from fleet_tuner.budget.budgeter import BudgeterConfig, BudgetOptions, ResourceBudgeter
from fleet_tuner.budget.requirements import ensure_minimum_requirements
from fleet_tuner.core.errors import BelowMinimumRequirements, UnknownTopology
from fleet_tuner.core.settings import BudgetResult, SettingsMap, per_worker_mb_of
from fleet_tuner.core.types import Capacity, ComponentFlags, NodeProfile, Topology
from fleet_tuner.inventory.plugins.base import InventoryLoadResult, InventoryPlugin
from fleet_tuner.output.hiera import HieraStore
from fleet_tuner.topology.classifier import (
    classify_memberships,
    classify_roles,
    component_flags_for,
)
from fleet_tuner.topology.roles import (
    is_monolithic,
    node_profiles,
    with_compilers,
    with_external_database,
    with_ha,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunnerConfig:
    """
    Runner configuration.

    force
    Budget nodes below the minimum system requirements.

    extract_common
    Move settings shared by every node into a common layer.

    read_current
    Read each node's current settings from the Hiera store.

    use_current_per_worker
    Derive memory per worker from each node's current heap and worker pool
    size in the Hiera store. A configured per_worker_mb still wins.

    estimate
    Compute a capacity estimate from the assigned worker pools.
    Needs active_nodes, run_interval and average_compile_time.

    budgeter
    Passed through to ResourceBudgeter.
    """

    force: bool = False
    extract_common: bool = False
    read_current: bool = False
    use_current_per_worker: bool = False
    estimate: bool = False
    active_nodes: int = 0
    run_interval: int = 1800
    average_compile_time: float = 0.0
    budgeter: BudgeterConfig = field(default_factory=BudgeterConfig)


@dataclass(frozen=True)
class InfrastructureSummary:
    monolithic: bool
    with_compilers: bool
    with_ha: bool
    with_external_database: bool


@dataclass(frozen=True)
class NodeOutcome:
    """
    Result for one node.

    error is set when the node was not budgeted at all.
    An infeasible budget leaves error unset and carries the failing
    checkpoint in result.failure.
    """

    name: str
    profile: NodeProfile
    capacity: Capacity
    flags: ComponentFlags
    result: BudgetResult = field(default_factory=BudgetResult)
    current: Optional[SettingsMap] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.result.ok

    def describe_failure(self) -> str:
        if self.error:
            return self.error
        if self.result.failure is not None:
            return f"{self.name}: unable to calculate settings, {self.result.failure.describe()}"
        return ""


@dataclass(frozen=True)
class TuneReport:
    """Everything one run produced, in deterministic node order."""

    topology: Topology
    summary: InfrastructureSummary
    nodes: List[NodeOutcome]
    common: Optional[CommonSettings] = None
    estimate: Optional[CapacityEstimate] = None

    @property
    def failures(self) -> List[NodeOutcome]:
        return [n for n in self.nodes if not n.ok]

    @property
    def ok(self) -> bool:
        return not self.failures

    def node_settings(self) -> Dict[str, SettingsMap]:
        """Per node settings to persist, with common keys removed when extracted."""
        if self.common is not None:
            return dict(self.common.nodes)
        return {n.name: n.result.settings for n in self.nodes if n.result.settings}


class TuneRunner:
    """
    Top level tuning run.

    Classification errors propagate. Per node problems are recorded in the
    report instead.
    """

    def __init__(
        self,
        inventory_plugin: InventoryPlugin,
        config: RunnerConfig | None = None,
        hiera: HieraStore | None = None,
    ) -> None:
        self._config = config or RunnerConfig()
        self._inventory_plugin = inventory_plugin
        self._hiera = hiera
        self._budgeter = ResourceBudgeter(self._config.budgeter)

    @staticmethod
    def classify(inventory: InventoryLoadResult) -> Topology:
        if inventory.memberships is not None:
            return classify_memberships(inventory.memberships)
        if inventory.roles is None:
            raise UnknownTopology("no controller identified")
        return classify_roles(inventory.roles)

    def _budget_node(
        self,
        inventory: InventoryLoadResult,
        topology: Topology,
        name: str,
        profile: NodeProfile,
        compilers: bool,
    ) -> NodeOutcome:
        capacity = inventory.store.capacity_of(name)
        flags = component_flags_for(topology, name)
        current = None
        current_per_worker_mb = 0
        if self._hiera is not None and (
            self._config.read_current or self._config.use_current_per_worker
        ):
            current = self._hiera.read_node_settings(name)
            if self._config.use_current_per_worker:
                current_per_worker_mb = per_worker_mb_of(current)
                logger.debug("Current memory per worker for %s: %s MB", name, current_per_worker_mb)

        try:
            ensure_minimum_requirements(
                name,
                self._budgeter.effective_capacity(capacity, profile),
                force=self._config.force,
            )
        except BelowMinimumRequirements as exc:
            logger.warning("%s", exc)
            return NodeOutcome(name, profile, capacity, flags, current=current, error=str(exc))

        options = BudgetOptions(
            with_compilers=compilers,
            newer_runtime=inventory.store.newer_runtime(name),
            current_per_worker_mb=current_per_worker_mb,
        )
        result = self._budgeter.budget(capacity, flags, profile, options)
        if not result.ok:
            logger.warning("Unable to calculate settings for %s", name)
        return NodeOutcome(name, profile, capacity, flags, result=result, current=current)

    def run(self) -> TuneReport:
        """Execute one tuning run."""
        inventory = self._inventory_plugin.load()
        logger.debug("Loaded inventory %s", inventory.evidence)

        topology = self.classify(inventory)
        compilers = with_compilers(topology)
        summary = InfrastructureSummary(
            monolithic=is_monolithic(topology),
            with_compilers=compilers,
            with_ha=with_ha(topology),
            with_external_database=with_external_database(topology),
        )

        outcomes: List[NodeOutcome] = []
        for name, profile in node_profiles(topology).items():
            outcomes.append(self._budget_node(inventory, topology, name, profile, compilers))

        common = None
        if self._config.extract_common:
            common = extract_common_settings({o.name: o.result.settings for o in outcomes})

        estimate = None
        if self._config.estimate:
            workers = available_workers(
                (o.profile, self._budgeter.effective_capacity(o.capacity, o.profile), o.result.settings)
                for o in outcomes
            )
            estimate = estimate_capacity(
                active_nodes=self._config.active_nodes,
                workers=workers,
                run_interval=self._config.run_interval,
                average_compile_time=self._config.average_compile_time,
            )

        return TuneReport(
            topology=topology,
            summary=summary,
            nodes=outcomes,
            common=common,
            estimate=estimate,
        )

    def persist(self, report: TuneReport) -> List[Path]:
        """
        Write the report to the Hiera store.

        Nothing is written when any node failed.
        """
        if self._hiera is None or not report.ok:
            return []
        common = report.common.common if report.common is not None else None
        return self._hiera.write_all(report.node_settings(), common)
