"""
fleet-tune command line.

Loads an inventory, budgets every node, prints the settings as YAML, and
optionally writes them to a Hiera data directory.

Exit codes
0  every node was budgeted
1  classification failed, or at least one node is undersized or infeasible.
   Nothing is written in that case.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
import yaml

from fleet_tuner.budget.budgeter import BudgeterConfig
from fleet_tuner.core.errors import TunerError
from fleet_tuner.core.serialization import to_json_safe_dict
from fleet_tuner.inventory.plugins.base import InventoryPlugin
from fleet_tuner.inventory.plugins.catalog import CatalogInventoryPlugin
from fleet_tuner.inventory.plugins.local import LocalSystemInventoryPlugin
from fleet_tuner.inventory.plugins.static import StaticInventoryPlugin
from fleet_tuner.output.hiera import HieraStore
from fleet_tuner.runner import NodeOutcome, RunnerConfig, TuneReport, TuneRunner

app = typer.Typer(help="Compute memory and processor settings for control plane nodes.")


def _select_plugin(
    inventory: Optional[Path],
    local: bool,
    catalog_url: Optional[str],
    catalog_token: Optional[str],
) -> InventoryPlugin:
    chosen = [flag for flag in (inventory is not None, local, catalog_url is not None) if flag]
    if len(chosen) > 1:
        raise typer.BadParameter("use only one of --inventory, --local, --catalog-url")
    if inventory is not None:
        return StaticInventoryPlugin(path=inventory)
    if catalog_url is not None:
        return CatalogInventoryPlugin(inventory_url=catalog_url, token=catalog_token)
    return LocalSystemInventoryPlugin()


def _dump(data: object) -> str:
    return yaml.safe_dump(data, default_flow_style=False, sort_keys=True).rstrip()


def _render_summary(report: TuneReport) -> None:
    summary = report.summary
    kind = "Monolithic" if summary.monolithic else "Split"
    extras = []
    if summary.with_compilers:
        extras.append("Compilers")
    if summary.with_ha:
        extras.append("HA")
    if summary.with_external_database:
        extras.append("External Database")
    suffix = f" with {', '.join(extras)}" if extras else ""
    typer.echo(f"### Infrastructure: {kind}{suffix}\n")


def _render_node(outcome: NodeOutcome, settings: dict, show_current: bool) -> None:
    capacity = outcome.capacity
    typer.echo(
        f"## {outcome.profile.label}: {outcome.name} "
        f"({capacity.cpu_cores} CPU / {capacity.ram_mb} MB RAM)\n"
    )
    if show_current and outcome.current is not None:
        typer.echo("# Current settings")
        typer.echo(_dump(outcome.current.render()) if outcome.current else "# none")
        typer.echo("")

    if not outcome.ok:
        typer.echo(f"# {outcome.describe_failure()}\n", err=True)
        return

    typer.echo(_dump(settings) if settings else "# all settings are common")
    totals = outcome.result.totals
    if totals is not None:
        typer.echo(
            f"\n# CPU used: {totals.cpu.used} of {totals.cpu.total} ({totals.cpu.free} free), "
            f"RAM used: {totals.ram.used} of {totals.ram.total} MB ({totals.ram.free} MB free)"
        )
    typer.echo("")


def render_report(report: TuneReport, show_current: bool = False) -> None:
    _render_summary(report)
    persisted = report.node_settings()
    for outcome in report.nodes:
        settings = persisted.get(outcome.name)
        _render_node(outcome, settings.render() if settings else {}, show_current)

    if report.common is not None and report.common.common:
        typer.echo("## Common settings\n")
        typer.echo(_dump(report.common.common.render()))
        typer.echo("")

    if report.estimate is not None:
        typer.echo("## Capacity estimate\n")
        typer.echo(_dump(to_json_safe_dict(report.estimate)))


@app.command()
def tune(
    inventory: Optional[Path] = typer.Option(
        None, "--inventory", help="JSON or YAML inventory file", exists=True, dir_okay=False
    ),
    local: bool = typer.Option(False, "--local", help="Tune the local host as a monolithic primary"),
    catalog_url: Optional[str] = typer.Option(None, "--catalog-url", help="Inventory endpoint URL"),
    catalog_token: Optional[str] = typer.Option(None, "--catalog-token", help="Inventory endpoint token"),
    current: bool = typer.Option(False, "--current", help="Show current settings from --hiera"),
    common: bool = typer.Option(False, "--common", help="Extract common settings"),
    force: bool = typer.Option(False, "--force", help="Tune nodes below the minimum requirements"),
    hiera: Optional[Path] = typer.Option(None, "--hiera", help="Hiera data directory to write"),
    memory_per_worker: int = typer.Option(0, "--memory-per-worker", min=0, help="MB per worker"),
    use_current_memory_per_worker: bool = typer.Option(
        False,
        "--use-current-memory-per-worker",
        help="Derive MB per worker from current settings in --hiera",
    ),
    memory_reserved_for_os: int = typer.Option(
        0, "--memory-reserved-for-os", min=0, help="MB reserved for the operating system"
    ),
    cpu: int = typer.Option(0, "--cpu", min=0, help="Processors of the primary, instead of detected"),
    ram: int = typer.Option(0, "--ram", min=0, help="MB RAM of the primary, instead of detected"),
    estimate: bool = typer.Option(False, "--estimate", help="Output a capacity estimate"),
    active_nodes: int = typer.Option(0, "--active-nodes", min=0, help="Active agent count"),
    run_interval: int = typer.Option(1800, "--run-interval", min=0, help="Agent run interval in seconds"),
    average_compile_time: float = typer.Option(
        0.0, "--average-compile-time", min=0.0, help="Average compile time in seconds"
    ),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
) -> None:
    """Compute optimized settings for every control plane node."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        force=True,
    )

    plugin = _select_plugin(inventory, local, catalog_url, catalog_token)
    if current and hiera is None:
        raise typer.BadParameter("--current needs --hiera")
    if use_current_memory_per_worker and hiera is None:
        raise typer.BadParameter("--use-current-memory-per-worker needs --hiera")
    if estimate and (average_compile_time <= 0 or run_interval <= 0):
        raise typer.BadParameter(
            "--estimate needs a positive --average-compile-time and --run-interval"
        )

    config = RunnerConfig(
        force=force,
        extract_common=common,
        read_current=current,
        use_current_per_worker=use_current_memory_per_worker,
        estimate=estimate,
        active_nodes=active_nodes,
        run_interval=run_interval,
        average_compile_time=average_compile_time,
        budgeter=BudgeterConfig(
            per_worker_mb=memory_per_worker,
            os_reserved_mb=memory_reserved_for_os,
            cpu_override=cpu,
            ram_override=ram,
        ),
    )
    store = HieraStore(directory=hiera) if hiera is not None else None
    runner = TuneRunner(inventory_plugin=plugin, config=config, hiera=store)

    try:
        report = runner.run()
    except TunerError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    render_report(report, show_current=current)

    if not report.ok:
        typer.echo(
            f"Error: unable to calculate settings for {len(report.failures)} node(s), "
            "nothing was written",
            err=True,
        )
        raise typer.Exit(code=1)

    if store is not None and not current:
        for path in runner.persist(report):
            typer.echo(f"# Wrote {path}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
