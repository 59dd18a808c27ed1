"""
Local system inventory plugin.

Describes the host we are running on as a monolithic primary controller.
This is the default when no inventory is given, since the tuner usually runs
on the primary itself.

Detected facts can be replaced through the dataclass fields, which tests use
to avoid depending on the machine they run on.
"""

from __future__ import annotations

import os
import socket
from dataclasses import dataclass
from typing import Optional

from fleet_tuner.core.errors import InventoryError
from fleet_tuner.core.types import Capacity, InventoryRoles, NodeRecord
from fleet_tuner.inventory.plugins.base import InventoryLoadResult, InventoryPlugin
from fleet_tuner.inventory.store import NodeStore


def detect_ram_mb() -> int:
    """Return physical memory in megabytes."""
    try:
        page_size = os.sysconf("SC_PAGE_SIZE")
        pages = os.sysconf("SC_PHYS_PAGES")
    except (AttributeError, ValueError, OSError) as exc:
        raise InventoryError(f"unable to detect physical memory: {exc}") from exc
    return (page_size * pages) // (1024 * 1024)


@dataclass(frozen=True)
class LocalSystemInventoryPlugin(InventoryPlugin):
    """
    Inventory of the local host.

    hostname, cpu_cores and ram_mb default to detected values.
    """

    hostname: Optional[str] = None
    cpu_cores: Optional[int] = None
    ram_mb: Optional[int] = None
    newer_runtime: bool = False

    def load(self) -> InventoryLoadResult:
        name = self.hostname or socket.getfqdn()
        cores = self.cpu_cores if self.cpu_cores is not None else (os.cpu_count() or 0)
        ram = self.ram_mb if self.ram_mb is not None else detect_ram_mb()

        store = NodeStore()
        store.add(
            NodeRecord(
                name=name,
                capacity=Capacity(cpu_cores=cores, ram_mb=ram),
                newer_runtime=self.newer_runtime,
            )
        )
        return InventoryLoadResult(
            store=store,
            roles=InventoryRoles(primary_controller_host=name),
            evidence={"source": "local", "node_count": 1},
        )
