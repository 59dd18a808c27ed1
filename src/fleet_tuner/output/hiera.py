"""
Hiera YAML store.

Layout
<directory>/common.yaml
<directory>/nodes/<node>.yaml

Files contain the rendered settings keyed by their Hiera key. Empty maps are
never written, so an infeasible node never gets a file.

Reading goes the other way: keys outside the settings catalog are ignored,
which lets operators keep unrelated data in the same files.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

import yaml

from fleet_tuner.core.errors import InventoryError
from fleet_tuner.core.settings import SettingKey, SettingsMap, SettingValue, parse_setting

logger = logging.getLogger(__name__)

_CATALOG_KEYS = {key.value: key for key in SettingKey}


@dataclass(frozen=True)
class HieraStore:
    """Read and write tuned settings in a Hiera data directory."""

    directory: Path

    @property
    def nodes_directory(self) -> Path:
        return Path(self.directory) / "nodes"

    def node_path(self, node: str) -> Path:
        return self.nodes_directory / f"{node}.yaml"

    @property
    def common_path(self) -> Path:
        return Path(self.directory) / "common.yaml"

    def _write(self, path: Path, settings: SettingsMap) -> Optional[Path]:
        if not settings:
            return None
        path.parent.mkdir(parents=True, exist_ok=True)
        text = yaml.safe_dump(settings.render(), default_flow_style=False, sort_keys=True)
        path.write_text("---\n" + text, encoding="utf-8")
        logger.debug("Wrote %s settings to %s", len(settings), path)
        return path

    def write_node(self, node: str, settings: SettingsMap) -> Optional[Path]:
        """Write one node file. Returns the path, or None when nothing was written."""
        return self._write(self.node_path(node), settings)

    def write_common(self, settings: SettingsMap) -> Optional[Path]:
        return self._write(self.common_path, settings)

    def write_all(self, nodes: Dict[str, SettingsMap], common: Optional[SettingsMap] = None) -> list[Path]:
        """Write every node file and the common file, skipping empty maps."""
        written = []
        for name in sorted(nodes):
            path = self.write_node(name, nodes[name])
            if path:
                written.append(path)
        if common is not None:
            path = self.write_common(common)
            if path:
                written.append(path)
        return written

    def _read(self, path: Path) -> SettingsMap:
        if not path.exists():
            return SettingsMap()
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise InventoryError(f"unable to read settings from {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise InventoryError(f"{path} must contain a mapping")

        values: Dict[SettingKey, SettingValue] = {}
        for raw_key, raw_value in data.items():
            key = _CATALOG_KEYS.get(str(raw_key))
            if key is None:
                continue
            try:
                values[key] = parse_setting(key, raw_value)
            except (TypeError, ValueError) as exc:
                raise InventoryError(f"invalid value for {raw_key} in {path}: {exc}") from exc
        return SettingsMap(values)

    def read_node_settings(self, node: str) -> SettingsMap:
        """Return the catalog settings currently defined for a node."""
        return self._read(self.node_path(node))
