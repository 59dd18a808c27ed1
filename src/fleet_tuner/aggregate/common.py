"""
Common settings extraction.

Settings that have one value across the fleet belong in the common layer
of the configuration hierarchy, so per node files only carry differences.

Rule
A setting is common when every node that carries it has the same value.
Nodes that do not carry a setting do not prevent it from being common.
Infeasible nodes have empty maps and take no part.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping

from fleet_tuner.core.settings import SettingKey, SettingsMap, SettingValue


@dataclass(frozen=True)
class CommonSettings:
    """
    common holds the shared settings.
    nodes holds new per node maps with the common keys removed.
    """

    common: SettingsMap = field(default_factory=SettingsMap)
    nodes: Dict[str, SettingsMap] = field(default_factory=dict)


def extract_common_settings(node_settings: Mapping[str, SettingsMap]) -> CommonSettings:
    """Split per node settings into a common layer and per node remainders."""
    values_by_key: Dict[SettingKey, List[SettingValue]] = {}
    for settings in node_settings.values():
        for key, value in settings.items():
            values_by_key.setdefault(key, []).append(value)

    common: Dict[SettingKey, SettingValue] = {}
    for key, values in values_by_key.items():
        if all(v == values[0] for v in values[1:]):
            common[key] = values[0]

    remainders = {
        name: settings.without(common) for name, settings in node_settings.items() if settings
    }
    return CommonSettings(common=SettingsMap(common), nodes=remainders)
