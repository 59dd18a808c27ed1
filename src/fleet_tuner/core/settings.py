"""
Settings catalog.

The budgeter may only emit the settings listed here. Each SettingKey carries
the persisted Hiera key as its value, and the catalog declares the value type
accepted for it, so a typo or a wrong type fails loudly instead of producing
an unrecognized setting.

Value types
int         counts, and the broker heap expressed in MB
HeapSize    fixed size JVM heap rendered as Xms and Xmx java args
MemorySize  a memory amount rendered as a string with a unit suffix
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, Mapping, Optional, Union

from fleet_tuner.core.types import CheckpointFailure, UsageTotals


class SettingKey(str, Enum):
    worker_pool_size = "puppet_enterprise::master::puppetserver::jruby_max_active_instances"
    reserved_code_cache = "puppet_enterprise::master::puppetserver::reserved_code_cache"
    broker_heap = "puppet_enterprise::profile::amq::broker::heap_mb"
    console_heap = "puppet_enterprise::profile::console::java_args"
    database_buffer = "puppet_enterprise::profile::database::shared_buffers"
    controller_heap = "puppet_enterprise::profile::master::java_args"
    orchestrator_heap = "puppet_enterprise::profile::orchestrator::java_args"
    job_queue_heap = "puppet_enterprise::profile::puppetdb::java_args"
    job_queue_threads = "puppet_enterprise::puppetdb::command_processing_threads"


@dataclass(frozen=True)
class HeapSize:
    """Fixed size heap. Minimum and maximum are always equal."""

    mb: int

    def render(self) -> Dict[str, str]:
        return {"Xms": f"{self.mb}m", "Xmx": f"{self.mb}m"}


@dataclass(frozen=True)
class MemorySize:
    """Memory amount with the unit suffix expected by the consuming service."""

    mb: int
    suffix: str = "MB"

    def render(self) -> str:
        return f"{self.mb}{self.suffix}"


SettingValue = Union[int, HeapSize, MemorySize]


@dataclass(frozen=True)
class SettingSpec:
    """
    Catalog entry.

    value_type is the accepted Python type.
    suffix is the unit used when the value is a MemorySize.
    """

    value_type: type
    description: str
    suffix: str = ""

    def wrap(self, mb_or_count: int) -> SettingValue:
        """Build a typed value for this setting from a plain number."""
        if self.value_type is HeapSize:
            return HeapSize(mb_or_count)
        if self.value_type is MemorySize:
            return MemorySize(mb_or_count, self.suffix)
        return int(mb_or_count)


SETTINGS_CATALOG: Dict[SettingKey, SettingSpec] = {
    SettingKey.worker_pool_size: SettingSpec(int, "compiler worker pool size"),
    SettingKey.reserved_code_cache: SettingSpec(MemorySize, "reserved code cache", suffix="m"),
    SettingKey.broker_heap: SettingSpec(int, "message broker heap in MB"),
    SettingKey.console_heap: SettingSpec(HeapSize, "console heap"),
    SettingKey.database_buffer: SettingSpec(MemorySize, "database shared buffers", suffix="MB"),
    SettingKey.controller_heap: SettingSpec(HeapSize, "controller heap"),
    SettingKey.orchestrator_heap: SettingSpec(HeapSize, "orchestrator heap"),
    SettingKey.job_queue_heap: SettingSpec(HeapSize, "job queue heap"),
    SettingKey.job_queue_threads: SettingSpec(int, "job queue command processing threads"),
}


def _check_value(key: SettingKey, value: SettingValue) -> None:
    entry = SETTINGS_CATALOG[key]
    # bool is an int subclass, but never a valid setting value.
    if isinstance(value, bool) or not isinstance(value, entry.value_type):
        raise TypeError(
            f"setting {key.name} expects {entry.value_type.__name__}, got {type(value).__name__}"
        )


class SettingsMap(Mapping[SettingKey, SettingValue]):
    """
    Immutable mapping of catalog keys to typed values.

    Keys that do not apply to a node are simply absent.
    Derived maps are built with without() and never modify the original.
    """

    __slots__ = ("_values",)

    def __init__(self, values: Optional[Mapping[SettingKey, SettingValue]] = None) -> None:
        checked: Dict[SettingKey, SettingValue] = {}
        for key, value in (values or {}).items():
            key = SettingKey(key)
            _check_value(key, value)
            checked[key] = value
        self._values = checked

    def __getitem__(self, key: SettingKey) -> SettingValue:
        return self._values[key]

    def __iter__(self) -> Iterator[SettingKey]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SettingsMap):
            return self._values == other._values
        if isinstance(other, Mapping):
            return self._values == dict(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(frozenset(self._values.items()))

    def __repr__(self) -> str:
        inner = ", ".join(f"{k.name}={v!r}" for k, v in self._values.items())
        return f"SettingsMap({inner})"

    def without(self, keys: Iterable[SettingKey]) -> "SettingsMap":
        """Return a new map without the given keys."""
        drop = set(keys)
        return SettingsMap({k: v for k, v in self._values.items() if k not in drop})

    def render(self) -> Dict[str, Any]:
        """
        Return the persisted form.

        Keys are Hiera keys, sorted for stable output.
        """
        rendered: Dict[str, Any] = {}
        for key in sorted(self._values, key=lambda k: k.value):
            value = self._values[key]
            rendered[key.value] = value if isinstance(value, int) else value.render()
        return rendered


def parse_setting(key: SettingKey, raw: Any) -> SettingValue:
    """
    Convert a persisted value back into its typed form.

    Accepts the shapes produced by SettingsMap.render.
    """
    entry = SETTINGS_CATALOG[key]
    if entry.value_type is HeapSize:
        if not isinstance(raw, dict) or "Xmx" not in raw:
            raise ValueError(f"setting {key.value} must be a dict with Xmx")
        return HeapSize(parse_megabytes(raw["Xmx"]))
    if entry.value_type is MemorySize:
        return MemorySize(parse_megabytes(raw), entry.suffix)
    return int(raw)


def per_worker_mb_of(settings: Mapping[SettingKey, SettingValue]) -> int:
    """
    Memory per worker implied by existing settings.

        per_worker = controller_heap // worker_pool_size

    Returns 0 when either setting is missing or the pool is empty.
    """
    heap = settings.get(SettingKey.controller_heap)
    workers = settings.get(SettingKey.worker_pool_size)
    if not isinstance(heap, HeapSize) or not isinstance(workers, int) or workers <= 0:
        return 0
    return heap.mb // workers


_MEMORY_PATTERN = re.compile(r"^(\d+)\s*([kmgt]?)b?$", re.IGNORECASE)

_MEMORY_SCALE = {
    "k": 1.0 / 1024,
    "m": 1,
    "g": 1024,
    "t": 1024 * 1024,
}


def parse_megabytes(raw: Any) -> int:
    """
    Convert a memory amount to whole megabytes.

    Integers are taken as megabytes. Strings may carry a k, m, g or t suffix,
    optionally followed by b. A bare "b" suffix means bytes, and a string
    without any suffix is megabytes.
    """
    if isinstance(raw, bool):
        raise ValueError(f"unable to parse memory value {raw!r}")
    if isinstance(raw, int):
        return raw
    text = str(raw).strip()
    if text.lower().endswith("b") and text[:-1].isdigit():
        return int(text[:-1]) // (1024 * 1024)
    match = _MEMORY_PATTERN.match(text)
    if not match:
        raise ValueError(f"unable to parse memory value {raw!r}")
    number, unit = match.groups()
    unit = (unit or "m").lower()
    if unit == "m":
        return int(number)
    return int(int(number) * _MEMORY_SCALE[unit])


@dataclass(frozen=True)
class BudgetResult:
    """
    Output of one budget recipe.

    A feasible result has settings and totals.
    An infeasible result has an empty SettingsMap, no totals, and the failing
    checkpoint, which is distinct from a result where a service is not present.
    """

    settings: SettingsMap = field(default_factory=SettingsMap)
    totals: Optional[UsageTotals] = None
    failure: Optional[CheckpointFailure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None and len(self.settings) > 0

    @classmethod
    def infeasible(cls, failure: CheckpointFailure) -> "BudgetResult":
        return cls(settings=SettingsMap(), totals=None, failure=failure)
