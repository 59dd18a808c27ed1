from __future__ import annotations

from dataclasses import fields, is_dataclass
from typing import Any

from fleet_tuner.core.settings import BudgetResult, SettingsMap


def _normalize(obj: Any) -> Any:
    if isinstance(obj, SettingsMap):
        return obj.render()
    if is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: _normalize(getattr(obj, f.name)) for f in fields(obj)}
    if hasattr(obj, "value"):
        return obj.value
    if isinstance(obj, dict):
        return {str(_normalize(k)): _normalize(v) for k, v in obj.items()}
    if isinstance(obj, (set, frozenset)):
        return sorted(_normalize(v) for v in obj)
    if isinstance(obj, (list, tuple)):
        return [_normalize(v) for v in obj]
    return obj


def to_json_safe_dict(obj: Any) -> dict[str, Any]:
    """
    Convert a dataclass object into a JSON safe dict.

    Enums become their values and settings maps their persisted form.
    This is intended for transport and reporting only.
    """
    normalized = _normalize(obj)
    if not isinstance(normalized, dict):
        raise TypeError("expected dict after normalization")
    return normalized


def budget_result_to_dict(result: BudgetResult) -> dict[str, Any]:
    """
    BudgetResult transport shape.

    Infeasible results carry the failing checkpoint and its shortfall.
    """
    payload = to_json_safe_dict(result)
    payload["ok"] = result.ok
    if result.failure is not None:
        payload["failure"]["shortfall"] = result.failure.shortfall
    return payload
