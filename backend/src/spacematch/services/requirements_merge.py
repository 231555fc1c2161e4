"""Merge policy for accumulated requirements.

Pure-function module: works on camelCase payload dicts, never mutates its
inputs.

Rules, applied recursively:
    - lists    → concatenated (existing + incoming), no de-duplication
    - dicts    → merged key by key
    - scalars  → incoming written only when the existing value is empty;
                 a differing non-empty value is kept and the attempted
                 overwrite is reported as a contradiction
Empty incoming values (None, "", [], {}) are ignored.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any

from spacematch.domain.state import Contradiction


@dataclass
class MergeResult:
    merged: dict
    contradictions: list[Contradiction] = field(default_factory=list)
    updated_fields: list[str] = field(default_factory=list)


def is_empty(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


def deep_merge(existing: dict | None, incoming: dict | None, _path: str = "") -> MergeResult:
    """Merge ``incoming`` into ``existing`` without losing known facts.

    Returns the merged dict, the contradictions detected (dotted camelCase
    field paths, e.g. ``budget.monthlyRent.max``) and the paths that
    received new data.
    """
    merged = copy.deepcopy(existing) if existing else {}
    result = MergeResult(merged=merged)

    for key, new_value in (incoming or {}).items():
        if is_empty(new_value):
            continue

        path = f"{_path}.{key}" if _path else key
        old_value = merged.get(key)

        if is_empty(old_value):
            merged[key] = copy.deepcopy(new_value)
            result.updated_fields.append(path)
            continue

        if isinstance(old_value, list) and isinstance(new_value, list):
            merged[key] = old_value + copy.deepcopy(new_value)
            result.updated_fields.append(path)
        elif isinstance(old_value, dict) and isinstance(new_value, dict):
            nested = deep_merge(old_value, new_value, path)
            merged[key] = nested.merged
            result.contradictions.extend(nested.contradictions)
            result.updated_fields.extend(nested.updated_fields)
        elif old_value != new_value:
            result.contradictions.append(
                Contradiction(field=path, old_value=old_value, new_value=copy.deepcopy(new_value))
            )

    return result

