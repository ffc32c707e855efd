"""
Field-level change detection between two status snapshots.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional

from core.status.document import deep_equal


class _Missing:
    """Marker for a side of a change where the field does not exist."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()


@dataclass(frozen=True)
class Change:
    field: str
    old_value: Any = MISSING
    new_value: Any = MISSING

    def __post_init__(self):
        if self.old_value is MISSING and self.new_value is MISSING:
            raise ValueError(f"change for {self.field!r} has neither an old nor a new value")
        if self.old_value is not MISSING and self.new_value is not MISSING and deep_equal(self.old_value, self.new_value):
            raise ValueError(f"change for {self.field!r} has equal old and new values")

    @property
    def is_addition(self) -> bool:
        return self.old_value is MISSING

    @property
    def is_removal(self) -> bool:
        return self.new_value is MISSING


def detect_changes(previous: Optional[Mapping], current: Mapping) -> List[Change]:
    """
    Compare two snapshots and return one Change per differing field.

    previous=None means there is no earlier snapshot: the result is empty and
    the caller handles the first observation on its own. Additions and
    modifications follow the key order of `current`, removals follow the key
    order of `previous`.
    """
    if previous is None:
        return []

    changes: List[Change] = []

    for key in current:
        new_val = current[key]
        if key not in previous:
            changes.append(Change(field=key, new_value=new_val))
            continue
        old_val = previous[key]
        if not deep_equal(old_val, new_val):
            changes.append(Change(field=key, old_value=old_val, new_value=new_val))

    for key in previous:
        if key not in current:
            changes.append(Change(field=key, old_value=previous[key]))

    return changes


def format_value(value: Any) -> str:
    """Render a JSON value for humans: strings as-is, everything else as JSON."""
    if isinstance(value, str):
        return value
    return json.dumps(value, sort_keys=True, ensure_ascii=False)


def format_change(change: Change) -> str:
    if change.is_addition:
        return f"+ {change.field}: {format_value(change.new_value)} (new)"
    if change.is_removal:
        return f"- {change.field}: {format_value(change.old_value)} (removed)"
    return f"~ {change.field}: {format_value(change.old_value)} → {format_value(change.new_value)}"


def format_changes(changes: List[Change]) -> str:
    if not changes:
        return "No changes detected"
    return "\n".join(format_change(c) for c in changes)


__all__ = [
    "MISSING",
    "Change",
    "detect_changes",
    "format_value",
    "format_change",
    "format_changes",
]
