"""
Status document model: one immutable snapshot of a case's status.
"""
from __future__ import annotations

import copy
import json
import math
from collections.abc import Mapping
from typing import Any, Dict, Iterator


class InvalidDocument(ValueError):
    """Raised when a payload cannot be represented as a status document."""


def _check_value(value: Any, path: str) -> None:
    if isinstance(value, float) and not math.isfinite(value):
        raise InvalidDocument(f"non-finite number {value!r} at {path or '<root>'}")
    if value is None or isinstance(value, (bool, int, float, str)):
        return
    if isinstance(value, (list, tuple)):
        for idx, item in enumerate(value):
            _check_value(item, f"{path}[{idx}]")
        return
    if isinstance(value, Mapping):
        for key, item in value.items():
            if not isinstance(key, str):
                raise InvalidDocument(f"non-string key {key!r} at {path or '<root>'}")
            _check_value(item, f"{path}.{key}" if path else key)
        return
    raise InvalidDocument(f"unsupported value type {type(value).__name__} at {path or '<root>'}")


def _reject_constant(name: str) -> Any:
    # NaN and Infinity are not JSON and never compare equal to themselves.
    raise InvalidDocument(f"non-standard JSON constant {name}")


def deep_equal(a: Any, b: Any) -> bool:
    """
    Structural comparison of two JSON-like values.

    Mappings ignore key order, sequences do not. Booleans never equal numbers,
    even though Python treats True == 1.
    """
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a is b
    if isinstance(a, (int, float)) and isinstance(b, (int, float)):
        return a == b
    if isinstance(a, Mapping) and isinstance(b, Mapping):
        if set(a.keys()) != set(b.keys()):
            return False
        return all(deep_equal(a[k], b[k]) for k in a)
    if isinstance(a, (list, tuple)) and isinstance(b, (list, tuple)):
        if len(a) != len(b):
            return False
        return all(deep_equal(x, y) for x, y in zip(a, b))
    if type(a) is not type(b):
        return False
    return a == b


class StatusDocument(Mapping):
    """
    Read-only mapping of field name -> JSON value.

    The source controls the field set, so no schema is enforced beyond the
    values being JSON-like. Values handed out by ``__getitem__`` are copies.
    """

    __slots__ = ("_fields",)

    def __init__(self, fields: Mapping | None = None):
        fields = fields if fields is not None else {}
        if not isinstance(fields, Mapping):
            raise InvalidDocument(f"expected an object, got {type(fields).__name__}")
        _check_value(fields, "")
        self._fields: Dict[str, Any] = copy.deepcopy(dict(fields))

    @classmethod
    def from_json(cls, text: str) -> "StatusDocument":
        try:
            payload = json.loads(text, parse_constant=_reject_constant)
        except (TypeError, ValueError) as exc:
            raise InvalidDocument(f"invalid JSON: {exc}") from exc
        return cls(payload)

    def __getitem__(self, key: str) -> Any:
        return copy.deepcopy(self._fields[key])

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, StatusDocument):
            return deep_equal(self._fields, other._fields)
        if isinstance(other, Mapping):
            return deep_equal(self._fields, other)
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"StatusDocument({self._fields!r})"

    def to_dict(self) -> Dict[str, Any]:
        """Return a mutable deep copy of the fields."""
        return copy.deepcopy(self._fields)

    def to_json(self, indent: int | None = 2) -> str:
        return json.dumps(self._fields, indent=indent, sort_keys=True, ensure_ascii=False, allow_nan=False)


__all__ = ["InvalidDocument", "StatusDocument", "deep_equal"]
