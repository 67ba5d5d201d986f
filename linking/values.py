"""Selection value types and normalization.

Interval values map each bound field to an inclusive ``(low, high)`` pair.
Point values are sets of key tuples aligned to the parameter's fields, so a
single-field selection on ``school`` stores ``{("A",), ("B",)}``.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, TypeAlias, Union

from .errors import SelectionValueError
from .schema import Row


@dataclass(frozen=True, slots=True)
class IntervalValue:
    """Brushed ranges keyed by field name."""

    ranges: Mapping[str, tuple[float, float]]

    def is_empty(self) -> bool:
        return not self.ranges

    def contains(self, row: Row) -> bool:
        """Return True when every bound field of the row lies within its range."""

        for field_name, (low, high) in self.ranges.items():
            value = row.get(field_name)
            if value is None:
                return False
            try:
                numeric = float(value)
            except (TypeError, ValueError):
                return False
            if not low <= numeric <= high:
                return False
        return True


@dataclass(frozen=True, slots=True)
class PointValue:
    """A set of selected key tuples for the parameter's fields."""

    fields: tuple[str, ...]
    keys: frozenset[tuple[Any, ...]]

    def is_empty(self) -> bool:
        return not self.keys

    def contains(self, row: Row) -> bool:
        return tuple(row.get(name) for name in self.fields) in self.keys


SelectionValue: TypeAlias = Union[IntervalValue, PointValue]


def interval_value(ranges: Mapping[str, Iterable[Any]], *, fields: tuple[str, ...]) -> IntervalValue:
    """Normalize a field to range mapping into an IntervalValue.

    Args:
        ranges: Mapping of field name to a two-element range (order-insensitive).
        fields: Fields the parameter binds to.

    Returns:
        IntervalValue with ``low <= high`` for every field.

    Raises:
        SelectionValueError: When a field is unknown or a range is malformed.
    """

    if not isinstance(ranges, Mapping):
        raise SelectionValueError("Interval selections require a mapping of field to [low, high].")

    normalized: dict[str, tuple[float, float]] = {}
    for field_name, bounds in ranges.items():
        if fields and field_name not in fields:
            raise SelectionValueError(f"Field {field_name!r} is not bound by this interval selection.")
        low, high = _bounds(field_name, bounds)
        normalized[field_name] = (min(low, high), max(low, high))
    return IntervalValue(ranges=normalized)


def _bounds(field_name: str, bounds: Any) -> tuple[float, float]:
    """Return a range as two finite floats, rejecting strings and booleans."""

    if not isinstance(bounds, (list, tuple)) or len(bounds) != 2:
        raise SelectionValueError(f"Interval range for {field_name!r} must be [low, high]; got {bounds!r}.")
    numbers: list[float] = []
    for bound in bounds:
        if isinstance(bound, bool) or not isinstance(bound, (int, float)) or not math.isfinite(bound):
            raise SelectionValueError(f"Interval range for {field_name!r} must be two finite numbers; got {bounds!r}.")
        numbers.append(float(bound))
    return numbers[0], numbers[1]


def point_value(selected: Iterable[Any], *, fields: tuple[str, ...]) -> PointValue:
    """Normalize selected keys into a PointValue.

    Accepts scalars (single-field parameters only), tuples aligned to `fields`,
    or mappings keyed by field name.

    Raises:
        SelectionValueError: When an entry does not match the parameter fields.
    """

    if not fields:
        raise SelectionValueError("Point selections require at least one field.")
    if not isinstance(selected, (list, tuple, set, frozenset)):
        selected = [selected]

    keys: set[tuple[Any, ...]] = set()
    for entry in selected:
        if isinstance(entry, Mapping):
            missing = [name for name in fields if name not in entry]
            if missing:
                raise SelectionValueError(f"Point entry {dict(entry)!r} is missing fields {missing}.")
            key = tuple(entry[name] for name in fields)
        elif isinstance(entry, (tuple, list)):
            if len(entry) != len(fields):
                raise SelectionValueError(f"Point entry {entry!r} does not match fields {list(fields)}.")
            key = tuple(entry)
        elif len(fields) == 1:
            key = (entry,)
        else:
            raise SelectionValueError(f"Scalar point entry {entry!r} needs a single-field selection.")
        try:
            hash(key)
        except TypeError as exc:
            raise SelectionValueError(f"Point entry {entry!r} must hold scalar key values.") from exc
        keys.add(key)
    return PointValue(fields=fields, keys=frozenset(keys))
