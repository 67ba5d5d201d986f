"""Encoding/decoding helpers for selection values.

Selection values are stored in the web session and arrive in request bodies,
so they need a JSON-safe shape:

- interval: ``{"x": [0.0, 5.0], "y": [-2.0, 2.0]}``
- point: ``[{"school": "A"}, {"school": "B"}]``
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .binding import BindingTable
from .values import IntervalValue, PointValue, SelectionValue


def encode_selection_value(value: SelectionValue) -> dict[str, list[float]] | list[dict[str, Any]]:
    """Encode a selection value into a JSON-serializable structure."""

    if isinstance(value, IntervalValue):
        return {name: [low, high] for name, (low, high) in sorted(value.ranges.items())}
    return [dict(zip(value.fields, key)) for key in sorted(value.keys, key=_sort_key)]


def encode_selection_state(values: Mapping[str, SelectionValue]) -> dict[str, Any]:
    """Encode every parameter value keyed by parameter name."""

    return {name: encode_selection_value(value) for name, value in sorted(values.items())}


def decode_selection_state(payload: Mapping[str, Any] | None, *, bindings: BindingTable) -> dict[str, Any]:
    """Return raw stored values for parameters that are still declared.

    The raw values are normalized by `DashboardSession` when restored. Entries
    for undeclared parameters, or with the wrong shape for their kind, are
    dropped.

    Args:
        payload: Mapping previously produced by `encode_selection_state`.
        bindings: Binding table of the dashboard being restored.

    Returns:
        Mapping of parameter name to raw value.
    """

    if not isinstance(payload, Mapping):
        return {}

    decoded: dict[str, Any] = {}
    for name, raw in payload.items():
        binding = bindings.get(str(name))
        if binding is None:
            continue
        if binding.parameter.kind == "interval" and isinstance(raw, Mapping):
            decoded[binding.parameter.name] = raw
        elif binding.parameter.kind == "point" and isinstance(raw, list):
            decoded[binding.parameter.name] = raw
    return decoded


def _sort_key(key: tuple[Any, ...]) -> tuple[str, ...]:
    return tuple(str(part) for part in key)
