"""Per-session selection state and resolution.

`DashboardSession` is the Selection Graph Resolver: it owns the current value of
every selection parameter for one dashboard instance and answers, for any
panel, which rows are visible and which conditional encoding values apply.

Propagation is a single-level fan-out. Updating a parameter marks its direct
consumers dirty; each consumer then resolves independently from the current
values, so the order in which consumers are recomputed is irrelevant.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Literal

from .binding import BindingTable, ParameterBinding, build_binding_table
from .errors import SelectionValueError
from .joins import lookup_join
from .schema import (
    DashboardConfig,
    EngineTransform,
    ExpressionFilter,
    LookupJoin,
    ParamFilter,
    Panel,
    RankWindow,
    Row,
)
from .transforms import drop_invalid_coordinates, filter_expression, geo_fields, rank_rows
from .values import IntervalValue, PointValue, SelectionValue, interval_value, point_value

logger = logging.getLogger(__name__)

ParameterState = Literal["unset", "active"]
RowPredicate = Callable[[Row], bool]


@dataclass(frozen=True, slots=True)
class PanelFilter:
    """Resolved filter for a panel: the conjunction of its active selections.

    Args:
        panel_id: Panel the filter was resolved for.
        predicates: Row predicates of active selections; empty means pass-all.
    """

    panel_id: str
    predicates: tuple[RowPredicate, ...] = ()

    @property
    def passes_all(self) -> bool:
        return not self.predicates

    def __call__(self, row: Row) -> bool:
        return all(predicate(row) for predicate in self.predicates)

    def apply(self, rows: Iterable[Row]) -> list[Row]:
        """Return the rows accepted by the filter."""

        return [row for row in rows if self(row)]


class DashboardSession:
    """Selection state for a single dashboard instance.

    Args:
        config: Immutable dashboard configuration.
        bindings: Prebuilt binding table; built from `config` when omitted.
        strict: Passed to `build_binding_table` when `bindings` is omitted.
        values: Previously stored parameter values to restore (not marked dirty).
    """

    def __init__(
        self,
        config: DashboardConfig,
        *,
        bindings: BindingTable | None = None,
        strict: bool = True,
        values: Mapping[str, Any] | None = None,
    ) -> None:
        self.config = config
        self.bindings = bindings if bindings is not None else build_binding_table(config, strict=strict)
        self._values: dict[str, SelectionValue] = {}
        self._dirty: dict[str, None] = {}
        for name, value in (values or {}).items():
            binding = self.bindings.get(name)
            if binding is None:
                logger.debug("dropping stored value for undeclared parameter %r", name)
                continue
            self._values[name] = self._coerce(binding, value)

    def update_parameter(self, name: str, value: Any, *, replace: bool = False) -> None:
        """Store a new value for a parameter and mark its consumers dirty.

        Unknown names are ignored. ``None`` (or an empty value) clears the
        selection, which then passes all rows again. Point parameters declared
        with ``toggle=True`` merge non-empty updates into the current set by
        symmetric difference unless `replace` is set; all other updates
        replace the value.

        Raises:
            SelectionValueError: When the value does not fit the parameter kind.
        """

        binding = self.bindings.get(name)
        if binding is None:
            logger.debug("ignoring update for unknown parameter %r", name)
            return

        new_value = self._coerce(binding, value)
        current = self._values.get(name)
        if (
            binding.parameter.toggle
            and not replace
            and isinstance(new_value, PointValue)
            and isinstance(current, PointValue)
            and not new_value.is_empty()
        ):
            new_value = PointValue(fields=new_value.fields, keys=current.keys ^ new_value.keys)

        self._values[name] = new_value
        for panel_id in binding.consumers:
            self._dirty[panel_id] = None
        logger.debug("parameter %r updated; dirty consumers=%s", name, list(binding.consumers))

    def state(self, name: str) -> ParameterState | None:
        """Return "unset" or "active" for a declared parameter, None when unknown."""

        if self.bindings.get(name) is None:
            return None
        return "active" if name in self._values else "unset"

    def value(self, name: str) -> SelectionValue | None:
        """Return the current value of a parameter (None while unset)."""

        return self._values.get(name)

    def values(self) -> Mapping[str, SelectionValue]:
        """Return a read-only snapshot of every active parameter value."""

        return MappingProxyType(dict(self._values))

    def dirty_panels(self) -> tuple[str, ...]:
        """Return panels marked dirty since the last `take_dirty` call."""

        return tuple(self._dirty)

    def take_dirty(self) -> tuple[str, ...]:
        """Return and clear the dirty panel set."""

        dirty = tuple(self._dirty)
        self._dirty.clear()
        return dirty

    def resolve_panel_filter(self, panel: Panel | str) -> PanelFilter:
        """Resolve the conjunction of a panel's parameter filters.

        Unset or empty selections and references to undeclared parameters
        contribute nothing, so they pass every row.
        """

        resolved = self._panel(panel)
        predicates: list[RowPredicate] = []
        for param_filter in resolved.param_filters():
            predicate = self._selection_predicate(param_filter.param)
            if predicate is not None:
                predicates.append(predicate)
        return PanelFilter(panel_id=resolved.id, predicates=tuple(predicates))

    def resolve_encoding_condition(self, panel: Panel | str, channel: str, rows: Sequence[Row]) -> list[Any]:
        """Resolve a channel's value for each row.

        Conditions are tested in declared order and the first selected one
        wins. Rows selected by no condition fall back to the channel field
        value, or the channel's constant value when it has no field.

        Raises:
            KeyError: When the panel does not encode `channel`.
        """

        resolved = self._panel(panel)
        encoding = resolved.encoding.get(channel)
        if encoding is None:
            raise KeyError(f"Panel {resolved.id!r} has no {channel!r} encoding.")

        matchers = [(self._condition_matcher(rule.param, empty=rule.empty), rule.value) for rule in encoding.conditions]
        resolved_values: list[Any] = []
        for row in rows:
            for matches, value in matchers:
                if matches(row):
                    resolved_values.append(value)
                    break
            else:
                resolved_values.append(row.get(encoding.field) if encoding.field else encoding.value)
        return resolved_values

    def visible_rows(self, panel: Panel | str, tables: Mapping[str, Sequence[Row]]) -> list[Row]:
        """Run a panel's transform pipeline over the given source tables.

        Args:
            panel: Panel or panel id.
            tables: Rows per data source name.

        Returns:
            The rows handed to the renderer for this panel, before any
            renderer-owned statistical transform.

        Raises:
            KeyError: When a required source table is missing from `tables`.
        """

        resolved = self._panel(panel)
        rows: list[Row] = list(_table(tables, resolved.source))
        for transform in resolved.transforms:
            if isinstance(transform, LookupJoin):
                rows = lookup_join(
                    rows,
                    _table(tables, transform.source),
                    key=transform.key,
                    fields=transform.fields,
                )
            elif isinstance(transform, ParamFilter):
                predicate = self._selection_predicate(transform.param)
                if predicate is not None:
                    rows = [row for row in rows if predicate(row)]
            elif isinstance(transform, RankWindow):
                rows = rank_rows(rows, window=transform)
            elif isinstance(transform, ExpressionFilter):
                rows = filter_expression(rows, expression=transform.expression)
            elif isinstance(transform, EngineTransform):
                continue
        return drop_invalid_coordinates(rows, fields=geo_fields(resolved))

    def _panel(self, panel: Panel | str) -> Panel:
        if isinstance(panel, Panel):
            return panel
        resolved = self.config.panel(panel)
        if resolved is None:
            raise KeyError(f"Unknown panel {panel!r}.")
        return resolved

    def _selection_predicate(self, name: str) -> RowPredicate | None:
        """Return a row predicate for an active selection, or None for pass-all."""

        value = self._values.get(name)
        if value is None or value.is_empty():
            return None
        return value.contains

    def _condition_matcher(self, name: str, *, empty: bool) -> RowPredicate:
        if self.bindings.get(name) is None:
            return _always
        value = self._values.get(name)
        if value is None or value.is_empty():
            return _always if empty else _never
        return value.contains

    @staticmethod
    def _coerce(binding: ParameterBinding, value: Any) -> SelectionValue:
        """Normalize a raw value for the binding's parameter kind."""

        kind = binding.parameter.kind
        if kind == "interval":
            if value is None:
                return IntervalValue(ranges={})
            if isinstance(value, PointValue):
                raise SelectionValueError(f"Parameter {binding.parameter.name!r} expects an interval value.")
            if isinstance(value, IntervalValue):
                return interval_value(value.ranges, fields=binding.fields)
            return interval_value(value, fields=binding.fields)

        if value is None:
            return PointValue(fields=binding.fields, keys=frozenset())
        if isinstance(value, IntervalValue):
            raise SelectionValueError(f"Parameter {binding.parameter.name!r} expects a point value.")
        if isinstance(value, PointValue):
            if value.fields != binding.fields:
                raise SelectionValueError(
                    f"Parameter {binding.parameter.name!r} binds {list(binding.fields)}; got {list(value.fields)}."
                )
            return value
        return point_value(value, fields=binding.fields)


def _table(tables: Mapping[str, Sequence[Row]], name: str) -> Sequence[Row]:
    try:
        return tables[name]
    except KeyError:
        raise KeyError(f"No rows provided for data source {name!r}.") from None


def _always(_row: Row) -> bool:
    return True


def _never(_row: Row) -> bool:
    return False
