"""Schema types for declarative linked-selection dashboards.

A dashboard is a collection of independent panels. Panels communicate only
through named selection parameters: a panel *declares* (produces) parameters
and other panels *consume* them through filter transforms or conditional
encodings. All types here are immutable; interaction state lives in
`linking.session.DashboardSession`.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal, TypeAlias, Union

SelectionKind = Literal["interval", "point"]
SortOrder = Literal["ascending", "descending"]
FieldType = Literal["quantitative", "nominal", "ordinal", "temporal"]

Row: TypeAlias = Mapping[str, Any]

GEO_CHANNELS: tuple[str, ...] = ("longitude", "latitude")


@dataclass(frozen=True, slots=True)
class DataSource:
    """A tabular input consumed by reference.

    Args:
        name: Stable name referenced by panels and lookups.
        url: Location handed to the renderer.
        key: Identifier field used for joins.
        columns: Optional declared column names (used for render-time checks).
    """

    name: str
    url: str
    key: str = "school"
    columns: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class SelectionParameter:
    """A named interaction state declared by a panel.

    Args:
        name: Globally unique parameter name.
        kind: "interval" for brushed ranges, "point" for clicked key sets.
        fields: Data fields the selection binds to.
        encodings: Encoding channels an interval binds to; projected onto the
            producer panel's channel fields.
        on: Renderer event that updates the parameter.
        toggle: Whether point updates merge into the current set.
    """

    name: str
    kind: SelectionKind
    fields: tuple[str, ...] = ()
    encodings: tuple[str, ...] = ()
    on: str | None = None
    toggle: bool = False


@dataclass(frozen=True, slots=True)
class ParamFilter:
    """Filter a panel's rows by the current value of a selection parameter."""

    param: str


@dataclass(frozen=True, slots=True)
class ExpressionFilter:
    """Filter rows with an expression over `datum.<field>` references."""

    expression: str


@dataclass(frozen=True, slots=True)
class RankWindow:
    """Assign a rank over the whole panel, ordered by a sort field.

    Ties share a rank and the following rank skips ahead (SQL RANK semantics).
    """

    sort_field: str
    order: SortOrder = "descending"
    as_field: str = "rank"


@dataclass(frozen=True, slots=True)
class LookupJoin:
    """Left-join the panel's rows to another data source by key.

    Args:
        key: Key field present in both tables.
        source: Name of the data source to look rows up in.
        fields: Fields copied from the matched row.
    """

    key: str
    source: str
    fields: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class EngineTransform:
    """A renderer-owned transform (density, bin, ...) passed through untouched."""

    spec: Mapping[str, Any]
    produces: tuple[str, ...] = ()


Transform: TypeAlias = Union[ParamFilter, ExpressionFilter, RankWindow, LookupJoin, EngineTransform]


@dataclass(frozen=True, slots=True)
class ScaleSpec:
    """Scale hints forwarded to the renderer."""

    domain: tuple[Any, ...] | None = None
    range: tuple[Any, ...] | None = None
    zero: bool | None = None


@dataclass(frozen=True, slots=True)
class ConditionRule:
    """One entry of an ordered conditional encoding list.

    Args:
        param: Selection parameter tested against each row.
        value: Channel value used when the row is selected.
        empty: Whether an unset or empty selection counts as selecting every row.
    """

    param: str
    value: Any
    empty: bool = True


@dataclass(frozen=True, slots=True)
class ChannelEncoding:
    """A single encoding channel of a panel.

    The first condition whose parameter selects a row wins; rows selected by no
    condition use `field` (when set) or the constant `value`.
    """

    field: str | None = None
    type: FieldType | None = None
    title: str | None = None
    aggregate: str | None = None
    scale: ScaleSpec | None = None
    conditions: tuple[ConditionRule, ...] = ()
    value: Any = None
    options: Mapping[str, Any] = dataclasses.field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class TooltipField:
    """A tooltip entry."""

    field: str | None
    type: FieldType = "nominal"
    title: str | None = None
    format: str | None = None
    aggregate: str | None = None


@dataclass(frozen=True, slots=True)
class Panel:
    """An independent chart definition within a dashboard.

    Args:
        id: Stable panel identifier.
        title: Panel title.
        source: Name of the data source feeding the panel.
        mark: Renderer mark type.
        subtitle: Optional subtitle.
        params: Selection parameters this panel declares.
        transforms: Ordered transform pipeline.
        encoding: Channel name to encoding definition.
        tooltip: Tooltip entries.
        width: Width hint in pixels.
        height: Height hint in pixels.
        mark_options: Extra mark properties forwarded to the renderer.
        projection: Optional map projection type.
    """

    id: str
    title: str
    source: str
    mark: str
    subtitle: str | None = None
    params: tuple[SelectionParameter, ...] = ()
    transforms: tuple[Transform, ...] = ()
    encoding: Mapping[str, ChannelEncoding] = dataclasses.field(default_factory=dict)
    tooltip: tuple[TooltipField, ...] = ()
    width: int = 450
    height: int = 350
    mark_options: Mapping[str, Any] = dataclasses.field(default_factory=dict)
    projection: str | None = None

    def param_filters(self) -> tuple[ParamFilter, ...]:
        """Return the panel's parameter filters in declared order."""

        return tuple(t for t in self.transforms if isinstance(t, ParamFilter))

    def condition_params(self) -> frozenset[str]:
        """Return every parameter name referenced by a conditional encoding."""

        return frozenset(rule.param for channel in self.encoding.values() for rule in channel.conditions)


@dataclass(frozen=True, slots=True)
class DashboardSection:
    """A titled group of panel rows."""

    title: str
    rows: tuple[tuple[str, ...], ...]


@dataclass(frozen=True, slots=True)
class DashboardConfig:
    """Immutable dashboard definition constructed once at startup.

    Args:
        id: Dashboard identifier.
        sources: Data sources referenced by panels.
        panels: Panel definitions.
        sections: Layout as titled sections of panel-id rows.
        default_source: Data source used at the top level of the compiled document.
    """

    id: str
    sources: tuple[DataSource, ...]
    panels: tuple[Panel, ...]
    sections: tuple[DashboardSection, ...] = ()
    default_source: str | None = None

    def source(self, name: str) -> DataSource | None:
        """Return a data source by name, or None when missing."""

        for source in self.sources:
            if source.name == name:
                return source
        return None

    def panel(self, panel_id: str) -> Panel | None:
        """Return a panel by id, or None when missing."""

        for panel in self.panels:
            if panel.id == panel_id:
                return panel
        return None
