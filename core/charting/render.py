"""Compile a DashboardConfig into a Vega-Lite document.

The renderer owns painting, statistical transforms and event capture. This
module only translates the typed configuration: panel params, ordered
transforms and condition lists are emitted in declared order so the renderer
sees exactly the wiring the binding table validated.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Final

from linking.errors import RenderFailure
from linking.schema import (
    ChannelEncoding,
    DashboardConfig,
    DataSource,
    EngineTransform,
    ExpressionFilter,
    LookupJoin,
    ParamFilter,
    Panel,
    RankWindow,
    SelectionParameter,
    TooltipField,
    Transform,
)

logger = logging.getLogger(__name__)

VEGA_LITE_SCHEMA: Final[str] = "https://vega.github.io/schema/vega-lite/v5.json"


def compile_dashboard(
    config: DashboardConfig,
    *,
    selections: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Compile a dashboard into a Vega-Lite document.

    Args:
        config: DashboardConfig (already bound and validated).
        selections: Encoded selection state (see `linking.codec`) used as the
            initial value of each selection parameter.

    Returns:
        A JSON-serializable Vega-Lite document.

    Raises:
        RenderFailure: When a panel references fields its data does not
            provide or declares an inconsistent scale.
    """

    problems: list[str] = []
    compiled: dict[str, dict[str, Any]] = {}
    for panel in config.panels:
        problems.extend(_check_panel(config, panel))
        compiled[panel.id] = compile_panel(config, panel, selections=selections)
    if problems:
        raise RenderFailure("; ".join(problems))

    document: dict[str, Any] = {"$schema": VEGA_LITE_SCHEMA}
    default = config.source(config.default_source) if config.default_source else None
    if default is not None:
        document["data"] = {"url": default.url}

    if config.sections:
        document["vconcat"] = [
            {
                "title": {"text": section.title, "fontSize": 16, "fontWeight": "bold"},
                "vconcat": [
                    compiled[row[0]] if len(row) == 1 else {"hconcat": [compiled[panel_id] for panel_id in row]}
                    for row in section.rows
                ],
            }
            for section in config.sections
        ]
    else:
        document["vconcat"] = [compiled[panel.id] for panel in config.panels]

    logger.debug("compiled dashboard %r with %d panels", config.id, len(compiled))
    return document


def compile_panel(
    config: DashboardConfig,
    panel: Panel,
    *,
    selections: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Compile a single panel into a Vega-Lite unit spec."""

    spec: dict[str, Any] = {
        "name": panel.id,
        "title": {"text": panel.title, "subtitle": panel.subtitle} if panel.subtitle else panel.title,
        "width": panel.width,
        "height": panel.height,
    }
    if panel.source != config.default_source:
        source = config.source(panel.source)
        if source is not None:
            spec["data"] = {"url": source.url}
    if panel.transforms:
        spec["transform"] = [_compile_transform(config, transform) for transform in panel.transforms]
    if panel.params:
        initial = selections or {}
        spec["params"] = [_compile_param(panel, parameter, initial.get(parameter.name)) for parameter in panel.params]
    spec["mark"] = {"type": panel.mark, **panel.mark_options} if panel.mark_options else panel.mark

    encoding = {channel: _compile_channel(definition) for channel, definition in panel.encoding.items()}
    if panel.tooltip:
        encoding["tooltip"] = [_compile_tooltip(item) for item in panel.tooltip]
    spec["encoding"] = encoding
    if panel.projection:
        spec["projection"] = {"type": panel.projection}
    return spec


def _compile_param(panel: Panel, parameter: SelectionParameter, selected: Any) -> dict[str, Any]:
    select: dict[str, Any] = {"type": parameter.kind}
    if parameter.encodings:
        select["encodings"] = list(parameter.encodings)
    if parameter.fields:
        select["fields"] = list(parameter.fields)
    if parameter.on:
        select["on"] = parameter.on
    if parameter.toggle:
        select["toggle"] = True
    compiled: dict[str, Any] = {"name": parameter.name, "select": select}
    initial = _initial_value(panel, parameter, selected)
    if initial:
        compiled["value"] = initial
    return compiled


def _initial_value(panel: Panel, parameter: SelectionParameter, selected: Any) -> Any:
    """Translate an encoded selection into a Vega-Lite param value.

    Interval values are keyed by encoding channel, so only intervals bound to
    encodings can be seeded. Empty selections are left unset.
    """

    if not selected:
        return None
    if parameter.kind == "point":
        return [dict(entry) for entry in selected] if isinstance(selected, list) else None
    if not isinstance(selected, Mapping):
        return None
    value: dict[str, Any] = {}
    for channel in parameter.encodings:
        encoding = panel.encoding.get(channel)
        if encoding is not None and encoding.field in selected:
            value[channel] = list(selected[encoding.field])
    return value


def _compile_transform(config: DashboardConfig, transform: Transform) -> dict[str, Any]:
    if isinstance(transform, ParamFilter):
        return {"filter": {"param": transform.param}}
    if isinstance(transform, ExpressionFilter):
        return {"filter": transform.expression}
    if isinstance(transform, RankWindow):
        return {
            "window": [{"op": "rank", "as": transform.as_field}],
            "sort": [{"field": transform.sort_field, "order": transform.order}],
        }
    if isinstance(transform, LookupJoin):
        source = config.source(transform.source)
        url = source.url if source is not None else transform.source
        return {
            "lookup": transform.key,
            "from": {"data": {"url": url}, "key": transform.key, "fields": list(transform.fields)},
        }
    if isinstance(transform, EngineTransform):
        return dict(transform.spec)
    raise RenderFailure(f"Unsupported transform: {type(transform).__name__}.")


def _compile_channel(definition: ChannelEncoding) -> dict[str, Any]:
    channel: dict[str, Any] = {}
    if definition.field:
        channel["field"] = definition.field
    if definition.aggregate:
        channel["aggregate"] = definition.aggregate
    if definition.type:
        channel["type"] = definition.type
    if definition.title is not None:
        channel["title"] = definition.title
    if definition.scale is not None:
        scale: dict[str, Any] = {}
        if definition.scale.domain is not None:
            scale["domain"] = list(definition.scale.domain)
        if definition.scale.range is not None:
            scale["range"] = list(definition.scale.range)
        if definition.scale.zero is not None:
            scale["zero"] = definition.scale.zero
        channel["scale"] = scale
    channel.update(_plain(definition.options))

    if definition.conditions:
        conditions = []
        for rule in definition.conditions:
            condition: dict[str, Any] = {"param": rule.param, "value": rule.value}
            if not rule.empty:
                condition["empty"] = False
            conditions.append(condition)
        channel["condition"] = conditions[0] if len(conditions) == 1 else conditions
    if not definition.field and not definition.aggregate:
        channel["value"] = definition.value
    return channel


def _compile_tooltip(item: TooltipField) -> dict[str, Any]:
    tooltip: dict[str, Any] = {}
    if item.field:
        tooltip["field"] = item.field
    if item.aggregate:
        tooltip["aggregate"] = item.aggregate
    tooltip["type"] = item.type
    if item.title is not None:
        tooltip["title"] = item.title
    if item.format:
        tooltip["format"] = item.format
    return tooltip


def _check_panel(config: DashboardConfig, panel: Panel) -> list[str]:
    """Return render problems for a panel (field references and scales)."""

    problems: list[str] = []
    for channel, definition in panel.encoding.items():
        scale = definition.scale
        if scale is not None and scale.domain is not None and scale.range is not None:
            if len(scale.domain) != len(scale.range):
                problems.append(
                    f"Panel[{panel.id}].encoding.{channel} scale domain has {len(scale.domain)} entries "
                    f"but range has {len(scale.range)}."
                )

    source = config.source(panel.source)
    available = _available_fields(config, panel, source)
    if available is None:
        return problems

    referenced = [(f"encoding.{channel}", d.field) for channel, d in panel.encoding.items() if d.field]
    referenced.extend(("tooltip", item.field) for item in panel.tooltip if item.field)
    for where, field_name in referenced:
        if field_name not in available:
            problems.append(f"Panel[{panel.id}].{where} references unknown field {field_name!r}.")
    return problems


def _available_fields(config: DashboardConfig, panel: Panel, source: DataSource | None) -> set[str] | None:
    """Return fields a panel can encode, or None when the source declares no columns."""

    if source is None or not source.columns:
        return None
    available = set(source.columns)
    for transform in panel.transforms:
        if isinstance(transform, LookupJoin):
            available.update(transform.fields)
        elif isinstance(transform, RankWindow):
            available.add(transform.as_field)
        elif isinstance(transform, EngineTransform):
            available.update(transform.produces)
    return available


def _plain(options: Mapping[str, Any]) -> dict[str, Any]:
    return {key: dict(value) if isinstance(value, Mapping) else value for key, value in options.items()}
