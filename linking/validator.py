"""Validation for DashboardConfig definitions.

Dashboard configs wire panels together by parameter name, so a typo silently
turns a filter into a no-op. Validation is strict and fails fast: every
problem is reported at once so a broken config can be fixed in one pass.
"""

from __future__ import annotations

from dataclasses import dataclass

from .expressions import inspect_expression
from .schema import (
    DashboardConfig,
    EngineTransform,
    ExpressionFilter,
    LookupJoin,
    ParamFilter,
    Panel,
    RankWindow,
    SelectionParameter,
)


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Result of validating a dashboard config.

    Args:
        is_valid: True when no errors exist.
        errors: Fatal validation errors.
        warnings: Non-fatal findings (unused parameters, tolerated dangling references).
    """

    is_valid: bool
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()


def validate_dashboard_config(config: DashboardConfig, *, allow_dangling: bool = False) -> ValidationResult:
    """Validate panels, parameters and wiring of a dashboard config.

    Args:
        config: DashboardConfig to validate.
        allow_dangling: Report references to undeclared parameters as warnings
            instead of errors (they resolve as pass-all).

    Returns:
        ValidationResult containing errors and warnings.
    """

    errors: list[str] = []
    warnings: list[str] = []

    if not config.id.strip():
        errors.append("DashboardConfig.id must be a non-empty string.")
    if not config.panels:
        errors.append(f"DashboardConfig[{config.id}].panels must contain at least one panel.")

    source_names: set[str] = set()
    for source in config.sources:
        if source.name in source_names:
            errors.append(f"Duplicate DataSource.name: {source.name!r}.")
        source_names.add(source.name)
    if config.default_source is not None and config.default_source not in source_names:
        errors.append(f"DashboardConfig[{config.id}].default_source references unknown source {config.default_source!r}.")

    seen_panels: set[str] = set()
    for panel in config.panels:
        if panel.id in seen_panels:
            errors.append(f"Duplicate Panel.id: {panel.id!r}.")
        seen_panels.add(panel.id)
        _validate_panel(panel, source_names=source_names, errors=errors)

    declared = _validate_parameter_names(config, errors=errors)

    consumed: set[str] = set()
    for panel in config.panels:
        references = [(f.param, "filter") for f in panel.param_filters()]
        references.extend(
            (rule.param, f"encoding.{channel}.condition")
            for channel, encoding in panel.encoding.items()
            for rule in encoding.conditions
        )
        for name, usage in references:
            consumed.add(name)
            if name in declared:
                continue
            message = f"Panel[{panel.id}].{usage} references undeclared parameter {name!r}."
            if allow_dangling:
                warnings.append(f"{message} It will pass all rows.")
            else:
                errors.append(message)

    for name, (panel_id, _parameter) in sorted(declared.items()):
        if name not in consumed:
            warnings.append(f"Panel[{panel_id}] declares parameter {name!r} but no panel consumes it.")

    _validate_sections(config, panel_ids=seen_panels, errors=errors, warnings=warnings)

    return ValidationResult(is_valid=not errors, errors=tuple(errors), warnings=tuple(warnings))


def _validate_panel(panel: Panel, *, source_names: set[str], errors: list[str]) -> None:
    """Validate a single panel in isolation."""

    if not panel.id.strip():
        errors.append("Panel.id must be a non-empty string.")
    if not panel.title.strip():
        errors.append(f"Panel[{panel.id}].title must be a non-empty string.")
    if panel.source not in source_names:
        errors.append(f"Panel[{panel.id}].source references unknown data source {panel.source!r}.")

    for idx, transform in enumerate(panel.transforms):
        where = f"Panel[{panel.id}].transforms[{idx}]"
        if isinstance(transform, LookupJoin):
            if transform.source not in source_names:
                errors.append(f"{where} lookup references unknown data source {transform.source!r}.")
            if not transform.fields:
                errors.append(f"{where} lookup must copy at least one field.")
        elif isinstance(transform, RankWindow):
            if not transform.sort_field.strip():
                errors.append(f"{where} rank window requires a sort field.")
            if transform.order not in ("ascending", "descending"):
                errors.append(f"{where} rank window order is not supported: {transform.order!r}.")
        elif isinstance(transform, ExpressionFilter):
            inspection = inspect_expression(transform.expression)
            if not inspection.is_valid_syntax:
                errors.append(f"{where} expression must be valid syntax: {transform.expression!r}.")
            elif not inspection.is_safe:
                errors.append(f"{where} expression contains unsupported operations: {transform.expression!r}.")
        elif not isinstance(transform, (ParamFilter, EngineTransform)):
            errors.append(f"{where} is not a supported transform: {type(transform).__name__}.")

    for parameter in panel.params:
        _validate_parameter(panel, parameter, errors=errors)


def _validate_parameter(panel: Panel, parameter: SelectionParameter, *, errors: list[str]) -> None:
    """Validate a parameter against the panel that declares it."""

    where = f"Panel[{panel.id}].params[{parameter.name!r}]"
    if not parameter.name.strip():
        errors.append(f"Panel[{panel.id}] declares a parameter with an empty name.")
    if parameter.kind not in ("interval", "point"):
        errors.append(f"{where}.kind is not a supported value: {parameter.kind!r}.")
        return
    if parameter.kind == "point":
        if not parameter.fields:
            errors.append(f"{where} point selections require at least one field.")
        if parameter.encodings:
            errors.append(f"{where} point selections bind to fields, not encodings.")
        return

    if parameter.toggle:
        errors.append(f"{where} toggle is only supported for point selections.")
    if not parameter.fields and not parameter.encodings:
        errors.append(f"{where} interval selections require fields or encodings.")
    for channel in parameter.encodings:
        encoding = panel.encoding.get(channel)
        if encoding is None or not encoding.field:
            errors.append(f"{where} binds encoding {channel!r} but the panel has no field on that channel.")


def _validate_parameter_names(
    config: DashboardConfig,
    *,
    errors: list[str],
) -> dict[str, tuple[str, SelectionParameter]]:
    """Enforce globally unique parameter names and return the declarations."""

    declared: dict[str, tuple[str, SelectionParameter]] = {}
    for panel in config.panels:
        for parameter in panel.params:
            existing = declared.get(parameter.name)
            if existing is None:
                declared[parameter.name] = (panel.id, parameter)
                continue
            owner, first = existing
            if first.kind != parameter.kind:
                errors.append(
                    f"Parameter {parameter.name!r} is declared as {first.kind!r} by Panel[{owner}] "
                    f"and as {parameter.kind!r} by Panel[{panel.id}]."
                )
            else:
                errors.append(
                    f"Duplicate parameter name {parameter.name!r} declared by Panel[{owner}] and Panel[{panel.id}]."
                )
    return declared


def _validate_sections(
    config: DashboardConfig,
    *,
    panel_ids: set[str],
    errors: list[str],
    warnings: list[str],
) -> None:
    """Check that layout sections reference known panels."""

    if not config.sections:
        return
    placed: set[str] = set()
    for section in config.sections:
        for row in section.rows:
            for panel_id in row:
                if panel_id not in panel_ids:
                    errors.append(f"Section {section.title!r} references unknown panel {panel_id!r}.")
                elif panel_id in placed:
                    errors.append(f"Panel {panel_id!r} is placed more than once in the layout.")
                placed.add(panel_id)
    for panel_id in sorted(panel_ids - placed):
        warnings.append(f"Panel {panel_id!r} is not placed in any section and will not render.")
