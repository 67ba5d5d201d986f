"""Explicit producer -> consumers binding table.

Panels refer to selection parameters by name. The binding table resolves those
names once, when the dashboard is constructed, so interaction handling never
has to search panels for string matches.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType

from .errors import BindingError
from .schema import DashboardConfig, Panel, SelectionParameter
from .validator import validate_dashboard_config

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ParameterBinding:
    """Resolved wiring for one selection parameter.

    Args:
        parameter: The declared parameter.
        producer: Id of the panel that declares it.
        fields: Data fields the selection is tested against; interval
            encodings are projected onto the producer's channel fields.
        filter_consumers: Panels that filter rows on the parameter.
        condition_consumers: Panels with conditional encodings on the parameter.
    """

    parameter: SelectionParameter
    producer: str
    fields: tuple[str, ...]
    filter_consumers: tuple[str, ...]
    condition_consumers: tuple[str, ...]

    @property
    def consumers(self) -> tuple[str, ...]:
        """Every panel that must re-evaluate when the parameter changes."""

        ordered = dict.fromkeys(self.filter_consumers + self.condition_consumers)
        return tuple(ordered)


@dataclass(frozen=True, slots=True)
class BindingTable:
    """Validated bindings for every parameter of a dashboard.

    Args:
        bindings: Parameter name to binding.
        dangling: (panel id, parameter name) references to undeclared
            parameters, tolerated only in permissive mode.
        warnings: Non-fatal validation findings.
    """

    bindings: Mapping[str, ParameterBinding]
    dangling: tuple[tuple[str, str], ...] = ()
    warnings: tuple[str, ...] = ()

    def get(self, name: str) -> ParameterBinding | None:
        """Return a binding by parameter name, or None when undeclared."""

        return self.bindings.get(name)

    def consumers_of(self, name: str) -> tuple[str, ...]:
        """Return the panels consuming a parameter (empty when undeclared)."""

        binding = self.bindings.get(name)
        return binding.consumers if binding is not None else ()

    def names(self) -> tuple[str, ...]:
        """Return declared parameter names in a stable order."""

        return tuple(sorted(self.bindings))


def build_binding_table(config: DashboardConfig, *, strict: bool = True) -> BindingTable:
    """Validate a dashboard and build its binding table.

    Args:
        config: DashboardConfig to bind.
        strict: Reject references to undeclared parameters. When False those
            references are recorded as dangling and resolve as pass-all.

    Returns:
        BindingTable for the dashboard.

    Raises:
        BindingError: When validation reports errors. Duplicate parameter
            names fail in both modes.
    """

    result = validate_dashboard_config(config, allow_dangling=not strict)
    if not result.is_valid:
        raise BindingError(result.errors)

    declared: dict[str, tuple[Panel, SelectionParameter]] = {}
    for panel in config.panels:
        for parameter in panel.params:
            declared[parameter.name] = (panel, parameter)

    filter_consumers: dict[str, list[str]] = {name: [] for name in declared}
    condition_consumers: dict[str, list[str]] = {name: [] for name in declared}
    dangling: list[tuple[str, str]] = []
    for panel in config.panels:
        for param_filter in panel.param_filters():
            if param_filter.param in declared:
                _append_once(filter_consumers[param_filter.param], panel.id)
            else:
                _append_once(dangling, (panel.id, param_filter.param))
        for name in sorted(panel.condition_params()):
            if name in declared:
                _append_once(condition_consumers[name], panel.id)
            else:
                _append_once(dangling, (panel.id, name))

    for panel_id, name in dangling:
        logger.warning("panel %r references undeclared parameter %r; treating as pass-all", panel_id, name)

    bindings = {
        name: ParameterBinding(
            parameter=parameter,
            producer=producer.id,
            fields=_projected_fields(producer, parameter),
            filter_consumers=tuple(filter_consumers[name]),
            condition_consumers=tuple(condition_consumers[name]),
        )
        for name, (producer, parameter) in declared.items()
    }
    return BindingTable(
        bindings=MappingProxyType(bindings),
        dangling=tuple(dangling),
        warnings=result.warnings,
    )


def _projected_fields(producer: Panel, parameter: SelectionParameter) -> tuple[str, ...]:
    """Return the data fields a parameter tests, resolving encoding channels."""

    fields = list(parameter.fields)
    for channel in parameter.encodings:
        encoding = producer.encoding.get(channel)
        if encoding is not None and encoding.field and encoding.field not in fields:
            fields.append(encoding.field)
    return tuple(fields)


def _append_once(items: list, item: object) -> None:
    if item not in items:
        items.append(item)
