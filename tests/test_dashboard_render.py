"""Unit tests for compiling dashboard configs into Vega-Lite documents."""

from __future__ import annotations

import json

import pytest

from core.charting.configs import SCHOOL_DASHBOARD, TOP_SCHOOLS_LIMIT
from core.charting.render import VEGA_LITE_SCHEMA, compile_dashboard
from linking.errors import RenderFailure
from linking.schema import (
    ChannelEncoding,
    DashboardConfig,
    DataSource,
    Panel,
    ScaleSpec,
    TooltipField,
)

pytestmark = pytest.mark.unit


def _panels(document: dict) -> dict[str, dict]:
    """Index compiled unit specs by name across sections and rows."""

    found: dict[str, dict] = {}

    def visit(node: object) -> None:
        if isinstance(node, dict):
            if "name" in node and "mark" in node:
                found[node["name"]] = node
            for key in ("vconcat", "hconcat"):
                for child in node.get(key, []):
                    visit(child)

    visit(document)
    return found


def test_compile_dashboard_lays_out_every_panel() -> None:
    """Every panel is placed once, grouped under its section."""

    document = compile_dashboard(SCHOOL_DASHBOARD)

    assert document["$schema"] == VEGA_LITE_SCHEMA
    assert document["data"] == {"url": "data/embeddings_cps_2d.csv"}
    assert [section["title"]["text"] for section in document["vconcat"]] == [
        "Embedding Space",
        "Interactive Analysis Views",
        "Additional Analysis Views",
    ]
    assert set(_panels(document)) == {panel.id for panel in SCHOOL_DASHBOARD.panels}
    json.dumps(document)


def test_top_schools_transforms_keep_declared_order() -> None:
    """Brush filter, rank window and rank cutoff compile in order."""

    spec = _panels(compile_dashboard(SCHOOL_DASHBOARD))["top_schools"]

    assert spec["transform"] == [
        {"filter": {"param": "embedding_brush"}},
        {"window": [{"op": "rank", "as": "rank"}], "sort": [{"field": "behavior_score", "order": "descending"}]},
        {"filter": f"datum.rank <= {TOP_SCHOOLS_LIMIT}"},
    ]
    assert spec["params"] == [{"name": "top_school_select", "select": {"type": "point", "fields": ["school"], "on": "click"}}]


def test_embedding_panel_compiles_brush_and_condition_lists() -> None:
    """Multiple conditions compile to an ordered list; single ones to a mapping."""

    spec = _panels(compile_dashboard(SCHOOL_DASHBOARD))["embedding"]

    assert spec["params"] == [{"name": "embedding_brush", "select": {"type": "interval", "encodings": ["x", "y"]}}]
    assert "transform" not in spec
    assert spec["encoding"]["opacity"] == {
        "condition": [
            {"param": "school_click", "value": 1},
            {"param": "level_click", "value": 1},
            {"param": "top_school_select", "value": 1},
        ],
        "value": 0.15,
    }
    assert spec["encoding"]["x"]["scale"] == {"zero": False}
    assert spec["encoding"]["color"]["scale"]["domain"] == ["ES", "MS", "HS"]


def test_map_panel_uses_its_own_source_and_lookup() -> None:
    """Panels on a non-default source carry their own data and join the embedding."""

    spec = _panels(compile_dashboard(SCHOOL_DASHBOARD))["map"]

    assert spec["data"] == {"url": "data/cps_spatial.csv"}
    assert spec["transform"][0] == {
        "lookup": "school",
        "from": {
            "data": {"url": "data/embeddings_cps_2d.csv"},
            "key": "school",
            "fields": ["x", "y", "behavior_score", "cluster", "outlier_score", "level"],
        },
    }
    assert spec["projection"] == {"type": "mercator"}
    assert spec["encoding"]["stroke"] == {"condition": {"param": "school_click", "value": "#000"}, "value": None}


def test_level_strip_compiles_toggle_selection() -> None:
    """Toggle point selections keep their toggle flag."""

    spec = _panels(compile_dashboard(SCHOOL_DASHBOARD))["misconduct_by_level"]

    assert spec["params"][0]["select"]["toggle"] is True


def test_aggregate_channels_do_not_emit_constant_values() -> None:
    """Count channels compile without a field and without a constant value."""

    spec = _panels(compile_dashboard(SCHOOL_DASHBOARD))["outlier_histogram"]

    assert spec["encoding"]["y"] == {"aggregate": "count", "type": "quantitative", "title": "Number of Schools"}
    assert spec["encoding"]["tooltip"] == [{"aggregate": "count", "type": "quantitative", "title": "Schools"}]
    assert spec["encoding"]["color"] == {"value": "#667eea"}


def _single_panel_config(**panel_kwargs: object) -> DashboardConfig:
    return DashboardConfig(
        id="broken",
        sources=(DataSource(name="rows", url="rows.csv", columns=("a", "b")),),
        panels=(Panel(id="only", title="Only", source="rows", mark="point", **panel_kwargs),),
    )


def test_unknown_field_raises_render_failure() -> None:
    """Encodings and tooltips may only reference fields the source provides."""

    config = _single_panel_config(
        encoding={"x": ChannelEncoding(field="a"), "y": ChannelEncoding(field="missing")},
        tooltip=(TooltipField(field="also_missing"),),
    )

    with pytest.raises(RenderFailure) as excinfo:
        compile_dashboard(config)
    assert "'missing'" in str(excinfo.value)
    assert "'also_missing'" in str(excinfo.value)


def test_scale_domain_and_range_mismatch_raises_render_failure() -> None:
    """Discrete scales need one range entry per domain entry."""

    config = _single_panel_config(
        encoding={"color": ChannelEncoding(field="a", scale=ScaleSpec(domain=("x", "y"), range=("#000",)))},
    )

    with pytest.raises(RenderFailure, match="scale domain has 2 entries"):
        compile_dashboard(config)


def test_config_without_sections_stacks_panels() -> None:
    """Without sections panels stack vertically in declared order."""

    config = _single_panel_config(encoding={"x": ChannelEncoding(field="a")})

    document = compile_dashboard(config)

    assert [spec["name"] for spec in document["vconcat"]] == ["only"]
    assert "data" not in document
    assert document["vconcat"][0]["data"] == {"url": "rows.csv"}


def test_selections_seed_initial_param_values() -> None:
    """Stored selections become param values; intervals are keyed by channel."""

    document = compile_dashboard(
        SCHOOL_DASHBOARD,
        selections={
            "embedding_brush": {"x": [0.0, 5.0]},
            "level_click": [{"level": "HS"}, {"level": "MS"}],
            "school_click": [],
        },
    )
    panels = _panels(document)

    assert panels["embedding"]["params"][0]["value"] == {"x": [0.0, 5.0]}
    assert panels["misconduct_by_level"]["params"][0]["value"] == [{"level": "HS"}, {"level": "MS"}]
    assert "value" not in panels["map"]["params"][0]
    assert "value" not in panels["top_schools"]["params"][0]
