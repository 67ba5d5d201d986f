"""Built-in DashboardConfig for the school statistics dashboard."""

from __future__ import annotations

from typing import Final

from linking.binding import BindingTable, build_binding_table
from linking.schema import (
    ChannelEncoding,
    ConditionRule,
    DashboardConfig,
    DashboardSection,
    DataSource,
    EngineTransform,
    ExpressionFilter,
    LookupJoin,
    ParamFilter,
    Panel,
    RankWindow,
    ScaleSpec,
    SelectionParameter,
    TooltipField,
)

EMBEDDINGS: Final[str] = "embeddings"
SPATIAL: Final[str] = "spatial"

EMBEDDING_COLUMNS: Final[tuple[str, ...]] = (
    "school",
    "x",
    "y",
    "level",
    "cluster",
    "behavior_score",
    "outlier_score",
    "safety",
    "attendance",
    "misconduct",
    "instr",
)
SPATIAL_COLUMNS: Final[tuple[str, ...]] = ("school", "lon", "lat")

LEVEL_SCALE: Final[ScaleSpec] = ScaleSpec(domain=("ES", "MS", "HS"), range=("#1f77b4", "#ff7f0e", "#d62728"))
BEHAVIOR_SCALE: Final[ScaleSpec] = ScaleSpec(domain=(0, 50, 100), range=("#d62728", "#ffeda0", "#31a354"))

TOP_SCHOOLS_LIMIT: Final[int] = 15


def _level_color(*, legend: bool = False) -> ChannelEncoding:
    return ChannelEncoding(
        field="level",
        type="nominal",
        title="School Level" if legend else None,
        scale=LEVEL_SCALE,
        options={} if legend else {"legend": None},
    )


def _behavior_color() -> ChannelEncoding:
    return ChannelEncoding(field="behavior_score", type="quantitative", title="Behavior Score", scale=BEHAVIOR_SCALE)


def _quantitative(field: str, title: str, *, zero: bool | None = None) -> ChannelEncoding:
    scale = ScaleSpec(zero=zero) if zero is not None else None
    return ChannelEncoding(field=field, type="quantitative", title=title, scale=scale)


def _level_axis() -> ChannelEncoding:
    return ChannelEncoding(field="level", type="nominal", title="School Level", options={"axis": {"labelAngle": 0}})


BRUSHED: Final[ParamFilter] = ParamFilter("embedding_brush")
LEVEL_FILTER: Final[ParamFilter] = ParamFilter("level_click")

SCHOOL_TOOLTIP: Final[TooltipField] = TooltipField(field="school", type="nominal", title="School")
LEVEL_TOOLTIP: Final[TooltipField] = TooltipField(field="level", type="nominal", title="Level")


EMBEDDING_PANEL: Final[Panel] = Panel(
    id="embedding",
    title="Embedding Space: School Similarity Explorer",
    subtitle="Drag to select schools | Responds to all selections from other views",
    source=EMBEDDINGS,
    mark="circle",
    width=900,
    height=450,
    mark_options={"size": 100, "cursor": "pointer"},
    params=(SelectionParameter(name="embedding_brush", kind="interval", encodings=("x", "y")),),
    encoding={
        "x": _quantitative("x", "PC1 (Primary Variation)", zero=False),
        "y": _quantitative("y", "PC2 (Secondary Variation)", zero=False),
        "color": _level_color(legend=True),
        "opacity": ChannelEncoding(
            conditions=(
                ConditionRule("school_click", 1),
                ConditionRule("level_click", 1),
                ConditionRule("top_school_select", 1),
            ),
            value=0.15,
        ),
        "strokeWidth": ChannelEncoding(
            conditions=(ConditionRule("school_click", 3), ConditionRule("top_school_select", 3)),
            value=0,
        ),
        "stroke": ChannelEncoding(
            conditions=(ConditionRule("school_click", "#000"), ConditionRule("top_school_select", "#e74c3c")),
            value=None,
        ),
    },
    tooltip=(
        SCHOOL_TOOLTIP,
        LEVEL_TOOLTIP,
        TooltipField(field="cluster", type="nominal", title="Cluster"),
        TooltipField(field="behavior_score", type="quantitative", title="Behavior Score", format=".1f"),
        TooltipField(field="outlier_score", type="quantitative", title="Outlier Score", format=".1f"),
        TooltipField(field="safety", type="quantitative", title="Safety", format=".1f"),
        TooltipField(field="attendance", type="quantitative", title="Attendance", format=".1f"),
    ),
)

TOP_SCHOOLS_PANEL: Final[Panel] = Panel(
    id="top_schools",
    title="Top Schools by Behavior Score",
    subtitle="Click any bar to highlight that school in the embedding",
    source=EMBEDDINGS,
    mark="bar",
    mark_options={"cursor": "pointer"},
    params=(SelectionParameter(name="top_school_select", kind="point", fields=("school",), on="click"),),
    transforms=(
        BRUSHED,
        RankWindow(sort_field="behavior_score", order="descending", as_field="rank"),
        ExpressionFilter(f"datum.rank <= {TOP_SCHOOLS_LIMIT}"),
    ),
    encoding={
        "y": ChannelEncoding(
            field="school",
            type="nominal",
            options={
                "title": None,
                "sort": {"field": "behavior_score", "order": "descending"},
                "axis": {"labelLimit": 200},
            },
        ),
        "x": _quantitative("behavior_score", "Behavior Score"),
        "color": _level_color(),
        "opacity": ChannelEncoding(conditions=(ConditionRule("top_school_select", 1),), value=0.6),
    },
    tooltip=(
        SCHOOL_TOOLTIP,
        LEVEL_TOOLTIP,
        TooltipField(field="behavior_score", type="quantitative", title="Score", format=".1f"),
        TooltipField(field="safety", type="quantitative", title="Safety", format=".1f"),
        TooltipField(field="attendance", type="quantitative", title="Attendance", format=".1f"),
    ),
)

MISCONDUCT_STRIP_PANEL: Final[Panel] = Panel(
    id="misconduct_by_level",
    title="Misconduct Distribution by School Level",
    subtitle="Click any level (ES/MS/HS) to filter the embedding",
    source=EMBEDDINGS,
    mark="circle",
    mark_options={"size": 100, "cursor": "pointer"},
    params=(SelectionParameter(name="level_click", kind="point", fields=("level",), on="click", toggle=True),),
    transforms=(BRUSHED,),
    encoding={
        "x": _level_axis(),
        "y": _quantitative("misconduct", "Misconduct per 100 Students"),
        "xOffset": ChannelEncoding(field="school", type="nominal"),
        "color": _level_color(),
        "opacity": ChannelEncoding(conditions=(ConditionRule("level_click", 1),), value=0.2),
    },
    tooltip=(
        SCHOOL_TOOLTIP,
        LEVEL_TOOLTIP,
        TooltipField(field="misconduct", type="quantitative", title="Misconduct", format=".2f"),
    ),
)

MAP_PANEL: Final[Panel] = Panel(
    id="map",
    title="Geographic Distribution",
    subtitle="Click any school on the map to highlight it in the embedding",
    source=SPATIAL,
    mark="circle",
    mark_options={"size": 80, "opacity": 0.8, "cursor": "pointer"},
    params=(SelectionParameter(name="school_click", kind="point", fields=("school",), on="click"),),
    transforms=(
        LookupJoin(
            key="school",
            source=EMBEDDINGS,
            fields=("x", "y", "behavior_score", "cluster", "outlier_score", "level"),
        ),
        BRUSHED,
    ),
    encoding={
        "longitude": ChannelEncoding(field="lon", type="quantitative"),
        "latitude": ChannelEncoding(field="lat", type="quantitative"),
        "color": _behavior_color(),
        "strokeWidth": ChannelEncoding(conditions=(ConditionRule("school_click", 3),), value=0),
        "stroke": ChannelEncoding(conditions=(ConditionRule("school_click", "#000"),), value=None),
    },
    tooltip=(
        SCHOOL_TOOLTIP,
        LEVEL_TOOLTIP,
        TooltipField(field="cluster", type="nominal", title="Cluster"),
        TooltipField(field="behavior_score", type="quantitative", title="Behavior Score", format=".1f"),
    ),
    projection="mercator",
)

SAFETY_BOX_PANEL: Final[Panel] = Panel(
    id="safety_by_level",
    title="Context: Safety Score Distribution by Level",
    subtitle="Box plots show median, quartiles, outliers",
    source=EMBEDDINGS,
    mark="boxplot",
    mark_options={"extent": "min-max"},
    transforms=(BRUSHED, LEVEL_FILTER),
    encoding={
        "x": _level_axis(),
        "y": _quantitative("safety", "Safety Score", zero=False),
        "color": _level_color(),
    },
)

SAFETY_ATTENDANCE_PANEL: Final[Panel] = Panel(
    id="safety_vs_attendance",
    title="Behavioral Performance: Safety vs Attendance",
    subtitle="Circle size = misconduct level",
    source=EMBEDDINGS,
    mark="circle",
    height=300,
    mark_options={"size": 100},
    transforms=(BRUSHED, LEVEL_FILTER, ParamFilter("school_click")),
    encoding={
        "x": _quantitative("attendance", "Attendance (%)", zero=False),
        "y": _quantitative("safety", "Safety Score", zero=False),
        "color": _behavior_color(),
        "size": ChannelEncoding(
            field="misconduct",
            type="quantitative",
            title="Misconduct",
            scale=ScaleSpec(range=(50, 400)),
        ),
    },
    tooltip=(
        SCHOOL_TOOLTIP,
        LEVEL_TOOLTIP,
        TooltipField(field="behavior_score", type="quantitative", title="Behavior Score", format=".1f"),
        TooltipField(field="safety", type="quantitative", title="Safety", format=".1f"),
        TooltipField(field="attendance", type="quantitative", title="Attendance", format=".1f"),
    ),
)

OUTLIER_HISTOGRAM_PANEL: Final[Panel] = Panel(
    id="outlier_histogram",
    title="Outlier Detection Histogram",
    subtitle="Schools statistically different from neighbors",
    source=EMBEDDINGS,
    mark="bar",
    height=300,
    transforms=(BRUSHED,),
    encoding={
        "x": ChannelEncoding(
            field="outlier_score",
            type="quantitative",
            title="Outlier Score",
            options={"bin": {"maxbins": 20}},
        ),
        "y": ChannelEncoding(aggregate="count", type="quantitative", title="Number of Schools"),
        "color": ChannelEncoding(value="#667eea"),
    },
    tooltip=(TooltipField(field=None, type="quantitative", title="Schools", aggregate="count"),),
)

MISCONDUCT_INSTRUCTION_PANEL: Final[Panel] = Panel(
    id="misconduct_vs_instruction",
    title="Misconduct vs Academic Quality",
    subtitle="Correlation analysis",
    source=EMBEDDINGS,
    mark="point",
    height=300,
    mark_options={"filled": True, "size": 80},
    transforms=(BRUSHED, LEVEL_FILTER),
    encoding={
        "x": _quantitative("misconduct", "Misconduct per 100 Students", zero=False),
        "y": _quantitative("instr", "Instruction Quality", zero=False),
        "color": _level_color(),
        "shape": ChannelEncoding(field="level", type="nominal"),
    },
    tooltip=(
        SCHOOL_TOOLTIP,
        LEVEL_TOOLTIP,
        TooltipField(field="misconduct", type="quantitative", title="Misconduct", format=".2f"),
        TooltipField(field="instr", type="quantitative", title="Instruction", format=".1f"),
    ),
)

BEHAVIOR_DENSITY_PANEL: Final[Panel] = Panel(
    id="behavior_density",
    title="Behavior Score Density Distribution",
    subtitle="Smooth density curve",
    source=EMBEDDINGS,
    mark="area",
    height=300,
    transforms=(
        BRUSHED,
        LEVEL_FILTER,
        EngineTransform(
            spec={"density": "behavior_score", "bandwidth": 5, "as": ["value", "density"]},
            produces=("value", "density"),
        ),
    ),
    encoding={
        "x": _quantitative("value", "Behavior Score"),
        "y": _quantitative("density", "Density"),
        "fill": ChannelEncoding(value="#667eea"),
        "fillOpacity": ChannelEncoding(value=0.6),
    },
)


SCHOOL_DASHBOARD: Final[DashboardConfig] = DashboardConfig(
    id="school_statistics",
    sources=(
        DataSource(name=EMBEDDINGS, url="data/embeddings_cps_2d.csv", key="school", columns=EMBEDDING_COLUMNS),
        DataSource(name=SPATIAL, url="data/cps_spatial.csv", key="school", columns=SPATIAL_COLUMNS),
    ),
    panels=(
        EMBEDDING_PANEL,
        TOP_SCHOOLS_PANEL,
        MISCONDUCT_STRIP_PANEL,
        MAP_PANEL,
        SAFETY_BOX_PANEL,
        SAFETY_ATTENDANCE_PANEL,
        OUTLIER_HISTOGRAM_PANEL,
        MISCONDUCT_INSTRUCTION_PANEL,
        BEHAVIOR_DENSITY_PANEL,
    ),
    sections=(
        DashboardSection(title="Embedding Space", rows=(("embedding",),)),
        DashboardSection(
            title="Interactive Analysis Views",
            rows=(
                ("top_schools", "misconduct_by_level"),
                ("map", "safety_by_level"),
            ),
        ),
        DashboardSection(
            title="Additional Analysis Views",
            rows=(
                ("safety_vs_attendance", "outlier_histogram"),
                ("misconduct_vs_instruction", "behavior_density"),
            ),
        ),
    ),
    default_source=EMBEDDINGS,
)


SCHOOL_BINDINGS: Final[BindingTable] = build_binding_table(SCHOOL_DASHBOARD, strict=True)
