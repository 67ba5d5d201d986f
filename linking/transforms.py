"""Row-level transforms applied by a panel's pipeline.

Only the transforms that decide *which* rows a panel hands to the renderer are
evaluated here. Statistical transforms (density, bin, aggregate) remain owned
by the renderer and pass through as `EngineTransform` values.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from .expressions import evaluate_expression
from .schema import GEO_CHANNELS, Panel, RankWindow, Row


def rank_rows(rows: Iterable[Row], *, window: RankWindow) -> list[dict[str, object]]:
    """Rank rows by the window's sort field.

    Peers share a rank and the next distinct value skips ahead by the number of
    peers. Rows missing the sort field are ranked after every valued row.

    Returns:
        Copies of the rows in rank order with `window.as_field` populated.
    """

    valued: list[dict[str, object]] = []
    missing: list[dict[str, object]] = []
    for row in rows:
        target = valued if row.get(window.sort_field) is not None else missing
        target.append(dict(row))

    valued.sort(key=lambda r: r[window.sort_field], reverse=window.order == "descending")

    ranked: list[dict[str, object]] = []
    previous: object = object()
    rank = 0
    for position, row in enumerate(valued, start=1):
        value = row[window.sort_field]
        if value != previous:
            rank = position
            previous = value
        row[window.as_field] = rank
        ranked.append(row)

    tail_rank = len(valued) + 1
    for row in missing:
        row[window.as_field] = tail_rank
        ranked.append(row)
    return ranked


def filter_expression(rows: Iterable[Row], *, expression: str) -> list[Row]:
    """Keep rows for which the expression evaluates truthy."""

    return [row for row in rows if evaluate_expression(expression, row)]


def geo_fields(panel: Panel) -> tuple[str, ...]:
    """Return the fields bound to the panel's longitude/latitude channels."""

    fields: list[str] = []
    for channel in GEO_CHANNELS:
        encoding = panel.encoding.get(channel)
        if encoding is not None and encoding.field:
            fields.append(encoding.field)
    return tuple(fields)


def drop_invalid_coordinates(rows: Sequence[Row], *, fields: tuple[str, ...]) -> list[Row]:
    """Drop rows whose coordinate fields are missing."""

    if not fields:
        return list(rows)
    return [row for row in rows if all(row.get(name) is not None for name in fields)]
