"""Tests for row-level transforms: rank windows, lookups and coordinate checks."""

from __future__ import annotations

import pytest

from core.charting.configs import MAP_PANEL, SAFETY_BOX_PANEL
from linking.joins import lookup_join
from linking.schema import RankWindow
from linking.transforms import drop_invalid_coordinates, filter_expression, geo_fields, rank_rows

pytestmark = pytest.mark.unit


def test_rank_rows_orders_descending_and_shares_rank_for_ties() -> None:
    """Peers share a rank and the following value skips ahead."""

    rows = [
        {"school": "A", "score": 70.0},
        {"school": "B", "score": 90.0},
        {"school": "C", "score": 90.0},
        {"school": "D", "score": 50.0},
    ]

    ranked = rank_rows(rows, window=RankWindow(sort_field="score"))

    assert [(row["school"], row["rank"]) for row in ranked] == [("B", 1), ("C", 1), ("A", 3), ("D", 4)]
    assert "rank" not in rows[0]


def test_rank_rows_ascending_with_custom_output_field() -> None:
    """Ascending windows rank the smallest value first."""

    rows = [{"v": 3}, {"v": 1}, {"v": 2}]

    ranked = rank_rows(rows, window=RankWindow(sort_field="v", order="ascending", as_field="position"))

    assert [(row["v"], row["position"]) for row in ranked] == [(1, 1), (2, 2), (3, 3)]


def test_rank_rows_places_missing_values_last() -> None:
    """Rows without the sort field rank after every valued row."""

    rows = [{"school": "A"}, {"school": "B", "score": 1.0}, {"school": "C", "score": None}]

    ranked = rank_rows(rows, window=RankWindow(sort_field="score"))

    assert [(row["school"], row["rank"]) for row in ranked] == [("B", 1), ("A", 2), ("C", 2)]


def test_rank_then_expression_keeps_top_n_including_ties() -> None:
    """A rank cutoff keeps every row tied at the boundary."""

    rows = [{"score": value} for value in (10, 9, 9, 8, 7)]

    kept = filter_expression(rank_rows(rows, window=RankWindow(sort_field="score")), expression="datum.rank <= 2")

    assert [row["score"] for row in kept] == [10, 9, 9]


def test_lookup_join_drops_misses_and_copies_fields() -> None:
    """Unmatched left rows are dropped and matched rows receive lookup fields."""

    spatial = [
        {"school": "A", "lon": 1.0},
        {"school": "Z", "lon": 2.0},
        {"school": "B", "lon": 3.0},
    ]
    embedding = [
        {"school": "A", "x": 0.5, "level": "ES"},
        {"school": "B", "x": 1.5, "level": "HS"},
        {"school": "B", "x": 9.9, "level": "MS"},
    ]

    joined = lookup_join(spatial, embedding, key="school", fields=("x", "level"))

    assert joined == [
        {"school": "A", "lon": 1.0, "x": 0.5, "level": "ES"},
        {"school": "B", "lon": 3.0, "x": 1.5, "level": "HS"},
    ]
    assert spatial[0] == {"school": "A", "lon": 1.0}


def test_lookup_join_ignores_rows_without_a_key() -> None:
    """Rows with a null key never match."""

    joined = lookup_join([{"school": None}], [{"school": None, "x": 1}], key="school", fields=("x",))

    assert joined == []


def test_geo_fields_reads_longitude_and_latitude_channels() -> None:
    """Only panels with geo channels report coordinate fields."""

    assert geo_fields(MAP_PANEL) == ("lon", "lat")
    assert geo_fields(SAFETY_BOX_PANEL) == ()


def test_drop_invalid_coordinates() -> None:
    """Rows missing either coordinate are dropped; other panels keep every row."""

    rows = [{"lon": 1.0, "lat": 2.0}, {"lon": None, "lat": 2.0}, {"lon": 1.0}]

    assert drop_invalid_coordinates(rows, fields=("lon", "lat")) == [{"lon": 1.0, "lat": 2.0}]
    assert drop_invalid_coordinates(rows, fields=()) == rows
