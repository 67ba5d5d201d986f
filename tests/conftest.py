"""Pytest fixtures shared across linking and Django tests."""

from __future__ import annotations

import csv
from collections.abc import Sequence
from pathlib import Path

import pytest

from core.charting.configs import EMBEDDINGS, SCHOOL_DASHBOARD, SPATIAL
from linking.session import DashboardSession

LEVELS = ("ES", "MS", "HS")


def make_embedding_rows(count: int = 24) -> list[dict[str, object]]:
    """Build deterministic embedding rows.

    School ``S01`` has the highest behavior score and scores fall by 3 per
    school. ``x`` cycles through 0..7 and ``y`` through -2..2.
    """

    rows: list[dict[str, object]] = []
    for i in range(count):
        rows.append(
            {
                "school": f"S{i + 1:02d}",
                "x": float(i % 8),
                "y": float((i % 5) - 2),
                "level": LEVELS[i % 3],
                "cluster": f"C{i % 4}",
                "behavior_score": 100.0 - 3 * i,
                "outlier_score": float(i % 6),
                "safety": 40.0 + i,
                "attendance": 80.0 + (i % 10),
                "misconduct": float(i % 7),
                "instr": 50.0 + (i % 9),
            }
        )
    return rows


def make_spatial_rows(schools: Sequence[str]) -> list[dict[str, object]]:
    """Build spatial rows for the given schools plus one school missing from the embedding."""

    rows: list[dict[str, object]] = [
        {"school": school, "lon": -87.6 - idx * 0.01, "lat": 41.8 + idx * 0.01} for idx, school in enumerate(schools)
    ]
    rows.append({"school": "SPATIAL_ONLY", "lon": -87.7, "lat": 41.9})
    return rows


@pytest.fixture
def embedding_rows() -> list[dict[str, object]]:
    return make_embedding_rows()


@pytest.fixture
def school_tables(embedding_rows) -> dict[str, list[dict[str, object]]]:
    """Return rows for both data sources of the school dashboard."""

    schools = [str(row["school"]) for row in embedding_rows[:10]]
    return {EMBEDDINGS: embedding_rows, SPATIAL: make_spatial_rows(schools)}


@pytest.fixture
def school_session() -> DashboardSession:
    """Return a fresh selection session for the built-in dashboard."""

    return DashboardSession(SCHOOL_DASHBOARD)


@pytest.fixture
def data_dir(tmp_path: Path, settings, school_tables) -> Path:
    """Write the school tables as CSV files and point settings at them."""

    for source in SCHOOL_DASHBOARD.sources:
        rows = school_tables[source.name]
        path = tmp_path / Path(source.url).name
        with path.open("w", newline="", encoding="utf-8") as handle:
            writer = csv.DictWriter(handle, fieldnames=list(rows[0].keys()))
            writer.writeheader()
            writer.writerows(rows)
    settings.SCHOOLVIZ_DATA_DIR = tmp_path
    return tmp_path


def pytest_collection_modifyitems(items: Sequence[pytest.Item]) -> None:
    """Enforce that every test has exactly one speed marker.

    The suite must be runnable by intent:
    - `unit`: pure, fast tests with no Django request cycle or file IO.
    - `integration`: tests touching Django views, commands, settings, or files.

    Each test must have exactly one of these markers.
    """

    invalid: list[str] = []
    for item in items:
        has_unit = item.get_closest_marker("unit") is not None
        has_integration = item.get_closest_marker("integration") is not None
        if has_unit == has_integration:
            markers = []
            if has_unit:
                markers.append("unit")
            if has_integration:
                markers.append("integration")
            invalid.append(f"{item.nodeid} (markers={markers or 'none'})")

    if invalid:
        joined = "\n".join(f"- {nodeid}" for nodeid in invalid)
        raise pytest.UsageError(
            "Each test must have exactly one speed marker: `@pytest.mark.unit` or "
            "`@pytest.mark.integration`.\n"
            f"Offending tests:\n{joined}"
        )
