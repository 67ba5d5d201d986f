"""Load dashboard data sources from CSV files.

Rows are read into plain dicts so the linking layer can resolve panel subsets
without Django. Numeric-looking cells become floats. Empty cells and
non-finite numbers (`NaN`, `inf`) become None. Every other cell is kept as a
string.
"""

from __future__ import annotations

import csv
import logging
import math
from pathlib import Path
from typing import Any

from django.conf import settings

from linking.schema import DashboardConfig, DataSource

logger = logging.getLogger(__name__)


def data_dir() -> Path:
    """Return the configured data directory."""

    return Path(settings.SCHOOLVIZ_DATA_DIR)


def source_path(source: DataSource) -> Path:
    """Return the file path for a data source, relative to the data directory."""

    return data_dir() / Path(source.url).name


def load_source(source: DataSource) -> list[dict[str, Any]]:
    """Read a data source into a list of row dicts.

    Raises:
        FileNotFoundError: When the CSV is missing.
    """

    path = source_path(source)
    with path.open(newline="", encoding="utf-8") as handle:
        rows = [{key: _parse_cell(value) for key, value in row.items() if key} for row in csv.DictReader(handle)]
    logger.debug("loaded %d rows for source %r from %s", len(rows), source.name, path)
    return rows


def load_tables(config: DashboardConfig) -> dict[str, list[dict[str, Any]]]:
    """Load every data source of a dashboard keyed by source name."""

    return {source.name: load_source(source) for source in config.sources}


def _parse_cell(value: str | None) -> Any:
    if value is None:
        return None
    stripped = value.strip()
    if not stripped:
        return None
    try:
        number = float(stripped)
    except ValueError:
        return stripped
    return number if math.isfinite(number) else None
