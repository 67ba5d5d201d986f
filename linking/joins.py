"""Key lookups between data sources."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from .schema import Row

logger = logging.getLogger(__name__)


def lookup_join(
    rows: Iterable[Row],
    lookup_rows: Iterable[Row],
    *,
    key: str,
    fields: tuple[str, ...],
) -> list[dict[str, object]]:
    """Left-join `rows` to `lookup_rows` by `key`, dropping rows without a match.

    Matched rows receive copies of `fields` from the lookup row; values already
    present on the left row are overwritten. Inputs are never mutated, so
    repeated calls with unchanged tables return equal results.

    Args:
        rows: Left-hand rows (for example the spatial table).
        lookup_rows: Rows to look keys up in (for example the embedding table).
        key: Key field present in both tables.
        fields: Fields copied from the matched lookup row.

    Returns:
        Joined rows in the order of `rows`.
    """

    index: dict[object, Row] = {}
    for lookup_row in lookup_rows:
        value = lookup_row.get(key)
        if value is None or value in index:
            continue
        index[value] = lookup_row

    joined: list[dict[str, object]] = []
    misses = 0
    for row in rows:
        match = index.get(row.get(key))
        if match is None:
            misses += 1
            continue
        merged = dict(row)
        for name in fields:
            merged[name] = match.get(name)
        joined.append(merged)

    if misses:
        logger.debug("lookup on %r dropped %d unmatched rows", key, misses)
    return joined
