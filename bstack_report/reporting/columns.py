"""Column projection: select, rename and default output fields per section."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from bstack_report.api_client.pagination import get_nested
from bstack_report.config.resolver import ColumnSpec

Row = Dict[str, Any]


def pick_columns(rows: Sequence[Row], columns: Optional[Sequence[ColumnSpec]]) -> List[Row]:
    """
    Project rows onto the given column specs.

    With no specs the rows pass through unchanged. Otherwise every output row
    has exactly the configured columns, in order; a value resolving to None
    (absent at any step of the dotted path) falls back to the column default,
    or "" when there is none.
    """
    if not columns:
        return list(rows)

    projected: List[Row] = []
    for row in rows:
        out: Row = {}
        for column in columns:
            value = get_nested(row, column.key)
            if value is None:
                value = "" if column.default is None else column.default
            out[column.output_name] = value
        projected.append(out)
    return projected
