"""Text helpers shared by the collectors, filters and renderers."""

from __future__ import annotations

from typing import Any, Iterable


def cell_text(value: Any) -> str:
    """Render a scalar row value as text ("" for None, lowercase booleans)."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def safe_join(values: Iterable[Any], delimiter: str = ", ") -> str:
    """Join the non-empty, stripped text of the given values."""
    parts = (cell_text(v).strip() for v in values if v is not None)
    return delimiter.join(p for p in parts if p)
