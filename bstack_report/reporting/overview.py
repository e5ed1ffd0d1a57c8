"""Overview metrics computed from the final row collections."""

from __future__ import annotations

from typing import Any, Dict, List, Sequence

Row = Dict[str, Any]


def _status_counts(rows: Sequence[Row], key: str) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for row in rows:
        value = row.get(key)
        status = "unknown" if value is None or value == "" else str(value)
        counts[status] = counts.get(status, 0) + 1
    return counts


def create_overview_rows(
    builds: Sequence[Row],
    tests: Sequence[Row],
    sessions: Sequence[Row],
) -> List[Row]:
    """
    Build the overview section as metric/value rows.

    ``total_builds`` counts distinct build IDs across builds, tests (via
    ``source_build_id``) and sessions. Status metrics follow the totals in
    first-seen order, tests before sessions.
    """
    build_ids = set()
    for rows, key in ((builds, "build_id"), (tests, "source_build_id"), (sessions, "build_id")):
        for row in rows:
            build_id = str(row.get(key) or "").strip()
            if build_id:
                build_ids.add(build_id)

    overview: List[Row] = [
        {"metric": "total_builds", "value": len(build_ids)},
        {"metric": "total_tests", "value": len(tests)},
        {"metric": "total_sessions", "value": len(sessions)},
    ]
    overview.extend(
        {"metric": f"tests_{status}", "value": count}
        for status, count in _status_counts(tests, "test_status").items()
    )
    overview.extend(
        {"metric": f"sessions_{status}", "value": count}
        for status, count in _status_counts(sessions, "session_status").items()
    )
    return overview
