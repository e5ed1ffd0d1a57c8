"""
Filter & sort pipeline.

Rows are kept when every keyword clause (project, team, person) and the time
window clause pass. Missing data never drops a row: an empty keyword list
passes everything, and a row with no usable timestamp passes the time window.
Sorting is by the latest available timestamp, newest first, rows without one
last.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

from bstack_report.config.resolver import FiltersConfig, is_placeholder_value
from bstack_report.text import safe_join
from bstack_report.timeutil import cutoff_for_days, row_timestamps

Row = Dict[str, Any]

NO_TIMESTAMP = float("-inf")


@dataclass(frozen=True)
class SectionRules:
    """Which row fields feed each filter clause and the sort order for a section."""

    date_keys: Sequence[str]
    project_keys: Sequence[str]
    team_keys: Sequence[str]
    people_keys: Sequence[str]
    sort_keys: Sequence[str]


SECTION_RULES: Dict[str, SectionRules] = {
    "builds": SectionRules(
        date_keys=("started_at", "finished_at"),
        project_keys=("build_name", "original_build_name", "tags"),
        team_keys=("tags", "build_name"),
        people_keys=("user", "tags"),
        sort_keys=("finished_at", "started_at"),
    ),
    "tests": SectionRules(
        date_keys=("build_started_at", "build_finished_at", "finished_at"),
        project_keys=("source_build_name", "root_scope", "test_tags"),
        team_keys=("test_tags", "root_scope"),
        people_keys=("test_tags", "test_name", "scope_path"),
        sort_keys=("build_finished_at", "build_started_at", "finished_at"),
    ),
    "sessions": SectionRules(
        date_keys=("session_created_at", "app_uploaded_at"),
        project_keys=("project_name", "build_name", "session_name"),
        team_keys=("project_name", "session_name"),
        people_keys=("session_name", "project_name", "build_name"),
        sort_keys=("session_started_at", "session_created_at", "session_finished_at", "app_uploaded_at"),
    ),
    "apps": SectionRules(
        date_keys=("uploaded_at",),
        project_keys=("custom_id", "shareable_id", "app_name"),
        team_keys=("custom_id", "shareable_id"),
        people_keys=("shareable_id", "custom_id"),
        sort_keys=("uploaded_at",),
    ),
}


def normalize_terms(values: Optional[Sequence[str]]) -> List[str]:
    """Trim keywords and drop empty or placeholder entries."""
    terms = (str(v).strip() for v in values or ())
    return [t for t in terms if t and not is_placeholder_value(t)]


def match_any_term(text: str, terms: Sequence[str], case_sensitive: bool) -> bool:
    """True if no terms are given or any term is a substring of text."""
    if not terms:
        return True
    if case_sensitive:
        return any(term in text for term in terms)
    haystack = text.lower()
    return any(term.lower() in haystack for term in terms)


def is_within_days(
    row: Mapping[str, Any],
    date_keys: Sequence[str],
    days: Optional[float],
    now: Optional[datetime] = None,
) -> bool:
    """True if days is unset, the row has no usable timestamp, or any timestamp is recent enough."""
    if not days:
        return True
    stamps = row_timestamps(row, date_keys)
    if not stamps:
        return True
    cutoff = cutoff_for_days(days, now)
    return any(stamp >= cutoff for stamp in stamps)


def apply_filters(
    rows: Sequence[Row],
    rules: SectionRules,
    *,
    days: Optional[float] = None,
    projects: Optional[Sequence[str]] = None,
    teams: Optional[Sequence[str]] = None,
    people: Optional[Sequence[str]] = None,
    case_sensitive: bool = False,
    now: Optional[datetime] = None,
) -> List[Row]:
    """Return the rows passing all four filter clauses, order preserved."""
    project_terms = normalize_terms(projects)
    team_terms = normalize_terms(teams)
    people_terms = normalize_terms(people)

    def keep(row: Row) -> bool:
        return (
            match_any_term(safe_join(row.get(k) for k in rules.project_keys), project_terms, case_sensitive)
            and match_any_term(safe_join(row.get(k) for k in rules.team_keys), team_terms, case_sensitive)
            and match_any_term(safe_join(row.get(k) for k in rules.people_keys), people_terms, case_sensitive)
            and is_within_days(row, rules.date_keys, days, now)
        )

    return [row for row in rows if keep(row)]


def latest_timestamp(row: Mapping[str, Any], keys: Sequence[str]) -> float:
    """Maximum parseable timestamp among keys, or a sentinel below any real value."""
    stamps = row_timestamps(row, keys)
    return max(stamps) if stamps else NO_TIMESTAMP


def sort_rows_by_date_desc(rows: Sequence[Row], keys: Sequence[str]) -> List[Row]:
    """Stable sort, newest first; rows without a timestamp go last."""
    return sorted(rows, key=lambda row: latest_timestamp(row, keys), reverse=True)


def filter_and_sort_sections(
    sections: Mapping[str, Sequence[Row]],
    filters: FiltersConfig,
    now: Optional[datetime] = None,
) -> Dict[str, List[Row]]:
    """
    Filter then sort each known section with its own rules.

    The app inventory only honours the day window when ``applyDaysToApps`` is set.
    Sections without rules pass through unchanged.
    """
    result: Dict[str, List[Row]] = {}
    for name, rows in sections.items():
        rules = SECTION_RULES.get(name)
        if rules is None:
            result[name] = list(rows)
            continue
        days = filters.days
        if name == "apps" and not filters.apply_days_to_apps:
            days = None
        filtered = apply_filters(
            rows,
            rules,
            days=days,
            projects=filters.projects,
            teams=filters.teams,
            people=filters.people,
            case_sensitive=filters.case_sensitive,
            now=now,
        )
        result[name] = sort_rows_by_date_desc(filtered, rules.sort_keys)
    return result
