"""
Build discovery.

When a source is enabled but no build IDs were supplied, recent builds are
discovered from the listing endpoints. Discovery is best-effort: a failing
listing request ends that traversal and the source keeps whatever was found.
Only an enabled source left with no IDs at all is fatal.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from loguru import logger

from bstack_report.api_client.client import DiscoveryTransportError, endpoint
from bstack_report.api_client.pagination import (
    MAX_BUILD_PAGES_PER_PROJECT,
    MAX_PROJECT_PAGES,
    JsonGetter,
    as_mapping,
    extract_records,
    paginate_cursor,
)
from bstack_report.config.resolver import ReportConfig
from bstack_report.errors import ReportError
from bstack_report.timeutil import DAY_SECONDS, cutoff_for_days, row_timestamps, utc_now

RECENCY_KEYS = ("started_at", "created_at", "uploaded_at")


class DiscoveryExhausted(ReportError):
    """Raised when an enabled source has no build IDs after discovery."""

    pass


def unique_non_empty(values: Iterable[Any]) -> List[str]:
    """Stripped, non-empty, de-duplicated strings in first-seen order."""
    result: List[str] = []
    for value in values:
        text = str(value).strip() if value is not None else ""
        if text and text not in result:
            result.append(text)
    return result


def _first_present(record: Mapping[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return None


def _project_id(record: Mapping[str, Any]) -> Optional[int]:
    value = _first_present(record, ("id", "project_id"))
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def is_recent(record: Mapping[str, Any], days: Optional[float], now: Optional[datetime] = None) -> bool:
    """True if any recency timestamp is within ``days``; records without timestamps are kept."""
    if not days:
        return True
    stamps = row_timestamps(record, RECENCY_KEYS)
    if not stamps:
        return True
    cutoff = cutoff_for_days(days, now)
    return any(stamp >= cutoff for stamp in stamps)


def discover_project_ids(client: JsonGetter) -> List[int]:
    """List every Test Reporting project ID (numeric, de-duplicated)."""
    logger.info("Discovering Test Reporting projects")
    project_ids: List[int] = []
    pages = paginate_cursor(
        client,
        endpoint("test_reporting_projects"),
        max_pages=MAX_PROJECT_PAGES,
        discovery=True,
    )
    for page_number, payload in enumerate(pages, start=1):
        for record in extract_records(payload):
            project_id = _project_id(record)
            if project_id is not None and project_id not in project_ids:
                project_ids.append(project_id)
        logger.debug(f"Projects page={page_number} projects_so_far={len(project_ids)}")

    logger.info(f"Discovered {len(project_ids)} Test Reporting projects")
    return project_ids


def discover_test_reporting_build_ids(
    client: JsonGetter,
    config: ReportConfig,
    now: Optional[datetime] = None,
) -> List[str]:
    """
    Discover recent Test Reporting build IDs across projects.

    Each project's build listing is queried with a ``date_range`` covering the
    discovery window and is paged until ``maxBuildsPerSource`` builds were
    collected for that project or pagination ends.
    """
    discovery = config.inputs.discover_recent_builds
    max_builds = max(1, discovery.max_builds_per_source)
    now = now or utc_now()
    now_ms = int(now.timestamp() * 1000)
    from_ms = now_ms - int(discovery.days * DAY_SECONDS * 1000)

    project_ids = list(discovery.test_reporting_project_ids) or discover_project_ids(client)
    if not project_ids:
        return []

    logger.info(f"Discovering Test Reporting builds in {len(project_ids)} projects")
    discovered: List[str] = []
    for project_id in project_ids:
        collected = 0
        pages = paginate_cursor(
            client,
            endpoint("test_reporting_project_builds", project_id=project_id),
            {"date_range": f"{from_ms},{now_ms}", "limit": max_builds},
            max_pages=MAX_BUILD_PAGES_PER_PROJECT,
            discovery=True,
        )
        for payload in pages:
            page_ids = unique_non_empty(
                _first_present(record, ("build_id", "build_uuid", "id"))
                for record in extract_records(payload)
            )
            discovered.extend(page_ids)
            collected += len(page_ids)
            if collected >= max_builds:
                break
        logger.debug(f"Project {project_id}: {collected} builds")

    build_ids = unique_non_empty(discovered)
    logger.info(f"Discovered {len(build_ids)} Test Reporting builds")
    return build_ids


def discover_app_automate_build_ids(
    client: JsonGetter,
    config: ReportConfig,
    now: Optional[datetime] = None,
) -> List[str]:
    """
    Discover recent App Automate build IDs with a single bounded listing call.

    Records are kept when their best timestamp is inside the discovery window,
    or when they carry no timestamp at all.
    """
    discovery = config.inputs.discover_recent_builds
    max_builds = max(1, discovery.max_builds_per_source)
    logger.info("Discovering App Automate builds")
    try:
        payload = client.get_json(
            endpoint("app_automate_builds"),
            {"limit": max_builds, "offset": 0},
            discovery=True,
        )
    except DiscoveryTransportError as e:
        logger.warning(f"App Automate build discovery failed: {e}")
        return []

    records = [
        as_mapping(record.get("automation_build")) or record for record in extract_records(payload)
    ]
    build_ids = unique_non_empty(
        _first_present(record, ("hashed_id", "id", "build_id", "uuid"))
        for record in records
        if is_recent(record, discovery.days, now)
    )
    logger.info(f"Discovered {len(build_ids)} App Automate builds ({len(records)} listed)")
    return build_ids


def resolve_build_inputs(
    client: JsonGetter,
    config: ReportConfig,
    now: Optional[datetime] = None,
) -> ReportConfig:
    """
    Fill empty build ID lists of enabled sources via discovery.

    Returns:
        The config, with discovered IDs where discovery ran.

    Raises:
        DiscoveryExhausted: If an enabled source still has no build IDs.
    """
    if not config.inputs.discover_recent_builds.enabled:
        return config

    test_reporting_ids: Sequence[str] = config.inputs.test_reporting_build_ids
    app_automate_ids: Sequence[str] = config.inputs.app_automate_build_ids

    if config.test_reporting.enabled and not test_reporting_ids:
        test_reporting_ids = discover_test_reporting_build_ids(client, config, now)
    if config.app_automate.enabled and not app_automate_ids:
        app_automate_ids = discover_app_automate_build_ids(client, config, now)

    if config.test_reporting.enabled and not test_reporting_ids:
        raise DiscoveryExhausted(
            "\n".join(
                [
                    "No Test Reporting build IDs available.",
                    "Could not discover builds using GET /ext/v1/projects/{project_id}/builds.",
                    "Set inputs.discoverRecentBuilds.testReportingProjectIds (one or more project IDs),",
                    "or set inputs.testReportingBuildIds manually, or disable testReporting.",
                ]
            )
        )
    if config.app_automate.enabled and not app_automate_ids:
        raise DiscoveryExhausted(
            "No App Automate builds found. Add inputs.appAutomateBuildIds manually, "
            "increase inputs.discoverRecentBuilds.maxBuildsPerSource or .days, "
            "or disable appAutomate."
        )

    return config.with_build_ids(test_reporting_ids, app_automate_ids)
