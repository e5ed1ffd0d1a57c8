"""
App Automate collector.

Lists the sessions of each App Automate build (offset/limit pagination),
optionally enriches every session with its detail record, and lists the
uploaded app inventory.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Tuple

from loguru import logger

from bstack_report.api_client.client import endpoint
from bstack_report.api_client.pagination import JsonGetter, as_mapping, extract_records, paginate_offset
from bstack_report.config.resolver import ReportConfig
from bstack_report.timeutil import to_iso_or_empty

Row = Dict[str, Any]


def _or_empty(value: Any) -> Any:
    return "" if value is None else value


def session_row(build_id: str, session: Mapping[str, Any]) -> Row:
    """Build a session row from a session-listing entry's summary fields."""
    return {
        "source": "app-automate",
        "build_id": build_id,
        "session_id": _or_empty(session.get("hashed_id")),
        "session_name": _or_empty(session.get("name")),
        "session_created_at": to_iso_or_empty(session.get("created_at")),
        "session_started_at": to_iso_or_empty(session.get("started_at")),
        "session_finished_at": to_iso_or_empty(session.get("finished_at")),
        "session_status": _or_empty(session.get("status")),
        "session_duration_sec": _or_empty(session.get("duration")),
        "os": _or_empty(session.get("os")),
        "os_version": _or_empty(session.get("os_version")),
        "device": _or_empty(session.get("device")),
        "reason": _or_empty(session.get("reason")),
        "build_name": _or_empty(session.get("build_name")),
        "project_name": _or_empty(session.get("project_name")),
        "logs_url": _or_empty(session.get("logs")),
        "appium_logs_url": _or_empty(session.get("appium_logs_url")),
        "video_url": _or_empty(session.get("video_url")),
        "public_url": _or_empty(session.get("public_url")),
    }


def merge_session_details(row: Row, details_payload: Any) -> Row:
    """
    Overlay a session detail record onto a summary row.

    Detail timestamps win only when they are non-empty; app metadata is
    always added. Returns a new row.
    """
    session = as_mapping(as_mapping(details_payload).get("automation_session"))
    app = as_mapping(session.get("app_details"))
    merged = dict(row)
    for field_name, detail_key in (
        ("session_created_at", "created_at"),
        ("session_started_at", "started_at"),
        ("session_finished_at", "finished_at"),
    ):
        merged[field_name] = to_iso_or_empty(session.get(detail_key)) or str(row.get(field_name) or "")
    merged.update(
        {
            "app_url": _or_empty(app.get("app_url")),
            "app_name": _or_empty(app.get("app_name")),
            "app_version": _or_empty(app.get("app_version")),
            "app_custom_id": _or_empty(app.get("app_custom_id")),
            "app_uploaded_at": to_iso_or_empty(app.get("uploaded_at")),
        }
    )
    return merged


def collect_sessions_for_build(client: JsonGetter, build_id: str, config: ReportConfig) -> List[Row]:
    """
    Fetch all session rows for one App Automate build.

    Raises:
        TransportError: If a listing or detail request fails.
    """
    settings = config.app_automate
    params: Dict[str, Any] = {}
    if settings.session_status_filter:
        params["status"] = settings.session_status_filter

    rows: List[Row] = []
    pages = paginate_offset(
        client,
        endpoint("app_automate_build_sessions", build_id=build_id),
        params,
        limit=settings.session_limit,
    )
    for page in pages:
        for item in page:
            session = as_mapping(as_mapping(item).get("automation_session"))
            row = session_row(build_id, session)
            session_id = row["session_id"]
            if settings.include_session_details:
                # Sessions without an ID still get the (empty) app columns.
                details = (
                    client.get_json(endpoint("app_automate_session_details", session_id=session_id))
                    if session_id
                    else {}
                )
                row = merge_session_details(row, details)
            rows.append(row)
    return rows


def app_row(app: Mapping[str, Any]) -> Row:
    """Build an app inventory row."""
    return {
        "app_name": _or_empty(app.get("app_name")),
        "app_version": _or_empty(app.get("app_version")),
        "app_url": _or_empty(app.get("app_url")),
        "app_id": _or_empty(app.get("app_id")),
        "uploaded_at": to_iso_or_empty(app.get("uploaded_at")),
        "custom_id": _or_empty(app.get("custom_id")),
        "shareable_id": _or_empty(app.get("shareable_id")),
    }


def collect_apps(client: JsonGetter, config: ReportConfig) -> List[Row]:
    """
    Fetch the uploaded app inventory.

    With configured custom IDs, one listing per ID (each capped at
    ``appListLimit``); otherwise the most recent uploads up to the cap.
    """
    settings = config.app_automate
    if not settings.enabled:
        return []

    custom_ids = config.inputs.app_custom_ids
    if not custom_ids:
        payload = client.get_json(
            endpoint("app_automate_recent_apps"), {"limit": settings.app_list_limit}
        )
        return [app_row(app) for app in extract_records(payload)]

    rows: List[Row] = []
    for custom_id in custom_ids:
        payload = client.get_json(endpoint("app_automate_recent_apps_by_custom_id", custom_id=custom_id))
        apps = extract_records(payload)[: settings.app_list_limit]
        rows.extend(app_row(app) for app in apps)
    return rows


def collect_app_automate(client: JsonGetter, config: ReportConfig) -> Tuple[List[Row], List[Row]]:
    """
    Fetch session rows for every configured build, then the app inventory.

    Returns:
        ``(sessions, apps)`` row lists.
    """
    if not config.app_automate.enabled:
        return [], []

    build_ids = config.inputs.app_automate_build_ids
    logger.info(f"Fetching App Automate session builds: {len(build_ids)}")
    sessions: List[Row] = []
    for index, build_id in enumerate(build_ids, start=1):
        build_sessions = collect_sessions_for_build(client, build_id, config)
        sessions.extend(build_sessions)
        logger.info(f"Build {index}/{len(build_ids)} ({build_id}): {len(build_sessions)} sessions")

    apps = collect_apps(client, config)
    logger.info(f"App Automate done: {len(sessions)} sessions, {len(apps)} apps")
    return sessions, apps
