"""
Pagination helpers.

Two pagination contracts are in use:
- Cursor based (Test Reporting): ``pagination.has_next`` + opaque ``next_page``.
- Offset/limit based (App Automate): a short page means the listing is done.

The cursor paginator guards against remotes whose cursors loop or never end:
a repeated cursor or a page ceiling stops the traversal.
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Mapping, Optional, Protocol, Tuple

from loguru import logger

from bstack_report.api_client.client import DiscoveryTransportError

MAX_PROJECT_PAGES = 200
MAX_BUILD_PAGES_PER_PROJECT = 500

RECORD_CONTAINER_KEYS = ("builds", "projects", "items", "data", "results")

JsonObject = Dict[str, Any]


class JsonGetter(Protocol):
    def get_json(
        self,
        url: str,
        params: Optional[Mapping[str, Any]] = None,
        *,
        discovery: bool = False,
    ) -> Any: ...


def as_mapping(value: Any) -> JsonObject:
    """Return the value if it is a JSON object, else an empty dict."""
    return value if isinstance(value, dict) else {}


def get_nested(value: Any, key: str) -> Any:
    """Dotted-path lookup (``"pagination.next_page"``); None when any step is missing."""
    current = value
    for part in key.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(part)
    return current


def extract_records(payload: Any) -> List[JsonObject]:
    """
    Pull the list of records out of a listing payload.

    Accepts a bare JSON array or an object wrapping the array under one of
    the usual container keys.
    """
    if isinstance(payload, list):
        return [item for item in payload if isinstance(item, dict)]
    if not isinstance(payload, dict):
        return []
    for key in RECORD_CONTAINER_KEYS:
        value = payload.get(key)
        if isinstance(value, list):
            return [item for item in value if isinstance(item, dict)]
    return []


def read_cursor(payload: Any) -> Tuple[bool, str]:
    """Return ``(has_next, next_page)`` from a cursor-paginated payload."""
    has_next = bool(get_nested(payload, "pagination.has_next"))
    next_page = get_nested(payload, "pagination.next_page") or as_mapping(payload).get("next_page")
    return has_next, str(next_page or "")


def paginate_cursor(
    client: JsonGetter,
    url: str,
    params: Optional[Mapping[str, Any]] = None,
    *,
    cursor_param: str = "next_page",
    max_pages: Optional[int] = None,
    discovery: bool = False,
) -> Iterator[Any]:
    """
    Yield successive payloads of a cursor-paginated listing.

    Stops when the payload reports no further pages, omits the cursor, hands
    back a cursor already seen in this traversal, or ``max_pages`` payloads
    have been yielded. Callers may stop early simply by not consuming more.

    Args:
        client: Object exposing ``get_json``.
        url: Listing endpoint.
        params: Static query parameters sent with every request.
        cursor_param: Query parameter carrying the cursor.
        max_pages: Hard page ceiling (None for no ceiling).
        discovery: Best-effort mode; a transport failure ends the traversal
            quietly instead of propagating.

    Raises:
        TransportError: On failure of a non-discovery request.
    """
    static_params = dict(params or {})
    seen_cursors: set[str] = set()
    cursor = ""
    page_count = 0

    while True:
        query = dict(static_params)
        if cursor:
            query[cursor_param] = cursor
        try:
            payload = client.get_json(url, query, discovery=discovery)
        except DiscoveryTransportError as e:
            logger.warning(f"Discovery request failed, stopping traversal of {url}: {e}")
            return

        page_count += 1
        yield payload

        has_next, next_cursor = read_cursor(payload)
        if not has_next or not next_cursor:
            return
        if next_cursor in seen_cursors:
            logger.warning(f"Pagination cursor repeated for {url}; stopping after {page_count} pages")
            return
        if max_pages is not None and page_count >= max_pages:
            logger.warning(f"Page ceiling ({max_pages}) reached for {url}")
            return
        seen_cursors.add(next_cursor)
        cursor = next_cursor


def paginate_offset(
    client: JsonGetter,
    url: str,
    params: Optional[Mapping[str, Any]] = None,
    *,
    limit: int,
) -> Iterator[List[Any]]:
    """
    Yield successive pages of an offset/limit listing.

    A page shorter than ``limit`` is the last one, so a listing whose size is
    an exact multiple of ``limit`` costs one extra (empty) request.
    """
    limit = max(1, limit)
    offset = 0
    while True:
        query = dict(params or {})
        query.update({"limit": limit, "offset": offset})
        payload = client.get_json(url, query)
        page = payload if isinstance(payload, list) else extract_records(payload)
        yield page
        if len(page) < limit:
            return
        offset += limit
