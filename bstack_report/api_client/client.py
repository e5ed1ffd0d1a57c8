"""
BrowserStack REST API Client.

Provides a minimal client for the two BrowserStack data sources:
- Test Reporting & Analytics (``api-automation.browserstack.com``).
- App Automate (``api-cloud.browserstack.com``).

The client only issues authenticated GET requests returning JSON. Requests are
sent one at a time and never retried.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional
from urllib.parse import quote

import requests
from loguru import logger

from bstack_report.errors import ReportError

TEST_REPORTING_BASE = "https://api-automation.browserstack.com/ext/v1"
APP_AUTOMATE_BASE = "https://api-cloud.browserstack.com/app-automate"

ENDPOINTS = {
    "test_reporting_projects": f"{TEST_REPORTING_BASE}/projects",
    "test_reporting_project_builds": f"{TEST_REPORTING_BASE}/projects/{{project_id}}/builds",
    "test_reporting_build_details": f"{TEST_REPORTING_BASE}/builds/{{build_id}}",
    "test_reporting_build_tests": f"{TEST_REPORTING_BASE}/builds/{{build_id}}/testRuns",
    "app_automate_builds": f"{APP_AUTOMATE_BASE}/builds.json",
    "app_automate_build_sessions": f"{APP_AUTOMATE_BASE}/builds/{{build_id}}/sessions.json",
    "app_automate_session_details": f"{APP_AUTOMATE_BASE}/sessions/{{session_id}}.json",
    "app_automate_recent_apps": f"{APP_AUTOMATE_BASE}/recent_apps",
    "app_automate_recent_apps_by_custom_id": f"{APP_AUTOMATE_BASE}/recent_apps/{{custom_id}}",
}


def endpoint(name: str, **path_params: Any) -> str:
    """Format a named endpoint, URL-encoding every path parameter."""
    encoded = {k: quote(str(v), safe="") for k, v in path_params.items()}
    return ENDPOINTS[name].format(**encoded)


class TransportError(ReportError):
    """Raised when a request fails or returns a non-success status."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        url: str = "",
        body: str = "",
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url
        self.body = body


class DiscoveryTransportError(TransportError):
    """Transport failure on a best-effort discovery request."""

    pass


class BrowserStackClient:
    """
    Authenticated JSON GET client.

    Usage::

        headers = build_auth_headers(config.credentials)
        with BrowserStackClient(headers, timeout_sec=30) as client:
            details = client.get_json(endpoint("test_reporting_build_details", build_id="abc"))
    """

    def __init__(
        self,
        headers: Mapping[str, str],
        timeout_sec: float = 30,
        session: Optional[requests.Session] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            headers: Authorization/Accept headers from the authenticator.
            timeout_sec: Timeout applied to each individual request.
            session: Optional pre-built requests session (mainly for tests).
        """
        self._headers = dict(headers)
        self._timeout_sec = timeout_sec
        self._session = session
        self.request_count = 0

    def _get_session(self) -> requests.Session:
        """Get or create the HTTP session carrying the auth headers."""
        if self._session is None:
            self._session = requests.Session()
        return self._session

    def get_json(
        self,
        url: str,
        params: Optional[Mapping[str, Any]] = None,
        *,
        discovery: bool = False,
    ) -> Any:
        """
        Issue one authenticated GET and return the decoded JSON payload.

        Query parameters with empty-string values are dropped.

        Args:
            url: Absolute endpoint URL.
            params: Query parameters.
            discovery: Mark the request as best-effort discovery; failures are
                raised as DiscoveryTransportError instead of TransportError.

        Raises:
            TransportError: On network failure, non-2xx status or non-JSON body.
        """
        error_cls = DiscoveryTransportError if discovery else TransportError
        query: Dict[str, str] = {
            str(k): str(v) for k, v in (params or {}).items() if v is not None and str(v) != ""
        }
        session = self._get_session()
        logger.debug(f"GET {url} params={query}")
        self.request_count += 1

        try:
            response = session.get(
                url,
                params=query or None,
                headers=self._headers,
                timeout=self._timeout_sec,
            )
        except requests.exceptions.Timeout as e:
            logger.error(f"BrowserStack API timeout: {url}")
            raise error_cls(
                f"Request to {url} timed out after {self._timeout_sec}s", url=url
            ) from e
        except requests.exceptions.ConnectionError as e:
            logger.error(f"BrowserStack API connection error: {e}")
            raise error_cls(f"Cannot connect to {url}: {e}", url=url) from e
        except requests.exceptions.RequestException as e:
            logger.error(f"BrowserStack API request error: {e}")
            raise error_cls(f"Request to {url} failed: {e}", url=url) from e

        if not response.ok:
            body = response.text
            logger.error(f"BrowserStack API HTTP error: {response.status_code} for {url}")
            raise error_cls(
                f"Request failed {response.status_code} {response.reason} for {url}\n{body}",
                status_code=response.status_code,
                url=url,
                body=body,
            )

        try:
            return response.json()
        except ValueError as e:
            raise error_cls(
                f"Response from {url} is not valid JSON: {e}",
                status_code=response.status_code,
                url=url,
                body=response.text,
            ) from e

    def close(self) -> None:
        """Close the HTTP session."""
        if self._session is not None:
            self._session.close()
            self._session = None
            logger.debug("BrowserStack client session closed")

    def __enter__(self) -> "BrowserStackClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
