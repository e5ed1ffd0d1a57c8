"""
Root conftest.py - Shared Pytest fixtures.

Provides fixtures for:
- A fixed reference time for day-window logic.
- Credentials in a fake environment mapping.
- Resolved report configurations.
- The scripted FakeClient.
- Sample BrowserStack payloads (test-run hierarchy, build details, sessions).
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

import pytest

from bstack_report.config.resolver import ReportConfig, resolve_config
from tests.fakes import FakeClient, make_node


# ---------------------------------------------------------------------------
# Environment Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def now() -> datetime:
    """Fixed 'current time' shared by discovery and filter tests."""
    return datetime(2026, 3, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def environ() -> Dict[str, str]:
    """Environment mapping carrying valid credentials."""
    return {
        "BROWSERSTACK_USERNAME": "alice",
        "BROWSERSTACK_ACCESS_KEY": "s3cret",
    }


@pytest.fixture
def fake_client() -> FakeClient:
    """Empty scripted client; tests add routes."""
    return FakeClient()


# ---------------------------------------------------------------------------
# Configuration Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def explicit_config(tmp_path: Path) -> ReportConfig:
    """Config with explicit build IDs for both sources and discovery off."""
    return resolve_config(
        {
            "inputs": {
                "testReportingBuildIds": ["tr-build-1"],
                "appAutomateBuildIds": ["aa-build-1"],
                "discoverRecentBuilds": {"enabled": False},
            },
            "outputs": {"directory": str(tmp_path / "out"), "baseName": "report"},
        }
    )


# ---------------------------------------------------------------------------
# Payload Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_hierarchy() -> List[Dict[str, Any]]:
    """
    One root file with a suite holding 2 tests and 1 hook, plus a nested
    suite with 1 more test.
    """
    return [
        make_node(
            "login.spec.ts",
            "FILE",
            children=[
                make_node(
                    "Login",
                    "SUITE",
                    children=[
                        make_node("before all", "HOOK", status="passed"),
                        make_node(
                            "accepts valid user",
                            "TEST",
                            status="passed",
                            duration=1200,
                            tags=["smoke", "team-auth"],
                        ),
                        make_node(
                            "rejects bad password",
                            "TEST",
                            status="failed",
                            duration=800,
                            retries=[
                                {"logs": {"TEST_FAILURE": ["AssertionError: expected 401"]}},
                                {"logs": {"TEST_FAILURE": ["AssertionError: second try"]}},
                            ],
                            is_flaky=True,
                        ),
                        make_node(
                            "Lockout",
                            "SUITE",
                            children=[make_node("locks after 3 tries", "TEST", status="skipped")],
                        ),
                    ],
                )
            ],
            file_path="specs/login.spec.ts",
            os={"name": "Android", "version": "14"},
            browser={"name": "chrome", "version": "120"},
            device="Pixel 8",
            finished_at="2026-03-14T10:00:00Z",
        )
    ]


@pytest.fixture
def build_details() -> Dict[str, Any]:
    """Test Reporting build detail payload."""
    return {
        "name": "nightly-android",
        "original_name": "Nightly Android",
        "build_number": 42,
        "status": "failed",
        "duration": 360000,
        "user": "alice@example.com",
        "tags": ["nightly", "team-auth"],
        "started_at": "2026-03-14T09:00:00Z",
        "finished_at": "2026-03-14T10:00:00Z",
        "status_stats": {"passed": 10, "failed": 2, "skipped": 1},
        "smart_tags": {"is_flaky": 1, "is_new_failure": 1},
        "observability_url": "https://observability.browserstack.com/builds/abc",
        "tcmTestRunIdentifier": "TR-7",
    }

