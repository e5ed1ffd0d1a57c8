"""
Tests for the data collectors.

Covers:
- Test Reporting: hierarchy flattening, build rows, paged test-run collection.
- App Automate: session rows, detail overlay, app inventory.
- Discovery: project listing, per-project caps, recency filter, exhaustion.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from bstack_report.api_client.client import TransportError, endpoint
from bstack_report.collectors.app_automate import (
    collect_app_automate,
    collect_apps,
    collect_sessions_for_build,
    merge_session_details,
    session_row,
)
from bstack_report.collectors.discovery import (
    DiscoveryExhausted,
    discover_app_automate_build_ids,
    discover_project_ids,
    discover_test_reporting_build_ids,
    resolve_build_inputs,
    unique_non_empty,
)
from bstack_report.collectors.test_reporting import (
    build_row_from_details,
    collect_test_reporting,
    flatten_test_hierarchy,
)
from bstack_report.config.resolver import resolve_config
from bstack_report.reporting.renderers import to_csv
from tests.fakes import FakeClient, cursor_pages, make_node, make_session, offset_pages

BUILD_DETAILS_URL = endpoint("test_reporting_build_details", build_id="tr-build-1")
TEST_RUNS_URL = endpoint("test_reporting_build_tests", build_id="tr-build-1")
SESSIONS_URL = endpoint("app_automate_build_sessions", build_id="aa-build-1")
RECENT_APPS_URL = endpoint("app_automate_recent_apps")
PROJECTS_URL = endpoint("test_reporting_projects")
AA_BUILDS_URL = endpoint("app_automate_builds")


def _session_details_url(session_id: str) -> str:
    return endpoint("app_automate_session_details", session_id=session_id)


def _project_builds_url(project_id: int) -> str:
    return endpoint("test_reporting_project_builds", project_id=project_id)


def _discovery_config(**discovery):
    return resolve_config({"inputs": {"discoverRecentBuilds": {"enabled": True, **discovery}}})


# ---------------------------------------------------------------------------
# Test Reporting Tests
# ---------------------------------------------------------------------------


class TestFlattenTestHierarchy:
    """Tests for flatten_test_hierarchy."""

    def test_one_row_per_test_node(self, sample_hierarchy) -> None:
        """Test that hooks are skipped by default and order is pre-order."""
        rows = flatten_test_hierarchy("b1", "nightly", 42, sample_hierarchy)

        assert [r["test_name"] for r in rows] == [
            "accepts valid user",
            "rejects bad password",
            "locks after 3 tries",
        ]
        assert all(r["test_type"] == "TEST" for r in rows)

    def test_include_hooks(self, sample_hierarchy) -> None:
        """Test that HOOK nodes become rows when requested."""
        rows = flatten_test_hierarchy("b1", "nightly", 42, sample_hierarchy, include_hooks=True)

        assert len(rows) == 4
        assert rows[0]["test_name"] == "before all"
        assert rows[0]["test_type"] == "HOOK"

    def test_scope_path_lists_strict_ancestors(self, sample_hierarchy) -> None:
        """Test that scope_path joins ancestor names and excludes the node itself."""
        rows = flatten_test_hierarchy("b1", "nightly", 42, sample_hierarchy)

        assert rows[0]["scope_path"] == "login.spec.ts > Login"
        assert rows[2]["scope_path"] == "login.spec.ts > Login > Lockout"
        assert all(r["root_scope"] == "login.spec.ts" for r in rows)

    def test_root_metadata_on_every_row(self, sample_hierarchy) -> None:
        """Test that root file/OS/browser/device fields are copied to descendants."""
        rows = flatten_test_hierarchy("b1", "nightly", 42, sample_hierarchy)

        for row in rows:
            assert row["root_file_path"] == "specs/login.spec.ts"
            assert row["root_os_name"] == "Android"
            assert row["root_os_version"] == "14"
            assert row["root_browser_name"] == "chrome"
            assert row["root_browser_version"] == "120"
            assert row["root_device"] == "Pixel 8"
            assert row["finished_at"] == "2026-03-14T10:00:00Z"
            assert row["source_build_id"] == "b1"
            assert row["source_build_name"] == "nightly"
            assert row["source_build_number"] == 42

    def test_leaf_fields(self, sample_hierarchy) -> None:
        """Test tags, retries and the first retry's failure log."""
        passed, failed, skipped = flatten_test_hierarchy("b1", "nightly", 42, sample_hierarchy)

        assert passed["test_tags"] == "smoke, team-auth"
        assert passed["retries_count"] == 0
        assert passed["first_failure_log"] == ""
        assert failed["test_status"] == "failed"
        assert failed["retries_count"] == 2
        assert failed["first_failure_log"] == "AssertionError: expected 401"
        assert failed["is_flaky"] is True
        assert skipped["test_duration_ms"] == ""

    def test_unnamed_and_malformed_nodes(self) -> None:
        """Test that unnamed tests are skipped and junk nodes are ignored."""
        hierarchy = [
            make_node(
                "root",
                "FILE",
                children=[make_node("", "TEST"), "junk", make_node("named", "TEST")],
            ),
            None,
        ]

        rows = flatten_test_hierarchy("b1", "", None, hierarchy)

        assert [r["test_name"] for r in rows] == ["named"]
        assert rows[0]["source_build_number"] == ""

    def test_empty_hierarchy(self) -> None:
        """Test that an empty hierarchy yields no rows."""
        assert flatten_test_hierarchy("b1", "x", 1, []) == []


class TestBuildRow:
    """Tests for build_row_from_details."""

    def test_fields(self, build_details) -> None:
        """Test counts, tags and timestamps of a build row."""
        row = build_row_from_details("tr-build-1", build_details)

        assert row["source"] == "test-reporting"
        assert row["build_name"] == "nightly-android"
        assert row["tags"] == "nightly, team-auth"
        assert row["started_at"] == "2026-03-14T09:00:00.000Z"
        assert (row["passed"], row["failed"], row["skipped"], row["pending"]) == (10, 2, 1, 0)
        assert row["flaky_count"] == 1
        assert row["always_failing_count"] == 0
        assert row["tcm_test_run_identifier"] == "TR-7"

    def test_missing_details(self) -> None:
        """Test that an empty payload yields empty strings and zero counts."""
        row = build_row_from_details("x", {})

        assert row["build_name"] == ""
        assert row["started_at"] == ""
        assert row["failed"] == 0


class TestCollectTestReporting:
    """Tests for collect_test_reporting."""

    def test_collects_all_pages(self, fake_client, explicit_config, build_details) -> None:
        """Test that every test-run page is flattened and build timestamps added."""
        first = {
            "build_name": "nightly-android",
            "hierarchy": [make_node("a.spec", "FILE", children=[make_node("t1", "TEST")])],
            "pagination": {"has_next": True, "next_page": "p2"},
        }
        second = {
            "hierarchy": [make_node("b.spec", "FILE", children=[make_node("t2", "TEST")])],
            "pagination": {"has_next": False},
        }
        fake_client.add(BUILD_DETAILS_URL, build_details)
        fake_client.add(TEST_RUNS_URL, cursor_pages({"": first, "p2": second}))

        builds, tests = collect_test_reporting(fake_client, explicit_config)

        assert len(builds) == 1
        assert [t["test_name"] for t in tests] == ["t1", "t2"]
        assert tests[1]["source_build_name"] == "nightly-android"
        assert tests[1]["source_build_number"] == 42
        assert tests[0]["build_started_at"] == "2026-03-14T09:00:00.000Z"
        assert tests[0]["build_finished_at"] == "2026-03-14T10:00:00.000Z"

    def test_first_page_only(self, fake_client, build_details) -> None:
        """Test that fetchAllPages=false stops after the first page."""
        config = resolve_config(
            {
                "inputs": {"testReportingBuildIds": ["tr-build-1"]},
                "testReporting": {"fetchAllPages": False},
            }
        )
        page = {"hierarchy": [], "pagination": {"has_next": True, "next_page": "p2"}}
        fake_client.add(BUILD_DETAILS_URL, build_details)
        fake_client.add(TEST_RUNS_URL, page)

        collect_test_reporting(fake_client, config)

        assert len(fake_client.calls_to(TEST_RUNS_URL)) == 1

    def test_test_run_query_is_forwarded(self, fake_client, build_details) -> None:
        """Test that testRunQuery parameters reach the test-run request."""
        config = resolve_config(
            {
                "inputs": {"testReportingBuildIds": ["tr-build-1"]},
                "testReporting": {"testRunQuery": {"status": "failed", "is_flaky": True}},
            }
        )
        fake_client.add(BUILD_DETAILS_URL, build_details)
        fake_client.add(TEST_RUNS_URL, {"hierarchy": []})

        collect_test_reporting(fake_client, config)

        assert fake_client.calls_to(TEST_RUNS_URL) == [{"status": "failed", "is_flaky": "true"}]

    def test_disabled_source_makes_no_requests(self, fake_client) -> None:
        """Test that a disabled source returns nothing."""
        config = resolve_config(
            {"inputs": {"testReportingBuildIds": ["x"]}, "testReporting": {"enabled": False}}
        )

        assert collect_test_reporting(fake_client, config) == ([], [])
        assert fake_client.calls == []

    def test_detail_failure_is_fatal(self, fake_client, explicit_config) -> None:
        """Test that a failing build-detail request propagates."""
        with pytest.raises(TransportError):
            collect_test_reporting(fake_client, explicit_config)


# ---------------------------------------------------------------------------
# App Automate Tests
# ---------------------------------------------------------------------------


class TestSessions:
    """Tests for session collection and detail overlay."""

    def test_session_row_fields(self) -> None:
        """Test the summary fields of a session row."""
        row = session_row("aa-build-1", make_session("s1")["automation_session"])

        assert row["source"] == "app-automate"
        assert row["session_id"] == "s1"
        assert row["session_created_at"] == "2026-03-14T08:00:00.000Z"
        assert row["project_name"] == "Dialler"
        assert row["reason"] == ""

    def test_detail_overlay(self) -> None:
        """Test that non-empty detail timestamps win and app fields are added."""
        row = session_row("b", make_session("s1")["automation_session"])
        details = {
            "automation_session": {
                "created_at": "2026-03-14T08:01:00Z",
                "started_at": "",
                "app_details": {
                    "app_name": "dialler.apk",
                    "app_version": "3.2",
                    "uploaded_at": "2026-03-13T07:00:00Z",
                },
            }
        }

        merged = merge_session_details(row, details)

        assert merged["session_created_at"] == "2026-03-14T08:01:00.000Z"
        assert merged["session_started_at"] == row["session_started_at"]
        assert merged["session_finished_at"] == row["session_finished_at"]
        assert merged["app_name"] == "dialler.apk"
        assert merged["app_uploaded_at"] == "2026-03-13T07:00:00.000Z"
        assert merged["app_custom_id"] == ""
        assert "app_name" not in row

    def test_empty_detail_keeps_summary(self) -> None:
        """Test that an empty detail payload leaves timestamps untouched."""
        row = session_row("b", make_session("s1")["automation_session"])

        merged = merge_session_details(row, {})

        assert merged["session_created_at"] == row["session_created_at"]
        assert merged["app_url"] == ""

    def test_paged_listing_with_details(self, fake_client, explicit_config) -> None:
        """Test offset paging, status filter and one detail call per session."""
        config = resolve_config(
            {
                **explicit_config.to_dict(),
                "appAutomate": {"sessionLimit": 2, "sessionStatusFilter": "failed"},
            }
        )
        sessions = [make_session(f"s{i}", status="failed") for i in range(3)]
        fake_client.add(SESSIONS_URL, offset_pages(sessions))
        for i in range(3):
            fake_client.add(_session_details_url(f"s{i}"), {"automation_session": {}})

        rows = collect_sessions_for_build(fake_client, "aa-build-1", config)

        assert [r["session_id"] for r in rows] == ["s0", "s1", "s2"]
        listing_calls = fake_client.calls_to(SESSIONS_URL)
        assert [c["offset"] for c in listing_calls] == [0, 2]
        assert all(c["status"] == "failed" for c in listing_calls)
        assert len(fake_client.calls) == 5

    def test_details_disabled(self, fake_client) -> None:
        """Test that no detail calls are made when details are disabled."""
        config = resolve_config(
            {
                "inputs": {"appAutomateBuildIds": ["aa-build-1"]},
                "appAutomate": {"includeSessionDetails": False},
            }
        )
        fake_client.add(SESSIONS_URL, offset_pages([make_session("s1"), make_session("")]))

        rows = collect_sessions_for_build(fake_client, "aa-build-1", config)

        assert len(rows) == 2
        assert fake_client.calls_to(_session_details_url("s1")) == []

    def test_session_without_id_skips_details(self, fake_client, explicit_config) -> None:
        """Test that a session with an empty ID gets no detail request."""
        fake_client.add(SESSIONS_URL, offset_pages([{"automation_session": {"name": "orphan"}}]))

        rows = collect_sessions_for_build(fake_client, "aa-build-1", explicit_config)

        assert rows[0]["session_name"] == "orphan"
        assert rows[0]["app_name"] == ""
        assert len(fake_client.calls) == 1

    def test_rows_share_columns_with_and_without_id(self, fake_client, explicit_config) -> None:
        """Test that enriched and id-less sessions have the same columns in CSV output."""
        fake_client.add(
            SESSIONS_URL,
            offset_pages([{"automation_session": {"name": "orphan"}}, make_session("s1")]),
        )
        fake_client.add(
            _session_details_url("s1"),
            {"automation_session": {"app_details": {"app_name": "dialler.apk"}}},
        )

        rows = collect_sessions_for_build(fake_client, "aa-build-1", explicit_config)

        assert list(rows[0]) == list(rows[1])
        header = to_csv(rows).split("\n")[0].split(",")
        assert "app_name" in header
        assert "app_uploaded_at" in header


class TestApps:
    """Tests for the app inventory."""

    def test_recent_apps(self, fake_client, explicit_config) -> None:
        """Test the single recent-apps call with the list limit."""
        fake_client.add(
            RECENT_APPS_URL,
            [{"app_name": "dialler.apk", "custom_id": "Dialler", "uploaded_at": "2026-03-10T00:00:00Z"}],
        )

        apps = collect_apps(fake_client, explicit_config)

        assert apps[0]["app_name"] == "dialler.apk"
        assert apps[0]["uploaded_at"] == "2026-03-10T00:00:00.000Z"
        assert apps[0]["shareable_id"] == ""
        assert fake_client.calls_to(RECENT_APPS_URL) == [{"limit": 10}]

    def test_custom_ids_capped_each(self, fake_client) -> None:
        """Test one call per custom ID with each result sliced to the limit."""
        config = resolve_config(
            {
                "inputs": {"appAutomateBuildIds": ["b"], "appCustomIds": ["Dialler", "Wallet"]},
                "appAutomate": {"appListLimit": 2},
            }
        )
        for custom_id in ("Dialler", "Wallet"):
            fake_client.add(
                endpoint("app_automate_recent_apps_by_custom_id", custom_id=custom_id),
                [{"app_name": f"{custom_id}-{i}", "custom_id": custom_id} for i in range(5)],
            )

        apps = collect_apps(fake_client, config)

        assert [a["app_name"] for a in apps] == ["Dialler-0", "Dialler-1", "Wallet-0", "Wallet-1"]
        assert fake_client.calls_to(RECENT_APPS_URL) == []

    def test_collect_app_automate(self, fake_client, explicit_config) -> None:
        """Test that sessions are collected per build before the app listing."""
        fake_client.add(SESSIONS_URL, offset_pages([make_session("s1")]))
        fake_client.add(_session_details_url("s1"), {})
        fake_client.add(RECENT_APPS_URL, [])

        sessions, apps = collect_app_automate(fake_client, explicit_config)

        assert len(sessions) == 1
        assert apps == []
        assert fake_client.calls[-1][0] == RECENT_APPS_URL


# ---------------------------------------------------------------------------
# Discovery Tests
# ---------------------------------------------------------------------------


class TestDiscovery:
    """Tests for build discovery."""

    def test_unique_non_empty(self) -> None:
        """Test de-duplication that keeps first-seen order."""
        assert unique_non_empty([" a", "b", None, "", "a", 3]) == ["a", "b", "3"]

    def test_project_ids_deduplicated(self, fake_client) -> None:
        """Test that project IDs across pages are numeric and unique."""
        fake_client.add(
            PROJECTS_URL,
            cursor_pages(
                {
                    "": {"projects": [{"id": 1}, {"id": "2"}], "pagination": {"has_next": True, "next_page": "n"}},
                    "n": {"projects": [{"project_id": 2}, {"id": "x"}, {"id": 3}]},
                }
            ),
        )

        assert discover_project_ids(fake_client) == [1, 2, 3]
        assert all(discovery for _, _, discovery in fake_client.calls)

    def test_build_ids_with_date_range_and_cap(self, fake_client, now) -> None:
        """Test the date_range param and the per-project cap."""
        config = _discovery_config(testReportingProjectIds=[7, 8], maxBuildsPerSource=2, days=7)
        fake_client.add(
            _project_builds_url(7),
            cursor_pages(
                {
                    "": {"builds": [{"build_id": "a"}, {"build_id": "b"}], "pagination": {"has_next": True, "next_page": "n"}},
                    "n": {"builds": [{"build_id": "c"}]},
                }
            ),
        )
        fake_client.add(_project_builds_url(8), {"builds": [{"id": "b"}, {"build_uuid": "d"}]})

        build_ids = discover_test_reporting_build_ids(fake_client, config, now)

        assert build_ids == ["a", "b", "d"]
        assert len(fake_client.calls_to(_project_builds_url(7))) == 1
        now_ms = int(now.timestamp() * 1000)
        from_ms = now_ms - 7 * 86400 * 1000
        assert fake_client.calls_to(_project_builds_url(8)) == [
            {"date_range": f"{from_ms},{now_ms}", "limit": 2}
        ]

    def test_lists_projects_when_none_configured(self, fake_client, now) -> None:
        """Test that projects are listed when no project IDs are configured."""
        fake_client.add(PROJECTS_URL, {"projects": [{"id": 5}]})
        fake_client.add(_project_builds_url(5), {"builds": [{"build_id": "z"}]})

        assert discover_test_reporting_build_ids(fake_client, _discovery_config(), now) == ["z"]

    def test_failing_project_listing_is_not_fatal(self, fake_client, now) -> None:
        """Test that a failing project's listing just contributes nothing."""
        config = _discovery_config(testReportingProjectIds=[7, 8])
        fake_client.add(_project_builds_url(8), {"builds": [{"build_id": "ok"}]})

        assert discover_test_reporting_build_ids(fake_client, config, now) == ["ok"]

    def test_app_automate_recency_filter(self, fake_client, now) -> None:
        """Test that old builds are dropped and builds without timestamps kept."""
        fake_client.add(
            AA_BUILDS_URL,
            [
                {"automation_build": {"hashed_id": "recent", "created_at": "2026-03-14T00:00:00Z"}},
                {"automation_build": {"hashed_id": "old", "created_at": "2026-02-01T00:00:00Z"}},
                {"automation_build": {"hashed_id": "undated"}},
                {"id": "flat", "started_at": "2026-03-15T00:00:00Z"},
            ],
        )

        build_ids = discover_app_automate_build_ids(fake_client, _discovery_config(), now)

        assert build_ids == ["recent", "undated", "flat"]
        assert fake_client.calls_to(AA_BUILDS_URL) == [{"limit": 20, "offset": 0}]

    def test_app_automate_discovery_failure_is_not_fatal(self, fake_client, now) -> None:
        """Test that a failing App Automate listing yields no IDs."""
        assert discover_app_automate_build_ids(fake_client, _discovery_config(), now) == []


class TestResolveBuildInputs:
    """Tests for resolve_build_inputs."""

    def test_discovery_disabled_returns_config(self, fake_client, explicit_config) -> None:
        """Test that explicit configs pass through without requests."""
        assert resolve_build_inputs(fake_client, explicit_config) is explicit_config
        assert fake_client.calls == []

    def test_explicit_ids_skip_discovery(self, fake_client, now) -> None:
        """Test that only sources without IDs are discovered."""
        config = resolve_config(
            {"inputs": {"testReportingBuildIds": ["given"], "discoverRecentBuilds": {"enabled": True}}}
        )
        fake_client.add(AA_BUILDS_URL, [{"hashed_id": "found"}])

        resolved = resolve_build_inputs(fake_client, config, now)

        assert resolved.inputs.test_reporting_build_ids == ("given",)
        assert resolved.inputs.app_automate_build_ids == ("found",)
        assert fake_client.calls_to(PROJECTS_URL) == []

    def test_exhausted_test_reporting(self, fake_client, now) -> None:
        """Test that an enabled source with nothing discovered is fatal."""
        config = resolve_config({"appAutomate": {"enabled": False}})
        fake_client.add(PROJECTS_URL, {"projects": []})

        with pytest.raises(DiscoveryExhausted, match="testReportingProjectIds"):
            resolve_build_inputs(fake_client, config, now)

    def test_exhausted_app_automate(self, fake_client, now) -> None:
        """Test the App Automate exhaustion message."""
        config = resolve_config({"testReporting": {"enabled": False}})

        with pytest.raises(DiscoveryExhausted, match="appAutomateBuildIds"):
            resolve_build_inputs(fake_client, config, now)

    def test_disabled_sources_are_not_discovered(self, fake_client, now) -> None:
        """Test that a disabled source is neither discovered nor fatal."""
        config = resolve_config(
            {"testReporting": {"enabled": False}, "appAutomate": {"enabled": False}}
        )

        resolved = resolve_build_inputs(fake_client, config, now)

        assert resolved.inputs.test_reporting_build_ids == ()
        assert fake_client.calls == []


def test_recent_window_uses_reference_time() -> None:
    """A build created just inside the window is discovered."""
    now = datetime(2026, 3, 15, tzinfo=timezone.utc)
    client = FakeClient({AA_BUILDS_URL: [{"hashed_id": "edge", "created_at": "2026-03-08T00:00:01Z"}]})

    assert discover_app_automate_build_ids(client, _discovery_config(days=7), now) == ["edge"]
