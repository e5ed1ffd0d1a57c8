"""
Report Configuration Resolver.

Turns a partial configuration document (camelCase keys, any subset present)
into a fully-populated, immutable :class:`ReportConfig`, and validates the
result. Resolution is a pure function: the input mapping is never mutated and
resolving ``config.to_dict()`` again yields an equal config.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from loguru import logger

from bstack_report.config.loader import ConfigurationError

SECTIONS = ("overview", "builds", "tests", "sessions", "apps")
SUPPORTED_FORMATS = ("csv", "xlsx", "md", "json")
PLACEHOLDER_MARKERS = ("replace-with", "optional-", "your-")


@dataclass(frozen=True)
class CredentialsConfig:
    """Names of the environment variables holding the API credentials."""

    username_env: str = "BROWSERSTACK_USERNAME"
    access_key_env: str = "BROWSERSTACK_ACCESS_KEY"


@dataclass(frozen=True)
class DiscoveryConfig:
    """
    Best-effort build discovery settings.

    Attributes:
        enabled: Discover recent builds for sources without explicit IDs.
        max_builds_per_source: Cap on discovered builds per source (and per project).
        test_reporting_project_ids: Projects to search; empty means list all projects.
        days: Look-back window for discovery, independent of ``filters.days``.
    """

    enabled: bool = True
    max_builds_per_source: int = 20
    test_reporting_project_ids: Tuple[int, ...] = ()
    days: float = 7


@dataclass(frozen=True)
class InputsConfig:
    """Explicit identifiers and discovery settings."""

    test_reporting_build_ids: Tuple[str, ...] = ()
    app_automate_build_ids: Tuple[str, ...] = ()
    app_custom_ids: Tuple[str, ...] = ()
    discover_recent_builds: DiscoveryConfig = field(default_factory=DiscoveryConfig)


@dataclass(frozen=True)
class TestReportingConfig:
    """Test Reporting (build/test-run) source settings."""

    enabled: bool = True
    fetch_all_pages: bool = True
    include_hooks: bool = False
    test_run_query: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class AppAutomateConfig:
    """App Automate (device session) source settings."""

    enabled: bool = True
    session_limit: int = 25
    include_session_details: bool = True
    session_status_filter: str = ""
    app_list_limit: int = 10


@dataclass(frozen=True)
class OutputsConfig:
    """Where and how the report files are written."""

    directory: str = "reports/browserstack-report"
    base_name: str = "browserstack-report"
    formats: Tuple[str, ...] = SUPPORTED_FORMATS
    markdown_max_rows: int = 0


@dataclass(frozen=True)
class FiltersConfig:
    """
    Row filters applied to every section.

    ``days`` of None disables the time window; empty keyword lists disable
    the corresponding keyword clause.
    """

    days: Optional[float] = None
    projects: Tuple[str, ...] = ()
    teams: Tuple[str, ...] = ()
    people: Tuple[str, ...] = ()
    case_sensitive: bool = False
    apply_days_to_apps: bool = False


@dataclass(frozen=True)
class ColumnSpec:
    """One output column: dotted lookup key, optional header rename and default."""

    key: str
    header: Optional[str] = None
    default: Any = None

    @property
    def output_name(self) -> str:
        return self.header or self.key


@dataclass(frozen=True)
class ColumnsConfig:
    """Per-section column projections; None means rows pass through unchanged."""

    overview: Optional[Tuple[ColumnSpec, ...]] = None
    builds: Optional[Tuple[ColumnSpec, ...]] = None
    tests: Optional[Tuple[ColumnSpec, ...]] = None
    sessions: Optional[Tuple[ColumnSpec, ...]] = None
    apps: Optional[Tuple[ColumnSpec, ...]] = None

    def for_section(self, section: str) -> Optional[Tuple[ColumnSpec, ...]]:
        return getattr(self, section, None)


@dataclass(frozen=True)
class HttpConfig:
    """Transport settings; the timeout applies to each individual request."""

    timeout_sec: float = 30


@dataclass(frozen=True)
class ReportConfig:
    """Fully-resolved report configuration."""

    credentials: CredentialsConfig = field(default_factory=CredentialsConfig)
    inputs: InputsConfig = field(default_factory=InputsConfig)
    test_reporting: TestReportingConfig = field(default_factory=TestReportingConfig)
    app_automate: AppAutomateConfig = field(default_factory=AppAutomateConfig)
    outputs: OutputsConfig = field(default_factory=OutputsConfig)
    filters: FiltersConfig = field(default_factory=FiltersConfig)
    columns: ColumnsConfig = field(default_factory=ColumnsConfig)
    http: HttpConfig = field(default_factory=HttpConfig)

    def with_build_ids(
        self,
        test_reporting_build_ids: Sequence[str],
        app_automate_build_ids: Sequence[str],
    ) -> "ReportConfig":
        """Return a copy with the given build ID lists."""
        inputs = replace(
            self.inputs,
            test_reporting_build_ids=tuple(test_reporting_build_ids),
            app_automate_build_ids=tuple(app_automate_build_ids),
        )
        return replace(self, inputs=inputs)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize back to the camelCase document shape accepted by resolve_config."""
        discovery = self.inputs.discover_recent_builds
        return {
            "credentials": {
                "usernameEnv": self.credentials.username_env,
                "accessKeyEnv": self.credentials.access_key_env,
            },
            "inputs": {
                "testReportingBuildIds": list(self.inputs.test_reporting_build_ids),
                "appAutomateBuildIds": list(self.inputs.app_automate_build_ids),
                "appCustomIds": list(self.inputs.app_custom_ids),
                "discoverRecentBuilds": {
                    "enabled": discovery.enabled,
                    "maxBuildsPerSource": discovery.max_builds_per_source,
                    "testReportingProjectIds": list(discovery.test_reporting_project_ids),
                    "days": discovery.days,
                },
            },
            "testReporting": {
                "enabled": self.test_reporting.enabled,
                "fetchAllPages": self.test_reporting.fetch_all_pages,
                "includeHooks": self.test_reporting.include_hooks,
                "testRunQuery": dict(self.test_reporting.test_run_query),
            },
            "appAutomate": {
                "enabled": self.app_automate.enabled,
                "sessionLimit": self.app_automate.session_limit,
                "includeSessionDetails": self.app_automate.include_session_details,
                "sessionStatusFilter": self.app_automate.session_status_filter,
                "appListLimit": self.app_automate.app_list_limit,
            },
            "outputs": {
                "directory": self.outputs.directory,
                "baseName": self.outputs.base_name,
                "formats": list(self.outputs.formats),
                "markdownMaxRows": self.outputs.markdown_max_rows,
            },
            "filters": {
                "days": self.filters.days,
                "projects": list(self.filters.projects),
                "teams": list(self.filters.teams),
                "people": list(self.filters.people),
                "caseSensitive": self.filters.case_sensitive,
                "applyDaysToApps": self.filters.apply_days_to_apps,
            },
            "columns": {
                section: _columns_to_list(self.columns.for_section(section))
                for section in SECTIONS
            },
            "http": {"timeoutSec": self.http.timeout_sec},
        }


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


def _section(raw: Any, key: str) -> Mapping[str, Any]:
    value = raw.get(key) if isinstance(raw, Mapping) else None
    return value if isinstance(value, Mapping) else {}


def _value(raw: Mapping[str, Any], key: str, default: Any) -> Any:
    """Return raw[key], or the default when the key is absent or null."""
    value = raw.get(key)
    return default if value is None else value


def _str_tuple(values: Any) -> Tuple[str, ...]:
    if values is None:
        return ()
    if isinstance(values, (str, bytes)):
        values = [values]
    return tuple(str(v) for v in values if v is not None)


def _int_tuple(values: Any) -> Tuple[int, ...]:
    result: List[int] = []
    for value in values or ():
        try:
            number = int(value)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring non-numeric project id: {value!r}")
            continue
        if number not in result:
            result.append(number)
    return tuple(result)


def _query_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _columns(raw: Any) -> Optional[Tuple[ColumnSpec, ...]]:
    if raw is None:
        return None
    specs = []
    for item in raw:
        if not isinstance(item, Mapping) or not item.get("key"):
            logger.warning(f"Ignoring column spec without a key: {item!r}")
            continue
        specs.append(
            ColumnSpec(
                key=str(item["key"]),
                header=item.get("header") or None,
                default=item.get("default"),
            )
        )
    return tuple(specs)


def _columns_to_list(specs: Optional[Tuple[ColumnSpec, ...]]) -> Optional[List[Dict[str, Any]]]:
    if specs is None:
        return None
    return [{"key": s.key, "header": s.header, "default": s.default} for s in specs]


def resolve_config(raw: Optional[Mapping[str, Any]] = None) -> ReportConfig:
    """
    Merge a partial configuration document with the defaults.

    Args:
        raw: Partial configuration (camelCase keys). None or {} yields all defaults.

    Returns:
        A fully-populated ReportConfig.
    """
    raw = raw or {}
    credentials = _section(raw, "credentials")
    inputs = _section(raw, "inputs")
    discovery = _section(inputs, "discoverRecentBuilds")
    test_reporting = _section(raw, "testReporting")
    app_automate = _section(raw, "appAutomate")
    outputs = _section(raw, "outputs")
    filters = _section(raw, "filters")
    columns = _section(raw, "columns")
    http = _section(raw, "http")

    defaults = ReportConfig()

    return ReportConfig(
        credentials=CredentialsConfig(
            username_env=str(_value(credentials, "usernameEnv", defaults.credentials.username_env)),
            access_key_env=str(_value(credentials, "accessKeyEnv", defaults.credentials.access_key_env)),
        ),
        inputs=InputsConfig(
            test_reporting_build_ids=_str_tuple(inputs.get("testReportingBuildIds")),
            app_automate_build_ids=_str_tuple(inputs.get("appAutomateBuildIds")),
            app_custom_ids=_str_tuple(inputs.get("appCustomIds")),
            discover_recent_builds=DiscoveryConfig(
                enabled=bool(_value(discovery, "enabled", DiscoveryConfig.enabled)),
                max_builds_per_source=_value(
                    discovery, "maxBuildsPerSource", DiscoveryConfig.max_builds_per_source
                ),
                test_reporting_project_ids=_int_tuple(discovery.get("testReportingProjectIds")),
                days=_value(discovery, "days", DiscoveryConfig.days),
            ),
        ),
        test_reporting=TestReportingConfig(
            enabled=bool(_value(test_reporting, "enabled", True)),
            fetch_all_pages=bool(_value(test_reporting, "fetchAllPages", True)),
            include_hooks=bool(_value(test_reporting, "includeHooks", False)),
            test_run_query={
                str(k): _query_text(v)
                for k, v in dict(_value(test_reporting, "testRunQuery", {})).items()
            },
        ),
        app_automate=AppAutomateConfig(
            enabled=bool(_value(app_automate, "enabled", True)),
            session_limit=_value(app_automate, "sessionLimit", AppAutomateConfig.session_limit),
            include_session_details=bool(_value(app_automate, "includeSessionDetails", True)),
            session_status_filter=str(_value(app_automate, "sessionStatusFilter", "")),
            app_list_limit=_value(app_automate, "appListLimit", AppAutomateConfig.app_list_limit),
        ),
        outputs=OutputsConfig(
            directory=str(_value(outputs, "directory", OutputsConfig.directory)),
            base_name=str(_value(outputs, "baseName", OutputsConfig.base_name)),
            formats=tuple(
                f.strip().lower() for f in _str_tuple(_value(outputs, "formats", SUPPORTED_FORMATS))
            ),
            markdown_max_rows=_value(outputs, "markdownMaxRows", 0),
        ),
        filters=FiltersConfig(
            days=filters.get("days"),
            projects=_str_tuple(filters.get("projects")),
            teams=_str_tuple(filters.get("teams")),
            people=_str_tuple(filters.get("people")),
            case_sensitive=bool(_value(filters, "caseSensitive", False)),
            apply_days_to_apps=bool(_value(filters, "applyDaysToApps", False)),
        ),
        columns=ColumnsConfig(**{section: _columns(columns.get(section)) for section in SECTIONS}),
        http=HttpConfig(timeout_sec=_value(http, "timeoutSec", HttpConfig.timeout_sec)),
    )


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def is_placeholder_value(value: str) -> bool:
    """True for empty strings and sample-config markers like 'replace-with-build-id'."""
    normalized = str(value).strip().lower()
    return not normalized or any(marker in normalized for marker in PLACEHOLDER_MARKERS)


def _is_positive_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value > 0


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def validate_config(config: ReportConfig) -> None:
    """
    Validate a resolved configuration.

    Every violation is collected before raising, so the operator sees the
    whole list at once.

    Raises:
        ConfigurationError: With ``errors`` listing all violations.
    """
    errors: List[str] = []
    inputs = config.inputs
    can_discover = inputs.discover_recent_builds.enabled

    if config.test_reporting.enabled:
        if not inputs.test_reporting_build_ids and not can_discover:
            errors.append(
                "testReporting.enabled is true but inputs.testReportingBuildIds is empty "
                "and build discovery is disabled."
            )
        invalid = [v for v in inputs.test_reporting_build_ids if is_placeholder_value(v)]
        if invalid:
            errors.append(f"testReportingBuildIds contains placeholder values: {', '.join(invalid)}")

    if config.app_automate.enabled:
        if not inputs.app_automate_build_ids and not can_discover:
            errors.append(
                "appAutomate.enabled is true but inputs.appAutomateBuildIds is empty "
                "and build discovery is disabled."
            )
        invalid = [v for v in inputs.app_automate_build_ids if is_placeholder_value(v)]
        if invalid:
            errors.append(f"appAutomateBuildIds contains placeholder values: {', '.join(invalid)}")
        invalid = [v for v in inputs.app_custom_ids if is_placeholder_value(v)]
        if invalid:
            errors.append(f"appCustomIds contains placeholder values: {', '.join(invalid)}")
        if not _is_positive_int(config.app_automate.session_limit):
            errors.append("appAutomate.sessionLimit must be a positive integer.")
        if not _is_positive_int(config.app_automate.app_list_limit):
            errors.append("appAutomate.appListLimit must be a positive integer.")

    if can_discover:
        if not _is_positive_int(inputs.discover_recent_builds.max_builds_per_source):
            errors.append("inputs.discoverRecentBuilds.maxBuildsPerSource must be a positive integer.")
        if not _is_positive_number(inputs.discover_recent_builds.days):
            errors.append("inputs.discoverRecentBuilds.days must be a positive number.")

    if config.filters.days is not None and not _is_positive_number(config.filters.days):
        errors.append(f"Invalid filters.days ({config.filters.days!r}). Use a positive number or null.")

    unknown_formats = [f for f in config.outputs.formats if f not in SUPPORTED_FORMATS]
    if unknown_formats:
        errors.append(
            f"outputs.formats contains unsupported values: {', '.join(unknown_formats)} "
            f"(supported: {', '.join(SUPPORTED_FORMATS)})"
        )
    markdown_max_rows = config.outputs.markdown_max_rows
    if isinstance(markdown_max_rows, bool) or not isinstance(markdown_max_rows, int) or markdown_max_rows < 0:
        errors.append("outputs.markdownMaxRows must be a non-negative integer (0 = no cap).")

    if not _is_positive_number(config.http.timeout_sec):
        errors.append("http.timeoutSec must be a positive number.")

    if errors:
        message = "\n".join(
            ["Invalid report configuration."]
            + [f"  - {e}" for e in errors]
            + [
                "Tip: provide real BrowserStack build IDs, enable discovery, or disable the "
                "corresponding section (testReporting.enabled/appAutomate.enabled)."
            ]
        )
        raise ConfigurationError(message, errors=errors)

    logger.debug("Report configuration validated")
