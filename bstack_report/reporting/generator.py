"""
Report Generator.

Runs the whole pipeline for one resolved configuration:

    validate -> credentials -> discovery -> collect -> filter & sort
    -> overview -> column projection -> render

Any fatal error propagates to the caller. Files written before the error are
left in place.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from loguru import logger

from bstack_report.api_client.auth import build_auth_headers
from bstack_report.api_client.client import BrowserStackClient
from bstack_report.api_client.pagination import JsonGetter
from bstack_report.collectors.app_automate import collect_app_automate
from bstack_report.collectors.discovery import resolve_build_inputs
from bstack_report.collectors.test_reporting import collect_test_reporting
from bstack_report.config.resolver import SECTIONS, ReportConfig, validate_config
from bstack_report.reporting.columns import pick_columns
from bstack_report.reporting.filters import filter_and_sort_sections
from bstack_report.reporting.overview import create_overview_rows
from bstack_report.reporting.renderers import ReportRenderer

Row = Dict[str, Any]


@dataclass
class ReportResult:
    """
    Outcome of a report run.

    Attributes:
        config: Config with discovered build IDs filled in.
        sections: Final rows per section, in output order.
        files: Every file written.
        output_dir: Directory holding the files.
    """

    config: ReportConfig
    sections: Dict[str, List[Row]] = field(default_factory=dict)
    files: List[Path] = field(default_factory=list)
    output_dir: Path = Path(".")


class ReportGenerator:
    """
    Produces the BrowserStack report for a resolved configuration.

    Usage::

        config = resolve_config(ConfigLoader().load("browserstack-report.yaml"))
        result = ReportGenerator(config).run()
        print(result.output_dir)
    """

    def __init__(
        self,
        config: ReportConfig,
        client: Optional[JsonGetter] = None,
        environ: Optional[Mapping[str, str]] = None,
        now: Optional[datetime] = None,
    ) -> None:
        """
        Initialize the generator.

        Args:
            config: Resolved report configuration.
            client: JSON client to use; a BrowserStackClient is built when omitted.
            environ: Environment mapping for credentials (defaults to os.environ).
            now: Reference time for discovery and day-window filters.
        """
        self.config = config
        self._client = client
        self._environ = environ
        self._now = now

    def run(self) -> ReportResult:
        """
        Execute the pipeline and write the report files.

        Raises:
            ConfigurationError, CredentialError, DiscoveryExhausted, TransportError.
        """
        validate_config(self.config)
        headers = build_auth_headers(self.config.credentials, self._environ)

        owns_client = self._client is None
        client = self._client or BrowserStackClient(headers, timeout_sec=self.config.http.timeout_sec)
        try:
            config = resolve_build_inputs(client, self.config, self._now)
            builds, tests = collect_test_reporting(client, config)
            sessions, apps = collect_app_automate(client, config)
        finally:
            if owns_client and isinstance(client, BrowserStackClient):
                client.close()

        sections = self.build_sections(config, builds, tests, sessions, apps)

        output_dir = Path(config.outputs.directory)
        renderer = ReportRenderer(output_dir, config.outputs.base_name, config.outputs.markdown_max_rows)
        files = renderer.render(sections, config.outputs.formats)

        logger.info(f"Report generated in: {output_dir.resolve()}")
        return ReportResult(config=config, sections=sections, files=files, output_dir=output_dir)

    def build_sections(
        self,
        config: ReportConfig,
        builds: List[Row],
        tests: List[Row],
        sessions: List[Row],
        apps: List[Row],
    ) -> Dict[str, List[Row]]:
        """Filter, sort, summarize and project the collected rows."""
        ordered = filter_and_sort_sections(
            {"builds": builds, "tests": tests, "sessions": sessions, "apps": apps},
            config.filters,
            self._now,
        )
        ordered["overview"] = create_overview_rows(
            ordered["builds"], ordered["tests"], ordered["sessions"]
        )
        logger.info(
            f"Rows after filtering: builds={len(ordered['builds'])} tests={len(ordered['tests'])} "
            f"sessions={len(ordered['sessions'])} apps={len(ordered['apps'])}"
        )
        return {
            section: pick_columns(ordered[section], config.columns.for_section(section))
            for section in SECTIONS
        }
