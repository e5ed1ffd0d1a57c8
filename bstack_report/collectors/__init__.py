"""
Collectors Module.

Turns BrowserStack API payloads into flat rows:
- Discovery: recent build IDs when none were configured.
- Test Reporting: build rows and flattened test-run rows.
- App Automate: session rows (with detail enrichment) and app inventory rows.
"""

from bstack_report.collectors.app_automate import collect_app_automate
from bstack_report.collectors.discovery import DiscoveryExhausted, resolve_build_inputs
from bstack_report.collectors.test_reporting import collect_test_reporting, flatten_test_hierarchy

__all__ = [
    "DiscoveryExhausted",
    "collect_app_automate",
    "collect_test_reporting",
    "flatten_test_hierarchy",
    "resolve_build_inputs",
]
