"""
BrowserStack Report - Core Source Package.

This package contains the core logic for:
- Configuration: Report config loading, default resolution and validation.
- API Client: Authenticated GET requests and pagination against BrowserStack.
- Collectors: Build discovery, test-run flattening and session enrichment.
- Reporting: Filtering, sorting, column projection and multi-format output.
"""

__version__ = "0.1.0"
