"""
Reporting Module.

Handles everything after collection:
- Keyword and day-window filtering, newest-first sorting.
- Overview metrics.
- Column projection.
- CSV / XLSX / Markdown / JSON output.
"""

from bstack_report.reporting.generator import ReportGenerator, ReportResult
from bstack_report.reporting.renderers import ReportRenderer

__all__ = ["ReportGenerator", "ReportRenderer", "ReportResult"]
