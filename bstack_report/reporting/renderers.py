"""
Multi-format report renderer.

Serializes the final row sections (overview, builds, tests, sessions, apps)
to any of:
- CSV: one file per section.
- XLSX: one workbook, one sheet per section.
- Markdown: one document, one table per section.
- JSON: one file per section.

Every format preserves section order and row order.
"""

from __future__ import annotations

import csv
import io
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import pandas as pd
from loguru import logger

from bstack_report.text import cell_text

Row = Dict[str, Any]
Sections = Mapping[str, Sequence[Row]]

MAX_SHEET_NAME_LENGTH = 31
MAX_COLUMN_WIDTH = 50
LINE_BREAK_MARKER = " <br> "

SECTION_LABELS = {
    "overview": "Overview",
    "builds": "Test Reporting Builds",
    "tests": "Test Reporting Tests",
    "sessions": "App Automate Sessions",
    "apps": "App Automate Apps",
}


def to_csv(rows: Sequence[Row]) -> str:
    """
    Serialize rows as CSV text.

    The header comes from the first row's keys. Values containing a comma,
    quote or newline are quoted with internal quotes doubled.
    """
    if not rows:
        return ""
    headers = list(rows[0].keys())
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n", quoting=csv.QUOTE_MINIMAL)
    writer.writerow(headers)
    for row in rows:
        writer.writerow([cell_text(row.get(h)) for h in headers])
    text = buffer.getvalue()
    return text[:-1] if text.endswith("\n") else text


def _markdown_cell(value: Any) -> str:
    text = cell_text(value).replace("\r\n", "\n").replace("\n", LINE_BREAK_MARKER)
    return text.replace("|", "\\|")


def to_markdown_table(rows: Sequence[Row], max_rows: int = 0) -> str:
    """
    Serialize rows as a Markdown table.

    Args:
        rows: Rows to render; the header comes from the first row's keys.
        max_rows: Maximum rows to show (0 = all). Omitted rows are reported
            in a trailing note.
    """
    if not rows:
        return "_No rows_"
    headers = list(rows[0].keys())
    visible = rows[:max_rows] if max_rows > 0 else rows

    lines = [
        f"| {' | '.join(_markdown_cell(h) for h in headers)} |",
        f"| {' | '.join('---' for _ in headers)} |",
    ]
    lines.extend(f"| {' | '.join(_markdown_cell(row.get(h)) for h in headers)} |" for row in visible)

    table = "\n".join(lines)
    if max_rows > 0 and len(rows) > max_rows:
        table += f"\n\n_Showing {max_rows} of {len(rows)} rows. See CSV/XLSX for full data._"
    return table


def _column_width(values: pd.Series, header: Any) -> int:
    """Display width for a worksheet column; missing cells count as empty."""
    lengths = [len(cell_text(None if pd.isna(v) else v)) for v in values]
    return min(max(lengths + [len(str(header))]) + 2, MAX_COLUMN_WIDTH)


def safe_sheet_name(name: str) -> str:
    """Truncate a worksheet name to Excel's limit."""
    return name[:MAX_SHEET_NAME_LENGTH] or "sheet"


class ReportRenderer:
    """
    Writes report sections in the requested formats.

    Usage::

        renderer = ReportRenderer("reports/out", "browserstack-report", markdown_max_rows=200)
        files = renderer.render(sections, formats=["csv", "md"])
    """

    def __init__(
        self,
        output_dir: str | Path,
        base_name: str,
        markdown_max_rows: int = 0,
    ) -> None:
        """
        Initialize the renderer.

        Args:
            output_dir: Directory receiving all files (created if missing).
            base_name: File name prefix.
            markdown_max_rows: Per-section row cap for the Markdown document.
        """
        self.output_dir = Path(output_dir)
        self.base_name = base_name
        self.markdown_max_rows = markdown_max_rows

    def render(self, sections: Sections, formats: Sequence[str]) -> List[Path]:
        """
        Write every requested format.

        Returns:
            Paths of all written files.
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)
        written: List[Path] = []
        if "csv" in formats:
            written.extend(self.write_csv_files(sections))
        if "xlsx" in formats:
            written.append(self.write_excel_file(sections))
        if "md" in formats:
            written.append(self.write_markdown_file(sections))
        if "json" in formats:
            written.extend(self.write_json_files(sections))
        return written

    def _section_path(self, section: str, suffix: str) -> Path:
        return self.output_dir / f"{self.base_name}-{section}.{suffix}"

    def write_csv_files(self, sections: Sections) -> List[Path]:
        """Write one CSV file per section."""
        paths = []
        for section, rows in sections.items():
            path = self._section_path(section, "csv")
            path.write_text(to_csv(rows), encoding="utf-8")
            paths.append(path)
        logger.info(f"CSV files exported to: {self.output_dir}")
        return paths

    def write_json_files(self, sections: Sections) -> List[Path]:
        """Write one indented JSON file per section."""
        paths = []
        for section, rows in sections.items():
            path = self._section_path(section, "json")
            path.write_text(
                json.dumps(list(rows), indent=2, default=str, ensure_ascii=False),
                encoding="utf-8",
            )
            paths.append(path)
        logger.info(f"JSON files exported to: {self.output_dir}")
        return paths

    def write_excel_file(self, sections: Sections) -> Path:
        """Write a single workbook with one sheet per section."""
        path = self.output_dir / f"{self.base_name}.xlsx"
        with pd.ExcelWriter(path, engine="xlsxwriter") as writer:
            header_format = writer.book.add_format(
                {"bold": True, "text_wrap": True, "valign": "top", "border": 1}
            )
            for section, rows in sections.items():
                sheet_name = safe_sheet_name(section)
                df = pd.DataFrame(list(rows))
                df.to_excel(writer, sheet_name=sheet_name, index=False)
                worksheet = writer.sheets[sheet_name]
                for col_num, column in enumerate(df.columns):
                    worksheet.write(0, col_num, column, header_format)
                    worksheet.set_column(col_num, col_num, _column_width(df[column], column))
        logger.info(f"XLSX report exported to: {path}")
        return path

    def write_markdown_file(
        self,
        sections: Sections,
        generated_at: Optional[datetime] = None,
    ) -> Path:
        """Write a single Markdown document with one table per section."""
        generated_at = generated_at or datetime.now(timezone.utc)
        lines = [
            "# BrowserStack Report",
            "",
            f"Generated at: {generated_at.isoformat()}",
            "",
        ]
        for section, rows in sections.items():
            lines.append(f"## {SECTION_LABELS.get(section, section)}")
            lines.append("")
            lines.append(to_markdown_table(rows, self.markdown_max_rows))
            lines.append("")

        path = self.output_dir / f"{self.base_name}.md"
        path.write_text("\n".join(lines), encoding="utf-8")
        logger.info(f"Markdown report exported to: {path}")
        return path
