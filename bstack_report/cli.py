"""
BrowserStack report command line entry point.

Usage:
    bstack-report --config config/browserstack-report.config.sample.yaml
    bstack-report -c report.json --verbose
"""

from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from loguru import logger

from bstack_report.config.loader import ConfigLoader
from bstack_report.config.resolver import resolve_config
from bstack_report.errors import ReportError
from bstack_report.reporting.generator import ReportGenerator

DEFAULT_CONFIG_PATH = "config/browserstack-report.config.sample.yaml"


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="BrowserStack Report - aggregate Test Reporting and App Automate data"
    )
    parser.add_argument(
        "--config", "-c",
        type=str,
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to the report configuration file (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point; returns the process exit code."""
    args = parse_args(argv)
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if args.verbose else "INFO")

    try:
        raw = ConfigLoader().load(args.config)
        result = ReportGenerator(resolve_config(raw)).run()
    except (ReportError, FileNotFoundError) as e:
        logger.error(str(e))
        return 1

    logger.info(f"Wrote {len(result.files)} files to {result.output_dir}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
