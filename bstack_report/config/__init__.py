"""
Configuration Management Module.

Handles loading, default resolution and validation of:
- The report configuration document (JSON/YAML).
- Credentials, inputs, per-source toggles, outputs, filters and column specs.
"""

from bstack_report.config.loader import ConfigLoader, ConfigurationError
from bstack_report.config.resolver import (
    ColumnSpec,
    ReportConfig,
    is_placeholder_value,
    resolve_config,
    validate_config,
)
from bstack_report.config.schema_registry import SchemaRegistry

__all__ = [
    "ColumnSpec",
    "ConfigLoader",
    "ConfigurationError",
    "ReportConfig",
    "SchemaRegistry",
    "is_placeholder_value",
    "resolve_config",
    "validate_config",
]
