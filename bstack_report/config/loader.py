"""
Configuration Loader Module.

Provides the report configuration loader that handles:
- Loading YAML and JSON configuration files.
- Shape validation of the raw document using JSON Schema.

Default resolution and semantic validation live in
:mod:`bstack_report.config.resolver`.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from loguru import logger

from bstack_report.config.schema_registry import SchemaRegistry
from bstack_report.errors import ReportError

DEFAULT_SCHEMA_DIR = Path(__file__).parent / "schemas"
REPORT_CONFIG_SCHEMA = "report_config_schema"


class ConfigurationError(ReportError):
    """Raised when a configuration file or resolved configuration is invalid."""

    def __init__(self, message: str, errors: Optional[List[str]] = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class ConfigLoader:
    """
    Report configuration loader with schema validation.

    Reads a partial report configuration document (YAML/JSON) and checks its
    shape against the packaged JSON schema. The returned mapping still has to
    go through :func:`bstack_report.config.resolver.resolve_config`.

    Attributes:
        config_dir: Base directory for configuration files.
        schema_registry: Registry of JSON schemas for validation.
    """

    SUPPORTED_EXTENSIONS = {".yaml", ".yml", ".json"}

    def __init__(
        self,
        config_dir: str | Path = "config",
        schema_dir: str | Path | None = None,
    ) -> None:
        """
        Initialize the configuration loader.

        Args:
            config_dir: Directory searched for relative config paths.
            schema_dir: Directory containing JSON schema files.
                        Defaults to the schemas shipped with the package.
        """
        self.config_dir = Path(config_dir)
        self.schema_registry = SchemaRegistry(schema_dir or DEFAULT_SCHEMA_DIR)
        logger.debug(f"ConfigLoader initialized - config_dir={self.config_dir}")

    def load(
        self,
        filename: str | Path,
        schema_name: Optional[str] = REPORT_CONFIG_SCHEMA,
        *,
        validate: bool = True,
    ) -> Dict[str, Any]:
        """
        Load a configuration file with optional schema validation.

        Args:
            filename: Path of the config file, absolute or relative to config_dir.
            schema_name: JSON schema name to validate against (without extension).
            validate: Whether to validate against the schema.

        Returns:
            Parsed configuration as a dictionary.

        Raises:
            ConfigurationError: If the file cannot be parsed or fails validation.
            FileNotFoundError: If the configuration file does not exist.
        """
        file_path = self._resolve_path(filename)
        logger.info(f"Loading configuration: {file_path}")
        data = self._read_file(file_path)

        if validate and schema_name:
            self._validate(data, schema_name)

        return data

    def _resolve_path(self, filename: str | Path) -> Path:
        """Resolve a filename to a full path, checking the path itself first."""
        path = Path(filename)
        if path.exists():
            return path

        config_path = self.config_dir / path
        if not path.is_absolute() and config_path.exists():
            return config_path

        raise FileNotFoundError(
            f"Configuration file not found: {filename} "
            f"(searched current directory and {self.config_dir})"
        )

    def _read_file(self, file_path: Path) -> Dict[str, Any]:
        """Read and parse a YAML or JSON file."""
        suffix = file_path.suffix.lower()
        if suffix not in self.SUPPORTED_EXTENSIONS:
            raise ConfigurationError(
                f"Unsupported file format '{suffix}'. "
                f"Supported: {sorted(self.SUPPORTED_EXTENSIONS)}"
            )

        try:
            content = file_path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"Failed to read file {file_path}: {e}") from e

        try:
            if suffix in {".yaml", ".yml"}:
                data = yaml.safe_load(content)
            else:
                data = json.loads(content)
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Failed to parse {file_path}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Configuration file must contain a mapping (dict), "
                f"got {type(data).__name__}: {file_path}"
            )

        return data

    def _validate(self, data: Dict[str, Any], schema_name: str) -> None:
        """Validate configuration data against a JSON schema."""
        try:
            self.schema_registry.validate(data, schema_name)
        except Exception as e:
            raise ConfigurationError(
                f"Configuration validation failed against schema '{schema_name}': {e}",
                errors=getattr(e, "errors", None),
            ) from e
