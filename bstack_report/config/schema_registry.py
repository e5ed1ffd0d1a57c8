"""
Schema Registry Module.

Holds the JSON schemas describing the camelCase report configuration document
(``credentials``, ``inputs``, ``testReporting``, ``appAutomate``, ``outputs``,
``filters``, ``columns``, ``http``). Shape problems such as a misspelled
section or a string where a list of build IDs is expected are caught here,
before default resolution.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List

import jsonschema
from loguru import logger


class SchemaValidationError(Exception):
    """Raised when a report configuration document does not match its schema."""

    def __init__(self, message: str, errors: List[str] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


def _document_path(error: jsonschema.ValidationError) -> str:
    """Dotted location of an error in the document, e.g. ``outputs.formats[1]``."""
    path = ""
    for part in error.absolute_path:
        path += f"[{part}]" if isinstance(part, int) else (f".{part}" if path else str(part))
    return path or "(document)"


class SchemaRegistry:
    """
    Lazily loaded, cached JSON schemas for report configuration documents.

    Attributes:
        schema_dir: Directory containing ``<name>.json`` schema files.
    """

    def __init__(self, schema_dir: str | Path) -> None:
        self.schema_dir = Path(schema_dir)
        self._schemas: Dict[str, Dict[str, Any]] = {}

    def get_schema(self, schema_name: str) -> Dict[str, Any]:
        """
        Return a schema by name (file name without ``.json``), reading it once.

        Raises:
            FileNotFoundError: If the schema file does not exist.
            SchemaValidationError: If the schema file is not valid JSON.
        """
        if schema_name in self._schemas:
            return self._schemas[schema_name]

        schema_path = self.schema_dir / f"{schema_name}.json"
        if not schema_path.exists():
            raise FileNotFoundError(
                f"Schema not found: {schema_name} (expected at {schema_path})"
            )

        try:
            schema = json.loads(schema_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise SchemaValidationError(f"Failed to load schema {schema_name}: {e}") from e

        self._schemas[schema_name] = schema
        logger.debug(f"Schema loaded: {schema_name}")
        return schema

    def validate(self, document: Dict[str, Any], schema_name: str) -> None:
        """
        Check a report configuration document against a named schema.

        Every mismatch is reported, each prefixed with its dotted location in
        the document (``[inputs.testReportingBuildIds] 'abc' is not of type 'array'``).

        Raises:
            SchemaValidationError: With ``errors`` listing each mismatch.
        """
        validator = jsonschema.Draft7Validator(self.get_schema(schema_name))
        errors = sorted(validator.iter_errors(document), key=lambda e: list(map(str, e.absolute_path)))
        if not errors:
            logger.debug(f"Report document matches schema: {schema_name}")
            return

        messages = [f"  [{_document_path(error)}] {error.message}" for error in errors]
        raise SchemaValidationError(
            f"Report configuration does not match schema '{schema_name}' "
            f"({len(errors)} error(s)):\n" + "\n".join(messages),
            errors=messages,
        )
