"""
Schema Validation Utilities
===========================
JSON Schema loading and validation helpers for pipeline definitions and the
module wire protocol.
"""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict

from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError


@lru_cache(maxsize=8)
def _load_schema(schema_filename: str) -> Dict[str, Any]:
    """Load a schema JSON file from opentrace/schemas.

    Args:
        schema_filename: File name under opentrace/schemas (for example 'pipeline.schema.json').

    Raises:
        FileNotFoundError: When schema file is missing.
        ValueError: When schema file is not valid JSON or not a JSON object.
    """
    schemas_dir = Path(__file__).resolve().parent.parent / "schemas"
    schema_path = (schemas_dir / schema_filename).resolve()
    if not schema_path.is_relative_to(schemas_dir.resolve()):
        raise ValueError(f"Schema path escapes schemas directory: {schema_filename}")
    if not schema_path.exists():
        raise FileNotFoundError(f"Schema not found: {schema_filename}")

    try:
        with open(schema_path, "r", encoding="utf-8") as f:
            schema = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ValueError(f"Failed to load schema {schema_filename}: {e}")

    if not isinstance(schema, dict):
        raise ValueError(f"Schema {schema_filename} must be a JSON object")
    return schema


@lru_cache(maxsize=8)
def _validator(schema_filename: str) -> Draft202012Validator:
    return Draft202012Validator(_load_schema(schema_filename))


def validate_against_schema(payload: Any, schema_filename: str) -> None:
    """Validate payload against a JSON Schema.

    Raises:
        ValueError: When payload fails validation. The message names the
            first failing path, e.g. ``Validation failed at 'modules/0/name'``.
    """
    validator = _validator(schema_filename)

    errors = sorted(validator.iter_errors(payload), key=lambda e: [str(p) for p in e.path])
    if not errors:
        return

    error: ValidationError = errors[0]
    path = "/".join(str(p) for p in error.path)
    prefix = f"Validation failed at '{path}': " if path else "Validation failed: "
    raise ValueError(prefix + error.message)


def validate_pipeline_document(document: Any) -> None:
    """Validate a parsed pipeline definition (the YAML document)."""
    validate_against_schema(document, "pipeline.schema.json")


def validate_module_input(payload: Any) -> None:
    validate_against_schema(payload, "module_input.schema.json")


def validate_module_output(payload: Any) -> None:
    validate_against_schema(payload, "module_output.schema.json")

