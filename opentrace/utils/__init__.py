"""
Utility Functions
=================
Schema validation and environment expansion helpers.
"""

from .schema_validation import (
    validate_against_schema,
    validate_pipeline_document,
    validate_module_input,
    validate_module_output,
)

from .env_expansion import expand_env_tokens

__all__ = [
    "validate_against_schema",
    "validate_pipeline_document",
    "validate_module_input",
    "validate_module_output",
    "expand_env_tokens",
]
