from __future__ import annotations

import pytest

from opentrace.utils.schema_validation import (
    validate_against_schema,
    validate_module_input,
    validate_module_output,
    validate_pipeline_document,
)


@pytest.mark.unit
def test_pipeline_document_error_names_failing_path() -> None:
    with pytest.raises(ValueError, match="Validation failed at 'modules/1'"):
        validate_pipeline_document({"modules": [{"name": "a"}, {"input": "x"}]})


@pytest.mark.unit
def test_pipeline_document_allows_extra_keys() -> None:
    validate_pipeline_document({"version": 1, "modules": [{"name": "a", "description": "first"}]})


@pytest.mark.unit
@pytest.mark.parametrize("value", ["8.8.8.8", 15169, 2.5, True, None])
def test_pipeline_input_accepts_scalars(value) -> None:
    validate_pipeline_document({"modules": [{"name": "a", "input": value}]})


@pytest.mark.unit
@pytest.mark.parametrize("payload", [{"result": "x"}, {"result": ""}, {"result": "x", "meta": {}}])
def test_module_output_accepts_string_result(payload) -> None:
    validate_module_output(payload)


@pytest.mark.unit
@pytest.mark.parametrize("payload", [{}, {"result": 1}, "result"])
def test_module_output_rejects_other_shapes(payload) -> None:
    with pytest.raises(ValueError, match="Validation failed"):
        validate_module_output(payload)


@pytest.mark.unit
def test_module_input_requires_string_input() -> None:
    validate_module_input({"input": "x", "config": None})
    with pytest.raises(ValueError):
        validate_module_input({"input": 1, "config": {}})


@pytest.mark.unit
def test_unknown_schema_raises() -> None:
    with pytest.raises(FileNotFoundError):
        validate_against_schema({}, "nope.schema.json")
