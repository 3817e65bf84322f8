from __future__ import annotations

import pytest
from loguru import logger

from opentrace.utils.env_expansion import expand_env_tokens


@pytest.mark.unit
def test_braced_tokens_are_expanded_from_mapping() -> None:
    text = 'config: {api_key: "${TOKEN}", region: "${REGION}"}'
    out = expand_env_tokens(text, {"TOKEN": "abc123", "REGION": "eu"})
    assert out == 'config: {api_key: "abc123", region: "eu"}'


@pytest.mark.unit
def test_bare_dollar_names_are_left_alone() -> None:
    text = 'input: "$ip_locator"'
    assert expand_env_tokens(text, {"ip_locator": "should-not-appear"}) == text


@pytest.mark.unit
def test_undefined_variable_expands_to_empty_and_warns() -> None:
    messages: list[str] = []
    logger.add(lambda m: messages.append(str(m)), level="WARNING")

    out = expand_env_tokens("key: '${MISSING_VAR}${MISSING_VAR}'", {})

    assert out == "key: ''"
    warnings = [m for m in messages if "MISSING_VAR" in m]
    assert len(warnings) == 1


@pytest.mark.unit
def test_defaults_to_process_environment(monkeypatch) -> None:
    monkeypatch.setenv("OPENTRACE_TEST_VALUE", "from-env")
    assert expand_env_tokens("v: ${OPENTRACE_TEST_VALUE}") == "v: from-env"
