from __future__ import annotations

import json
from pathlib import Path

import pytest

from opentrace.errors import ModuleProcessError
from opentrace.pipeline.context import RunContext


@pytest.mark.unit
def test_mark_checkpoint_ignores_blank_name() -> None:
    ctx = RunContext()
    ctx.mark_checkpoint(" ")
    ctx.mark_checkpoint("")
    assert ctx.checkpoints == {}


@pytest.mark.unit
def test_step_success_records_output_and_timing() -> None:
    ctx = RunContext()
    ctx.start_step("ip_locator")
    ctx.record_step_success("ip_locator", "Mountain View", duration_seconds=0.25)

    record = ctx.steps["ip_locator"]
    assert record["status"] == "succeeded"
    assert record["duration_seconds"] == 0.25
    assert record["result_chars"] == len("Mountain View")
    assert record["finished_at"]
    assert ctx.outputs == {"ip_locator": "Mountain View"}
    assert ctx.success is True


@pytest.mark.unit
def test_step_failure_marks_run_failed() -> None:
    ctx = RunContext()
    ctx.start_step("asn_lookup", reference="ip_locator")
    ctx.record_step_failure("asn_lookup", ModuleProcessError("module cancelled", cancelled=True), cancelled=True)

    assert ctx.success is False
    assert ctx.cancelled is True
    assert ctx.errors == ["[asn_lookup] module cancelled"]
    assert ctx.steps["asn_lookup"]["reference"] == "ip_locator"
    assert ctx.steps["asn_lookup"]["error_type"] == "ModuleProcessError"
    assert "asn_lookup" not in ctx.outputs


@pytest.mark.unit
def test_payload_is_json_ready_and_detached() -> None:
    ctx = RunContext(pipeline_source="p.yaml")
    ctx.mark_checkpoint("start")
    ctx.start_step("a")
    ctx.record_step_success("a", "A")

    payload = ctx.to_payload()
    ctx.steps["a"]["status"] = "mutated"
    json.dumps(payload)

    assert payload["run_id"] == ctx.run_id
    assert payload["created_at"] == ctx.created_at
    assert payload["pipeline_source"] == "p.yaml"
    assert set(payload["checkpoints"]) == {"start"}
    assert payload["steps"]["a"]["status"] == "succeeded"
    assert payload["outputs"] == {"a": "A"}


@pytest.mark.unit
def test_write_json_creates_parent_directories(tmp_path: Path) -> None:
    ctx = RunContext()
    ctx.record_step_success("a", "A")

    out = tmp_path / "reports" / "nested" / "run.json"
    ctx.write_json(out)

    payload = json.loads(out.read_text(encoding="utf-8"))
    assert payload["schema_version"] == "1.0"
    assert payload["run_id"] == ctx.run_id
    assert payload["outputs"] == {"a": "A"}
    assert out.read_text(encoding="utf-8").endswith("\n")
