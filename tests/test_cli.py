from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from opentrace.cli import EXIT_OK, EXIT_STEP_FAILED, EXIT_USAGE, main

pytestmark = pytest.mark.skipif(os.name == "nt", reason="helper modules rely on shebang scripts")


def _write_pipeline(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "pipeline.yaml"
    path.write_text(text, encoding="utf-8")
    return path


TWO_STEPS = """
modules:
  - name: ip_locator
    input: "8.8.8.8"
  - name: asn_lookup
    input: "$ip_locator"
"""


@pytest.mark.unit
def test_validate_lists_steps(tmp_path: Path, capsys) -> None:
    path = _write_pipeline(tmp_path, TWO_STEPS)

    assert main(["validate", str(path)]) == EXIT_OK

    out = capsys.readouterr().out
    assert "1. ip_locator <- '8.8.8.8'" in out
    assert "2. asn_lookup <- $ip_locator" in out


@pytest.mark.unit
def test_validate_rejects_empty_pipeline(tmp_path: Path, capsys) -> None:
    path = _write_pipeline(tmp_path, "modules: []\n")

    assert main(["validate", str(path)]) == EXIT_USAGE
    assert "Invalid pipeline" in capsys.readouterr().err


@pytest.mark.unit
def test_run_missing_file_is_usage_error(tmp_path: Path) -> None:
    assert main(["run", str(tmp_path / "missing.yaml"), "--bin-dir", str(tmp_path)]) == EXIT_USAGE


@pytest.mark.unit
def test_run_success_writes_report(tmp_path: Path, module_dir: Path, make_recording_module, capsys) -> None:
    make_recording_module("ip_locator", "'Mountain View'")
    make_recording_module("asn_lookup", "'AS15169 ' + request['input']")
    path = _write_pipeline(tmp_path, TWO_STEPS)
    report = tmp_path / "out" / "report.json"

    code = main(["--log-level", "ERROR", "run", str(path), "--bin-dir", str(module_dir), "--report", str(report)])

    assert code == EXIT_OK
    payload = json.loads(report.read_text(encoding="utf-8"))
    assert payload["success"] is True
    assert payload["pipeline_source"] == str(path)
    assert payload["outputs"] == {"ip_locator": "Mountain View", "asn_lookup": "AS15169 Mountain View"}
    assert "Success: True" in capsys.readouterr().out


@pytest.mark.unit
def test_run_print_outputs_emits_json_on_stdout(tmp_path: Path, module_dir: Path, make_recording_module, capsys) -> None:
    make_recording_module("ip_locator", "'Mountain View'")
    make_recording_module("asn_lookup", "'AS15169'")
    path = _write_pipeline(tmp_path, TWO_STEPS)

    code = main(["--log-level", "ERROR", "run", str(path), "--bin-dir", str(module_dir), "--print-outputs"])

    captured = capsys.readouterr()
    assert code == EXIT_OK
    assert json.loads(captured.out) == {"ip_locator": "Mountain View", "asn_lookup": "AS15169"}
    assert "Success: True" in captured.err


@pytest.mark.unit
def test_run_failure_reports_step(tmp_path: Path, module_dir: Path, make_recording_module, make_module, capsys) -> None:
    make_recording_module("ip_locator", "'Mountain View'")
    make_module("asn_lookup", "import sys\nsys.stdin.read()\nprint('not json')\n")
    path = _write_pipeline(tmp_path, TWO_STEPS)
    report = tmp_path / "report.json"

    code = main(["--log-level", "ERROR", "run", str(path), "--bin-dir", str(module_dir), "--report", str(report)])

    assert code == EXIT_STEP_FAILED
    out = capsys.readouterr().out
    assert "Success: False" in out
    assert "[asn_lookup]" in out

    payload = json.loads(report.read_text(encoding="utf-8"))
    assert payload["success"] is False
    assert payload["outputs"] == {"ip_locator": "Mountain View"}
    assert payload["steps"]["asn_lookup"]["error_type"] == "ModuleProtocolError"
