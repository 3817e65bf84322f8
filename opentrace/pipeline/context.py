"""Pipeline run context.

This module defines a small, serializable state object that the orchestrator
fills in while a pipeline runs. The command line writes it out as a run
report.

It stores only stable primitives. The Output Store remains the source of
truth for results during the run.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional
from uuid import uuid4

STEP_RUNNING = "running"
STEP_SUCCEEDED = "succeeded"
STEP_FAILED = "failed"


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class RunContext:
    """Serializable state for one pipeline execution."""

    pipeline_source: Optional[str] = None
    run_id: str = field(default_factory=lambda: uuid4().hex)
    created_at: str = field(default_factory=_utc_now_iso)

    success: bool = True
    cancelled: bool = False
    errors: list[str] = field(default_factory=list)

    checkpoints: Dict[str, str] = field(default_factory=dict)
    steps: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    outputs: Dict[str, str] = field(default_factory=dict)

    def mark_checkpoint(self, name: str) -> None:
        if not name.strip():
            return
        self.checkpoints[name] = _utc_now_iso()

    def start_step(self, name: str, *, reference: Optional[str] = None) -> None:
        self.steps[name] = {
            "status": STEP_RUNNING,
            "reference": reference,
            "started_at": _utc_now_iso(),
            "finished_at": None,
            "duration_seconds": None,
            "error": None,
        }

    def _finish_step(self, name: str, status: str, duration_seconds: float) -> Dict[str, Any]:
        record = self.steps.setdefault(name, {"started_at": None, "reference": None})
        record["status"] = status
        record["finished_at"] = _utc_now_iso()
        record["duration_seconds"] = round(float(duration_seconds), 6)
        return record

    def record_step_success(self, name: str, result: str, *, duration_seconds: float = 0.0) -> None:
        record = self._finish_step(name, STEP_SUCCEEDED, duration_seconds)
        record["error"] = None
        record["result_chars"] = len(result)
        self.outputs[name] = result

    def record_step_failure(
        self,
        name: str,
        error: BaseException,
        *,
        duration_seconds: float = 0.0,
        cancelled: bool = False,
    ) -> None:
        record = self._finish_step(name, STEP_FAILED, duration_seconds)
        message = f"[{name}] {error}"
        record["error"] = message
        record["error_type"] = type(error).__name__
        self.success = False
        self.cancelled = self.cancelled or cancelled
        self.errors.append(message)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "schema_version": "1.0",
            "run_id": self.run_id,
            "created_at": self.created_at,
            "pipeline_source": self.pipeline_source,
            "success": self.success,
            "cancelled": self.cancelled,
            "errors": list(self.errors),
            "checkpoints": dict(self.checkpoints),
            "steps": {k: dict(v) for k, v in self.steps.items()},
            "outputs": dict(self.outputs),
        }

    def write_json(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(self.to_payload(), indent=2, sort_keys=True) + "\n",
            encoding="utf-8",
        )
