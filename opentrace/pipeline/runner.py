"""Pipeline orchestrator.

Runs steps strictly in declared order. Each step's input is either a literal
or a ``$name`` reference to the result of a step that already ran. The first
failure aborts the run; results recorded before it are kept for diagnostics
but the run is reported as failed.
"""

from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import IO, Optional

from loguru import logger

from opentrace.config import get_timeout
from opentrace.errors import (
    ModuleProcessError,
    OpenTraceError,
    ReferenceResolutionError,
    StepError,
)
from opentrace.pipeline.context import RunContext
from opentrace.pipeline.definition import Pipeline, Step
from opentrace.pipeline.invoker import invoke_module, module_executable_path
from opentrace.pipeline.outputs import OutputStore
from opentrace.sdk import ModuleInput
from opentrace.tracing import init_tracing, safe_set_span_attributes


def resolve_step_input(step: Step, outputs: OutputStore) -> str:
    """Return the literal input, or the recorded result a reference points to.

    Raises:
        ReferenceResolutionError: When the referenced step has no recorded
            output (unknown name, self reference or forward reference).
    """

    reference = step.reference
    if reference is None:
        return step.input

    value = outputs.get(reference)
    if value is None:
        raise ReferenceResolutionError(step.name, reference)
    return value


def run_pipeline(
    pipeline: Pipeline,
    module_dir: str | Path,
    *,
    cancel_event: Optional[threading.Event] = None,
    outputs: Optional[OutputStore] = None,
    timeout_seconds: Optional[float] = None,
    display: Optional[IO[str]] = None,
    context: Optional[RunContext] = None,
) -> OutputStore:
    """Execute every step of ``pipeline`` in order.

    Args:
        pipeline: Loaded pipeline definition.
        module_dir: Directory holding one executable per step name.
        cancel_event: Cooperative cancellation signal.
        outputs: Store to record results into. A fresh one is created when omitted.
        timeout_seconds: Per-module limit. Defaults to OPENTRACE_MODULE_TIMEOUT.
        display: Stream receiving modules' stderr. Defaults to sys.stderr.
        context: Optional RunContext filled in with per-step records.

    Returns:
        The OutputStore holding one result per step.

    Raises:
        StepError: On the first failing step. ``StepError.outputs`` holds the
            results recorded before the failure.
    """

    store = outputs if outputs is not None else OutputStore()
    timeout = timeout_seconds if timeout_seconds is not None else get_timeout("module")
    tracer = init_tracing()
    total = len(pipeline)

    if context is not None:
        context.mark_checkpoint("start")

    logger.info("Running pipeline with {} steps from {}", total, module_dir)

    for index, step in enumerate(pipeline, start=1):
        reference = step.reference
        if context is not None:
            context.start_step(step.name, reference=reference)

        started = time.monotonic()
        with tracer.start_as_current_span("opentrace.step") as span:
            safe_set_span_attributes(
                span,
                {
                    "opentrace.step.name": step.name,
                    "opentrace.step.index": index,
                    "opentrace.step.reference": reference,
                },
            )
            try:
                if cancel_event is not None and cancel_event.is_set():
                    raise ModuleProcessError("run cancelled before step started", cancelled=True)

                resolved = resolve_step_input(step, store)
                logger.info("[{}/{}] {} starting", index, total, step.name)
                result = invoke_module(
                    module_executable_path(module_dir, step.name),
                    ModuleInput(input=resolved, config=step.config),
                    cancel_event=cancel_event,
                    timeout_seconds=timeout,
                    display=display,
                )
            except OpenTraceError as e:
                elapsed = time.monotonic() - started
                cancelled = bool(getattr(e, "cancelled", False))
                safe_set_span_attributes(
                    span,
                    {"opentrace.step.error": str(e), "opentrace.step.error_type": type(e).__name__},
                )
                logger.error("[{}/{}] {} failed after {:.2f}s: {}", index, total, step.name, elapsed, e)
                if context is not None:
                    context.record_step_failure(step.name, e, duration_seconds=elapsed, cancelled=cancelled)
                    context.mark_checkpoint("end")
                raise StepError(step.name, e, store) from e

            elapsed = time.monotonic() - started
            store.put(step.name, result)
            safe_set_span_attributes(span, {"opentrace.step.result_chars": len(result)})

        logger.info("[{}/{}] {} done in {:.2f}s ({} chars)", index, total, step.name, elapsed, len(result))
        if context is not None:
            context.record_step_success(step.name, result, duration_seconds=elapsed)

    if context is not None:
        context.mark_checkpoint("end")

    logger.info("Pipeline complete: {} steps recorded", len(store))
    return store
