"""Command line entry point.

    opentrace run pipeline.yaml [--bin-dir DIR] [--timeout S] [--report PATH]
    opentrace validate pipeline.yaml

Exit code behavior:
- 0 when every step succeeded (or the definition is valid)
- 1 when a step failed
- 2 for usage errors and invalid pipeline definitions
- 130 when the run was interrupted
"""

from __future__ import annotations

import argparse
import json
import signal
import sys
import threading
from pathlib import Path
from typing import List, Optional

from loguru import logger

from opentrace import __version__
from opentrace.config import PATHS
from opentrace.errors import LoadError, StepError
from opentrace.pipeline.context import RunContext
from opentrace.pipeline.definition import load_pipeline
from opentrace.pipeline.runner import run_pipeline

EXIT_OK = 0
EXIT_STEP_FAILED = 1
EXIT_USAGE = 2
EXIT_CANCELLED = 130

_LOG_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}"


def configure_logging(level: str = "INFO") -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format=_LOG_FORMAT)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="opentrace", description="Run a pipeline of opentrace modules")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"],
        help="Log level for engine messages on stderr (default: INFO)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run a pipeline definition")
    run.add_argument("pipeline", help="Path to a pipeline YAML file")
    run.add_argument(
        "--bin-dir",
        default=str(PATHS.BIN_DIR),
        help=f"Directory holding module executables (default: {PATHS.BIN_DIR})",
    )
    run.add_argument("--timeout", type=float, default=None, help="Per-module timeout in seconds")
    run.add_argument("--report", default=None, help="Write a JSON run report to this path")
    run.add_argument(
        "--print-outputs",
        action="store_true",
        help="Print all step results as JSON on stdout (summary moves to stderr)",
    )

    validate = sub.add_parser("validate", help="Check a pipeline definition without running it")
    validate.add_argument("pipeline", help="Path to a pipeline YAML file")

    return parser


def _cmd_validate(args: argparse.Namespace) -> int:
    try:
        pipeline = load_pipeline(args.pipeline)
    except LoadError as e:
        print(f"Invalid pipeline: {e}", file=sys.stderr)
        return EXIT_USAGE

    print(f"pipeline: {args.pipeline}")
    for idx, step in enumerate(pipeline, start=1):
        source = f"${step.reference}" if step.reference is not None else repr(step.input)
        print(f"  {idx}. {step.name} <- {source}")
    return EXIT_OK


def _cmd_run(args: argparse.Namespace) -> int:
    try:
        pipeline = load_pipeline(args.pipeline)
    except LoadError as e:
        print(f"Invalid pipeline: {e}", file=sys.stderr)
        return EXIT_USAGE

    cancel_event = threading.Event()

    def _on_sigint(signum, frame):  # noqa: ARG001
        if cancel_event.is_set():
            raise KeyboardInterrupt
        logger.warning("Interrupt received; stopping the running module")
        cancel_event.set()

    previous = signal.signal(signal.SIGINT, _on_sigint)

    context = RunContext(pipeline_source=pipeline.source)
    failure: Optional[StepError] = None
    try:
        run_pipeline(
            pipeline,
            Path(args.bin_dir),
            cancel_event=cancel_event,
            timeout_seconds=args.timeout,
            context=context,
        )
    except StepError as e:
        failure = e
    finally:
        signal.signal(signal.SIGINT, previous)

    if args.report:
        report_path = Path(args.report).expanduser()
        context.write_json(report_path)
        logger.info("Run report written to {}", report_path)

    out = sys.stderr if args.print_outputs else sys.stdout
    if args.print_outputs:
        print(json.dumps(context.outputs, indent=2, ensure_ascii=False))

    print("=" * 60, file=out)
    print(f"Success: {context.success}", file=out)
    print(f"Steps recorded: {len(context.outputs)}/{len(pipeline)}", file=out)
    if context.errors:
        print("Errors:", file=out)
        for err in context.errors:
            print(f"  - {err}", file=out)
    print("=" * 60, file=out)

    if failure is None:
        return EXIT_OK
    if failure.cancelled:
        return EXIT_CANCELLED
    return EXIT_STEP_FAILED


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    if args.command == "validate":
        return _cmd_validate(args)
    return _cmd_run(args)


if __name__ == "__main__":
    raise SystemExit(main())
