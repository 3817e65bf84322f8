"""Pipeline execution engine.

Loads a declared sequence of module steps and runs them in order, threading
each step's result forward to later steps that reference it.
"""

from .definition import Pipeline, Step, load_pipeline, parse_pipeline
from .outputs import OutputStore
from .invoker import decode_module_output, invoke_module, module_executable_path
from .context import RunContext
from .runner import resolve_step_input, run_pipeline

__all__ = [
    "Pipeline",
    "Step",
    "load_pipeline",
    "parse_pipeline",
    "OutputStore",
    "decode_module_output",
    "invoke_module",
    "module_executable_path",
    "RunContext",
    "resolve_step_input",
    "run_pipeline",
]
