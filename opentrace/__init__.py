"""opentrace: run independently built analysis modules as a linear pipeline."""

from opentrace.errors import (
    LoadError,
    ModuleProcessError,
    ModuleProtocolError,
    OpenTraceError,
    ReferenceResolutionError,
    StepError,
)
from opentrace.pipeline import (
    OutputStore,
    Pipeline,
    RunContext,
    Step,
    load_pipeline,
    parse_pipeline,
    run_pipeline,
)

__version__ = "0.1.0"

__all__ = [
    "LoadError",
    "ModuleProcessError",
    "ModuleProtocolError",
    "OpenTraceError",
    "ReferenceResolutionError",
    "StepError",
    "OutputStore",
    "Pipeline",
    "RunContext",
    "Step",
    "load_pipeline",
    "parse_pipeline",
    "run_pipeline",
]
