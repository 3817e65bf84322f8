"""
Error Taxonomy
==============
Exceptions raised while loading and executing a pipeline.

Every failure raised by the orchestrator is a StepError whose ``cause`` is one
of the more specific errors below.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from opentrace.pipeline.outputs import OutputStore


class OpenTraceError(Exception):
    """Base class for all opentrace errors."""


class LoadError(OpenTraceError, ValueError):
    """Raised when a pipeline definition is missing, unreadable, invalid or empty."""


class ReferenceResolutionError(OpenTraceError, LookupError):
    """Raised when a step input references a step with no recorded output."""

    def __init__(self, step: str, reference: str):
        self.step = step
        self.reference = reference
        super().__init__(
            f"step '{step}' references output of '{reference}' but it has not run yet"
        )


class ModuleProcessError(OpenTraceError, RuntimeError):
    """Raised when a module cannot be spawned, exits nonzero, or is interrupted."""

    def __init__(
        self,
        message: str,
        *,
        returncode: Optional[int] = None,
        cancelled: bool = False,
        timed_out: bool = False,
    ):
        self.returncode = returncode
        self.cancelled = cancelled
        self.timed_out = timed_out
        super().__init__(message)


class ModuleProtocolError(OpenTraceError, ValueError):
    """Raised when a module's machine output is empty or not a valid response."""

    def __init__(self, message: str, *, raw_output: str = ""):
        self.raw_output = raw_output
        super().__init__(message)


class StepError(OpenTraceError):
    """A failure attributed to one pipeline step.

    Outputs recorded by earlier steps are kept on ``outputs`` for diagnostics.
    """

    def __init__(self, step: str, cause: BaseException, outputs: Optional["OutputStore"] = None):
        self.step = step
        self.cause = cause
        self.outputs = outputs
        super().__init__(f"[{step}] {cause}")

    @property
    def cancelled(self) -> bool:
        return bool(getattr(self.cause, "cancelled", False))
