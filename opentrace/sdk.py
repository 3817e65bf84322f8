"""
Module SDK
==========
Wire types shared by the engine and by modules, plus the stdin/stdout plumbing
a Python module needs to speak the protocol.

A module author only implements ``run``:

    class IpLocator(Module):
        name = "ip_locator"

        def run(self, module_input: ModuleInput) -> ModuleOutput:
            return ModuleOutput(result=lookup(module_input.input))

    if __name__ == "__main__":
        sdk.run(IpLocator())

Request (stdin): ``{"input": "<string>", "config": {...}}``
Response (stdout): ``{"result": "<string>"}``
Anything meant for a human goes to stderr.
"""

from __future__ import annotations

import json
import sys
from dataclasses import dataclass, field
from typing import IO, Any, Dict, Optional

from opentrace.utils.schema_validation import validate_module_input, validate_module_output


@dataclass(frozen=True)
class ModuleInput:
    """What the engine sends to a module over stdin."""

    input: str
    config: Dict[str, Any] = field(default_factory=dict, hash=False)

    def to_payload(self) -> Dict[str, Any]:
        return {"input": self.input, "config": self.config}

    def to_json(self) -> str:
        return json.dumps(self.to_payload())

    @classmethod
    def from_payload(cls, payload: Any) -> "ModuleInput":
        validate_module_input(payload)
        config = payload.get("config")
        return cls(input=payload["input"], config=dict(config) if isinstance(config, dict) else {})


@dataclass(frozen=True)
class ModuleOutput:
    """What every module must return over stdout."""

    result: str = ""

    def to_payload(self) -> Dict[str, Any]:
        return {"result": self.result}

    def to_json(self) -> str:
        return json.dumps(self.to_payload())

    @classmethod
    def from_payload(cls, payload: Any) -> "ModuleOutput":
        validate_module_output(payload)
        return cls(result=payload["result"])


class Module:
    """Base class for Python modules."""

    name: str = "module"

    def run(self, module_input: ModuleInput) -> ModuleOutput:
        raise NotImplementedError


def serve(
    module: Module,
    *,
    stdin: Optional[IO[str]] = None,
    stdout: Optional[IO[str]] = None,
    stderr: Optional[IO[str]] = None,
) -> int:
    """Handle one request for ``module`` and return a process exit code.

    Decode and run failures are reported on stderr as ``[name] ...`` and
    yield 1. Nothing but the response document is ever written to stdout.
    """

    stdin = stdin if stdin is not None else sys.stdin
    stdout = stdout if stdout is not None else sys.stdout
    stderr = stderr if stderr is not None else sys.stderr

    try:
        module_input = ModuleInput.from_payload(json.loads(stdin.read()))
    except (json.JSONDecodeError, ValueError) as e:
        print(f"[{module.name}] bad input: {e}", file=stderr, flush=True)
        return 1

    try:
        out = module.run(module_input)
        if isinstance(out, str):
            out = ModuleOutput(result=out)
        payload = out.to_json()
    except Exception as e:
        print(f"[{module.name}] error: {e}", file=stderr, flush=True)
        return 1

    stdout.write(payload + "\n")
    stdout.flush()
    return 0


def run(module: Module) -> None:
    """Entry point for a module's ``__main__``; exits the process."""
    sys.exit(serve(module))
