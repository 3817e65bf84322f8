"""Module invoker.

Runs one module executable and speaks the JSON protocol with it:

- the request document is written to the module's stdin, which is then closed
- stdout is the machine channel; it is captured in full and must hold exactly
  one ``{"result": "..."}`` document
- stderr is the display channel; it is forwarded live to the operator and
  never parsed

Each call owns its process and pipes and releases them before returning. On
POSIX a module runs in its own session, so terminating it also reaches any
processes it started.
"""

from __future__ import annotations

import json
import os
import signal
import subprocess
import sys
import threading
import time
from pathlib import Path
from typing import IO, List, Optional

from loguru import logger

from opentrace.config import PROTOCOL, TIMEOUTS
from opentrace.errors import ModuleProcessError, ModuleProtocolError
from opentrace.sdk import ModuleInput, ModuleOutput


def module_executable_path(module_dir: str | Path, name: str) -> Path:
    """Return the path of the executable for step ``name`` under ``module_dir``."""
    filename = name
    if os.name == "nt" and not filename.lower().endswith(PROTOCOL.WINDOWS_EXE_SUFFIX):
        filename += PROTOCOL.WINDOWS_EXE_SUFFIX
    return Path(module_dir).expanduser() / filename


def _truncate(text: str, limit: int = PROTOCOL.MAX_RAW_OUTPUT_IN_ERROR) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + f"... [{len(text) - limit} more chars]"


def _write_stdin(proc: subprocess.Popen, payload: bytes) -> None:
    stream = proc.stdin
    if stream is None:
        return
    try:
        stream.write(payload)
        stream.flush()
    except (BrokenPipeError, OSError) as e:
        # Module exited or closed stdin without reading the full request.
        logger.debug("Module stdin closed early: {}: {}", type(e).__name__, e)
    finally:
        try:
            stream.close()
        except OSError:
            pass


def _read_stdout(proc: subprocess.Popen, chunks: List[bytes]) -> None:
    stream = proc.stdout
    if stream is None:
        return
    try:
        for chunk in iter(lambda: stream.read(65536), b""):
            chunks.append(chunk)
    except (OSError, ValueError):
        # Pipe closed under us after an interrupted run.
        return


def _pump_stderr(proc: subprocess.Popen, display: IO[str]) -> None:
    stream = proc.stderr
    if stream is None:
        return
    try:
        lines = iter(stream.readline, b"")
        for line in lines:
            try:
                display.write(line.decode("utf-8", errors="replace"))
                display.flush()
            except (OSError, ValueError):
                # Display stream went away; keep draining so the module never blocks.
                continue
    except (OSError, ValueError):
        return


def _signal_module(proc: subprocess.Popen, *, kill: bool = False) -> None:
    """Signal the module's whole process group (or just the module off POSIX)."""
    if os.name == "posix":
        try:
            os.killpg(proc.pid, signal.SIGKILL if kill else signal.SIGTERM)
        except (ProcessLookupError, PermissionError):
            pass
    elif proc.poll() is None:
        if kill:
            proc.kill()
        else:
            proc.terminate()


def _terminate(proc: subprocess.Popen, grace_seconds: float) -> None:
    if proc.poll() is not None:
        return
    _signal_module(proc)
    try:
        proc.wait(timeout=grace_seconds)
    except subprocess.TimeoutExpired:
        logger.warning("Module pid={} ignored terminate; killing", proc.pid)
        _signal_module(proc, kill=True)
        proc.wait()


def _await_readers(
    readers: List[threading.Thread],
    cancel_event: Optional[threading.Event],
    deadline: Optional[float],
    poll: float,
) -> str:
    """Wait for the output readers after the module itself has exited.

    Processes the module left behind can keep its pipes open. Returns
    ``"done"``, ``"cancelled"``, ``"timed_out"`` or ``"stuck"`` (drain window
    exhausted).
    """

    drain_deadline = time.monotonic() + max(0.0, TIMEOUTS.PIPE_DRAIN)
    while True:
        alive = [t for t in readers if t.is_alive()]
        if not alive:
            return "done"
        if cancel_event is not None and cancel_event.is_set():
            return "cancelled"
        now = time.monotonic()
        if deadline is not None and now >= deadline:
            return "timed_out"
        if now >= drain_deadline:
            return "stuck"
        alive[0].join(poll)


def _describe_exit(returncode: int) -> str:
    if returncode < 0:
        return f"module terminated by signal {-returncode}"
    return f"module exited with status {returncode}"


def decode_module_output(raw: str) -> str:
    """Decode captured stdout into the module's result string.

    Raises:
        ModuleProtocolError: When the capture is empty, is not exactly one
            JSON document, or is not a valid ModuleOutput.
    """

    if not raw.strip():
        raise ModuleProtocolError("module produced no output", raw_output=raw)

    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ModuleProtocolError(
            f"could not parse module output as JSON ({e.msg} at line {e.lineno}); raw output: {_truncate(raw)!r}",
            raw_output=raw,
        ) from e

    try:
        return ModuleOutput.from_payload(payload).result
    except ValueError as e:
        raise ModuleProtocolError(
            f"invalid module output: {e}; raw output: {_truncate(raw)!r}",
            raw_output=raw,
        ) from e


def invoke_module(
    executable_path: str | Path,
    module_input: ModuleInput,
    *,
    cancel_event: Optional[threading.Event] = None,
    timeout_seconds: Optional[float] = None,
    display: Optional[IO[str]] = None,
) -> str:
    """Run one module and return its result string.

    Args:
        executable_path: Module binary to spawn.
        module_input: Request delivered on stdin.
        cancel_event: When set while the module runs, the module is terminated.
        timeout_seconds: Optional wall-clock limit; None or 0 disables it.
        display: Where the module's stderr is forwarded. Defaults to sys.stderr.

    Raises:
        ModuleProcessError: Executable missing, spawn failure, nonzero exit,
            cancellation or timeout.
        ModuleProtocolError: Request not JSON-encodable, or empty or malformed
            machine output.
    """

    path = Path(executable_path)
    if not path.is_file() or not os.access(path, os.X_OK):
        raise ModuleProcessError(f"module executable not found: {path}")

    display = display if display is not None else sys.stderr
    try:
        payload = module_input.to_json().encode("utf-8")
    except (TypeError, ValueError) as e:
        raise ModuleProtocolError(f"cannot encode module input: {e}") from e
    poll = max(0.001, TIMEOUTS.POLL_INTERVAL)
    deadline = time.monotonic() + timeout_seconds if timeout_seconds else None

    try:
        proc = subprocess.Popen(
            [str(path)],
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            close_fds=True,
            start_new_session=True,
        )
    except OSError as e:
        raise ModuleProcessError(f"failed to start module {path}: {type(e).__name__}: {e}") from e

    logger.debug("Spawned module {} (pid={})", path.name, proc.pid)
    started = time.monotonic()

    stdout_chunks: List[bytes] = []
    threads = [
        threading.Thread(target=_write_stdin, args=(proc, payload), daemon=True),
        threading.Thread(target=_read_stdout, args=(proc, stdout_chunks), daemon=True),
        threading.Thread(target=_pump_stderr, args=(proc, display), daemon=True),
    ]
    for t in threads:
        t.start()

    cancelled = False
    timed_out = False
    try:
        while True:
            try:
                proc.wait(timeout=poll)
                break
            except subprocess.TimeoutExpired:
                pass
            if cancel_event is not None and cancel_event.is_set():
                cancelled = True
                _terminate(proc, TIMEOUTS.TERMINATE_GRACE)
                break
            if deadline is not None and time.monotonic() >= deadline:
                timed_out = True
                _terminate(proc, TIMEOUTS.TERMINATE_GRACE)
                break
        if not (cancelled or timed_out):
            state = _await_readers(threads[1:], cancel_event, deadline, poll)
            cancelled = state == "cancelled"
            timed_out = state == "timed_out"
            if state == "stuck":
                logger.warning(
                    "Module {} exited but its output pipes stayed open for {}s; killing leftover processes",
                    path.name,
                    TIMEOUTS.PIPE_DRAIN,
                )
    finally:
        if proc.poll() is None:
            _terminate(proc, TIMEOUTS.TERMINATE_GRACE)
        if any(t.is_alive() for t in threads):
            _signal_module(proc, kill=True)
        for t in threads:
            t.join(TIMEOUTS.TERMINATE_GRACE)
        for t, stream in zip(threads[1:], (proc.stdout, proc.stderr)):
            # A reader still blocked holds the buffer lock; close would hang.
            if stream is not None and not t.is_alive():
                stream.close()

    returncode = proc.returncode
    if returncode != 0 and cancel_event is not None and cancel_event.is_set():
        # The event may fire between the module's exit and the last poll.
        cancelled = True

    logger.debug(
        "Module {} exited with {} after {:.3f}s",
        path.name,
        returncode,
        time.monotonic() - started,
    )

    if cancelled:
        raise ModuleProcessError("module cancelled", returncode=returncode, cancelled=True)
    if timed_out:
        raise ModuleProcessError(
            f"module timed out after {timeout_seconds} seconds",
            returncode=returncode,
            timed_out=True,
        )
    if returncode != 0:
        raise ModuleProcessError(_describe_exit(returncode), returncode=returncode)

    raw = b"".join(stdout_chunks).decode("utf-8", errors="replace")
    return decode_module_output(raw)
