from __future__ import annotations

import sys
import textwrap
from pathlib import Path
from typing import Callable, Optional

import pytest
from loguru import logger

# Body of a well-behaved module. It records the request it received and each
# spawn, chatters on stderr, and answers with __RESULT__ (a Python expression
# that may use `request`).
RECORDING_MODULE = """
import json
import sys
from pathlib import Path

here = Path(__file__)
request = json.loads(sys.stdin.read())
Path(str(here) + ".request.json").write_text(json.dumps(request), encoding="utf-8")
with open(here.parent / "spawns.log", "a", encoding="utf-8") as f:
    f.write(here.name + "\\n")
sys.stderr.write("[" + here.name + "] working on " + repr(request["input"]) + "\\n")
sys.stderr.flush()
sys.stdout.write(json.dumps({"result": __RESULT__}))
"""


@pytest.fixture(autouse=True)
def _reset_loguru():
    yield
    logger.remove()


@pytest.fixture
def module_dir(tmp_path: Path) -> Path:
    d = tmp_path / "bin"
    d.mkdir()
    return d


@pytest.fixture
def make_module(module_dir: Path) -> Callable[..., Path]:
    """Write an executable Python module named ``name`` into module_dir."""

    def _make(name: str, body: str) -> Path:
        path = module_dir / name
        path.write_text(f"#!{sys.executable}\n" + textwrap.dedent(body), encoding="utf-8")
        path.chmod(0o755)
        return path

    return _make


@pytest.fixture
def make_recording_module(make_module) -> Callable[..., Path]:
    def _make(name: str, result_expr: str = "request['input']") -> Path:
        return make_module(name, RECORDING_MODULE.replace("__RESULT__", result_expr))

    return _make


def read_request(module_dir: Path, name: str) -> Optional[dict]:
    import json

    p = module_dir / f"{name}.request.json"
    if not p.exists():
        return None
    return json.loads(p.read_text(encoding="utf-8"))


def read_spawns(module_dir: Path) -> list[str]:
    p = module_dir / "spawns.log"
    if not p.exists():
        return []
    return p.read_text(encoding="utf-8").splitlines()
