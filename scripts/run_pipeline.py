#!/usr/bin/env python3
"""Run a pipeline definition against the local module directory.

Usage:
    python scripts/run_pipeline.py <pipeline.yaml> [--bin-dir DIR] [--report PATH]

Equivalent to ``opentrace run``; allows running from a checkout without
installing the package.
"""

from __future__ import annotations

import sys
from pathlib import Path


ROOT_DIR = Path(__file__).resolve().parents[1]
root_str = str(ROOT_DIR)
if root_str not in sys.path:
    sys.path.insert(0, root_str)

from opentrace.cli import main  # noqa: E402


if __name__ == "__main__":
    raise SystemExit(main(["run", *sys.argv[1:]]))
