"""
Environment Expansion
=====================
Substitutes ``${VAR}`` tokens in raw pipeline text from the environment.

Only the braced form is expanded. A bare ``$name`` is a step reference and is
left untouched.
"""

from __future__ import annotations

import os
import re
from typing import List, Mapping, Optional

from loguru import logger

_ENV_TOKEN_RE = re.compile(r"\$\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)\}")


def expand_env_tokens(text: str, environ: Optional[Mapping[str, str]] = None) -> str:
    """Return text with every ``${VAR}`` replaced by its environment value.

    Undefined variables expand to the empty string and are logged once each.

    Args:
        text: Raw text to expand.
        environ: Mapping to read from. Defaults to ``os.environ``.
    """

    env = os.environ if environ is None else environ
    missing: List[str] = []

    def _sub(match: "re.Match[str]") -> str:
        name = match.group("name")
        value = env.get(name)
        if value is None:
            if name not in missing:
                missing.append(name)
            return ""
        return value

    expanded = _ENV_TOKEN_RE.sub(_sub, text)

    for name in missing:
        logger.warning("Environment variable '{}' is not set; expanding to empty string", name)

    return expanded
