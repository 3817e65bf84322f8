"""Pipeline definition.

Loads the ordered list of steps from a YAML file. Environment tokens
(``${VAR}``) are expanded on the raw text before parsing, so they may appear
anywhere, config values included.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

import yaml
from loguru import logger

from opentrace.config import PROTOCOL
from opentrace.errors import LoadError
from opentrace.utils.env_expansion import expand_env_tokens
from opentrace.utils.schema_validation import validate_pipeline_document

_YAML_TIMESTAMP_TAG = "tag:yaml.org,2002:timestamp"


class _PipelineLoader(yaml.SafeLoader):
    """SafeLoader that leaves unquoted dates and timestamps as plain strings."""


_PipelineLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != _YAML_TIMESTAMP_TAG]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


@dataclass(frozen=True)
class Step:
    """One pipeline entry: which module to run, on what, with which config.

    ``config`` is a private deep copy of the definition's mapping and is never
    mutated by the engine. It is excluded from hashing.
    """

    name: str
    input: str = ""
    config: Dict[str, Any] = field(default_factory=dict, hash=False)

    @property
    def reference(self) -> Optional[str]:
        """Name of the step this input refers to, or None for a literal."""
        if self.input.startswith(PROTOCOL.REFERENCE_SIGIL):
            return self.input[len(PROTOCOL.REFERENCE_SIGIL):]
        return None


@dataclass(frozen=True)
class Pipeline:
    """An ordered, non-empty sequence of steps."""

    steps: Tuple[Step, ...]
    source: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.steps:
            raise LoadError("pipeline has no modules")

    def __iter__(self) -> Iterator[Step]:
        return iter(self.steps)

    def __len__(self) -> int:
        return len(self.steps)

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(s.name for s in self.steps)


def _scalar_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _step_from_entry(entry: Mapping[str, Any]) -> Step:
    raw_config = entry.get("config")
    return Step(
        name=str(entry["name"]).strip(),
        input=_scalar_text(entry.get("input")),
        config=copy.deepcopy(raw_config) if isinstance(raw_config, dict) else {},
    )


def parse_pipeline(
    text: str,
    *,
    environ: Optional[Mapping[str, str]] = None,
    source: Optional[str] = None,
) -> Pipeline:
    """Build a Pipeline from raw definition text.

    Args:
        text: YAML document with a top-level ``modules`` list.
        environ: Mapping used for ``${VAR}`` expansion. Defaults to os.environ.
        source: Optional label (usually the file path) kept for diagnostics.

    Raises:
        LoadError: On YAML syntax errors, schema violations, an empty step
            list, or duplicate step names.
    """

    expanded = expand_env_tokens(text, environ)

    try:
        document = yaml.load(expanded, Loader=_PipelineLoader)
    except yaml.YAMLError as e:
        raise LoadError(f"invalid pipeline YAML: {e}") from e

    if document is None:
        raise LoadError("pipeline has no modules")

    if isinstance(document, dict) and document.get("modules") in (None, []):
        raise LoadError("pipeline has no modules")

    try:
        validate_pipeline_document(document)
    except ValueError as e:
        raise LoadError(f"invalid pipeline definition: {e}") from e

    steps = tuple(_step_from_entry(entry) for entry in document["modules"])

    seen: Dict[str, int] = {}
    for idx, step in enumerate(steps):
        if step.name in seen:
            raise LoadError(
                f"duplicate step name '{step.name}' (modules {seen[step.name]} and {idx})"
            )
        seen[step.name] = idx

    pipeline = Pipeline(steps=steps, source=source)
    logger.debug("Loaded pipeline with {} steps: {}", len(pipeline), ", ".join(pipeline.names))
    return pipeline


def load_pipeline(path: str | Path, *, environ: Optional[Mapping[str, str]] = None) -> Pipeline:
    """Read and parse a pipeline definition file.

    Raises:
        LoadError: When the file cannot be read or its contents are invalid.
    """

    p = Path(path).expanduser()
    try:
        text = p.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise LoadError(f"cannot read pipeline '{p}': {e}") from e

    return parse_pipeline(text, environ=environ, source=str(p))
