"""Run-scoped output store.

Append-only mapping from step name to the result string that step produced.
"""

from __future__ import annotations

from typing import Dict, Iterator, Optional


class OutputStore:
    """Insertion-ordered, write-once store of step results.

    ``get`` returns None for a name that was never written, which is distinct
    from a step that recorded an empty string.
    """

    def __init__(self) -> None:
        self._results: Dict[str, str] = {}

    def put(self, name: str, result: str) -> None:
        if not isinstance(result, str):
            raise TypeError(f"result for '{name}' must be a str, got {type(result).__name__}")
        if name in self._results:
            raise ValueError(f"output for '{name}' is already recorded")
        self._results[name] = result

    def get(self, name: str) -> Optional[str]:
        return self._results.get(name)

    def names(self) -> list[str]:
        return list(self._results)

    def to_dict(self) -> Dict[str, str]:
        return dict(self._results)

    def __contains__(self, name: object) -> bool:
        return name in self._results

    def __len__(self) -> int:
        return len(self._results)

    def __iter__(self) -> Iterator[str]:
        return iter(self._results)

    def __repr__(self) -> str:
        return f"OutputStore({list(self._results)!r})"
