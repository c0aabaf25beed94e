from __future__ import annotations

from typing import Iterable, Mapping

from livelove.schema import VarsBatch


class RuntimeValueStore:
    """Latest runtime value per document and variable name (last write wins)."""

    def __init__(self) -> None:
        self._values: dict[str, dict[str, str]] = {}

    def values_for(self, uri: str) -> Mapping[str, str] | None:
        return self._values.get(uri)

    def names(self, uri: str) -> list[str]:
        return list(self._values.get(uri, {}))

    def merge(self, uri: str, batches: Iterable[VarsBatch]) -> list[str]:
        """Apply every batch in order and return the names touched."""
        values = self._values.setdefault(uri, {})
        touched: dict[str, None] = {}
        for batch in batches:
            for name, value in batch.variables.items():
                values[name] = value
                touched[name] = None
        return list(touched)
