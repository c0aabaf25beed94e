from __future__ import annotations

from typing import Mapping

from lsprotocol.types import InlayHint

from livelove.documents import DocumentCache


def inlay_hints(
    cache: DocumentCache | None, values: Mapping[str, str] | None
) -> list[InlayHint]:
    """Build one hint per indexed occurrence, labelled with its current value.

    Either every tracked name has a value or no hints are produced at all.
    """
    if cache is None or values is None or cache.dirty:
        return []
    hints: list[InlayHint] = []
    for name, positions in cache.positions.items():
        if name not in values:
            return []
        label = values[name]
        hints.extend(
            InlayHint(position=position, label=label, padding_left=True)
            for position in positions
        )
    return hints
