"""Document cache and variable occurrence index.

One `DocumentCache` per open document holds the current text and, for
each tracked variable name, the positions just past every whole-word
occurrence of that name. Positions are zero-based line/character pairs
with the character counted in the client's position encoding (UTF-16
unless another encoding was negotiated).
"""

from __future__ import annotations

import logging
import re
from bisect import bisect_right
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Iterable, Iterator

from lsprotocol.types import Position
from pygls.workspace import PositionCodec

logger = logging.getLogger(__name__)

_VARIABLE_PATTERN_CACHE_SIZE = 1024
_INDEXABLE_NAME = re.compile(r"\w(?:.*\w)?", re.DOTALL)


@lru_cache(maxsize=_VARIABLE_PATTERN_CACHE_SIZE)
def variable_pattern(name: str) -> re.Pattern[str]:
    return re.compile(rf"\b{re.escape(name)}\b")


def indexable_name(name: str) -> bool:
    """Whole-word matching only works for names that start and end with a word character."""
    return _INDEXABLE_NAME.fullmatch(name) is not None


def _line_starts(text: str) -> list[int]:
    starts = [0]
    for match in re.finditer("\n", text):
        starts.append(match.end())
    return starts


@dataclass
class DocumentCache:
    uri: str
    text: str = ""
    version: int = 0
    dirty: bool = True
    positions: dict[str, list[Position]] = field(default_factory=dict)
    codec: PositionCodec = field(default_factory=PositionCodec, repr=False, compare=False)
    _line_starts: list[int] | None = field(default=None, init=False, repr=False, compare=False)

    def replace_text(self, text: str, version: int | None = None) -> None:
        self.text = text
        if version is not None:
            self.version = version
        self.dirty = True
        self._line_starts = None

    @property
    def line_starts(self) -> list[int]:
        if self._line_starts is None:
            self._line_starts = _line_starts(self.text)
        return self._line_starts

    @property
    def line_count(self) -> int:
        return len(self.line_starts)

    def position_at(self, offset: int) -> Position:
        offset = max(0, min(offset, len(self.text)))
        line = bisect_right(self.line_starts, offset) - 1
        column = self.codec.client_num_units(self.text[self.line_starts[line] : offset])
        return Position(line=line, character=column)

    def line_span(self, line: int) -> tuple[int, str]:
        """Return `(start offset, text)` of `line` without its line break."""
        starts = self.line_starts
        start = starts[line]
        end = starts[line + 1] - 1 if line + 1 < len(starts) else len(self.text)
        text = self.text[start:end]
        if text.endswith("\r"):
            text = text[:-1]
        return start, text

    def recompute_positions(self, names: Iterable[str]) -> None:
        """Replace the positions of each name with a fresh scan of the text.

        A name without any occurrence is dropped from `positions`, and so is
        a name that cannot be matched as a whole word (for example `""`).
        """
        names = list(names)
        for name in names:
            if not indexable_name(name):
                self.positions.pop(name, None)
                continue
            found = [
                self.position_at(match.end())
                for match in variable_pattern(name).finditer(self.text)
            ]
            if found:
                self.positions[name] = found
            else:
                self.positions.pop(name, None)
        self.dirty = False
        logger.debug("indexed %d variable(s) in %s", len(names), self.uri)

    def refresh(self, names: Iterable[str], *, force: bool = False) -> bool:
        if not self.dirty and not force:
            return False
        self.recompute_positions(names)
        return True


class DocumentStore:
    def __init__(self, codec: PositionCodec | None = None) -> None:
        self.codec = codec or PositionCodec()
        self._documents: dict[str, DocumentCache] = {}

    def get(self, uri: str) -> DocumentCache | None:
        return self._documents.get(uri)

    def __contains__(self, uri: object) -> bool:
        return uri in self._documents

    def __iter__(self) -> Iterator[DocumentCache]:
        return iter(list(self._documents.values()))

    def __len__(self) -> int:
        return len(self._documents)

    def update(self, uri: str, text: str, version: int | None = None) -> DocumentCache:
        """Create or refresh the cache entry for `uri` and mark it dirty."""
        cache = self._documents.get(uri)
        if cache is None:
            cache = DocumentCache(uri=uri, codec=self.codec)
            self._documents[uri] = cache
        cache.replace_text(text, version)
        return cache

    def use_codec(self, codec: PositionCodec) -> None:
        """Switch position encoding; every cached document must be re-indexed."""
        self.codec = codec
        for cache in self._documents.values():
            cache.codec = codec
            cache.dirty = True

    def discard(self, uri: str) -> DocumentCache | None:
        return self._documents.pop(uri, None)
