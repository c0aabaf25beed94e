"""Per-line token classification from overlapping grammar captures.

Captures are `(start, end, category)` spans in absolute character offsets
of a document. For one line the resolver produces a gap-free list of
tokens where each character carries the highest-priority category whose
span contains it, or `DEFAULT_CATEGORY` when nothing does.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Iterable

DEFAULT_CATEGORY = "text"

CATEGORY_PRIORITY: dict[str, int] = {
    "keyword": 100,
    "operator": 90,
    "class": 80,
    "method": 70,
    "function": 60,
    "argument": 50,
    "parameter": 40,
    "property": 30,
    "variable": 20,
}
_OTHER_PRIORITY = 10


def category_priority(category: str) -> int:
    return CATEGORY_PRIORITY.get(category, _OTHER_PRIORITY)


@dataclass(frozen=True)
class Capture:
    start: int
    end: int
    category: str


@dataclass(frozen=True)
class Token:
    text: str
    category: str


@dataclass(frozen=True)
class _Boundary:
    position: int
    is_start: bool
    category: str
    priority: int

    def sort_key(self) -> tuple[int, int, int]:
        # Ends sort before starts at the same position, then by priority.
        return (self.position, 1 if self.is_start else 0, -self.priority)


def _line_boundaries(
    captures: Iterable[Capture], line_start: int, line_length: int
) -> list[_Boundary]:
    line_end = line_start + line_length
    boundaries: list[_Boundary] = []
    for capture in captures:
        if capture.start >= line_end or capture.end <= line_start:
            continue
        start = max(0, capture.start - line_start)
        end = min(line_length, capture.end - line_start)
        if start >= end:
            continue
        priority = category_priority(capture.category)
        boundaries.append(_Boundary(start, True, capture.category, priority))
        boundaries.append(_Boundary(end, False, capture.category, priority))
    boundaries.sort(key=_Boundary.sort_key)
    return boundaries


def _dominant(active: Counter[str]) -> str:
    best = DEFAULT_CATEGORY
    best_priority = -1
    for category in active:
        priority = category_priority(category)
        if priority > best_priority:
            best = category
            best_priority = priority
    return best


def resolve_line_tokens(
    captures: Iterable[Capture], line_text: str, line_start: int
) -> list[Token]:
    """Split `line_text` into classified tokens.

    `line_start` is the absolute offset of the line's first character in
    the same coordinate space as the captures.
    """
    tokens: list[Token] = []
    active: Counter[str] = Counter()
    current = DEFAULT_CATEGORY
    position = 0
    for boundary in _line_boundaries(captures, line_start, len(line_text)):
        if boundary.position > position:
            tokens.append(Token(line_text[position : boundary.position], current))
        if boundary.is_start:
            active[boundary.category] += 1
        else:
            if active[boundary.category] > 1:
                active[boundary.category] -= 1
            else:
                active.pop(boundary.category, None)
        current = _dominant(active)
        position = max(position, boundary.position)
    if position < len(line_text):
        tokens.append(Token(line_text[position:], DEFAULT_CATEGORY))
    return tokens
