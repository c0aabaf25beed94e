from __future__ import annotations

from livelove.documents import DocumentCache
from livelove.highlighter import Highlighter
from livelove.schema import LineDTO, TokenDTO, ViewerState, Viewport


def visible_range(current_line: int, window_size: int, line_count: int) -> range:
    if line_count <= 0:
        return range(0)
    current = max(0, min(current_line, line_count - 1))
    first = max(0, current - window_size)
    last = min(line_count - 1, current + window_size)
    return range(first, last + 1)


def build_viewer_state(
    viewport: Viewport,
    cache: DocumentCache,
    highlighter: Highlighter,
    window_size: int,
) -> ViewerState:
    selection = viewport.selection
    lines: list[LineDTO] = []
    for number in visible_range(viewport.current_line, window_size, cache.line_count):
        start, text = cache.line_span(number)
        tokens = highlighter.line_tokens(cache.uri, cache.version, cache.text, start, text)
        lines.append(
            LineDTO(
                line_number=number,
                text=text,
                tokens=[TokenDTO(text=token.text, token_type=token.category) for token in tokens],
                is_current=number == viewport.current_line,
                is_selected=selection.start_line <= number <= selection.end_line,
            )
        )
    return ViewerState(
        uri=viewport.uri,
        visible_lines=lines,
        current_line=viewport.current_line,
        selection=selection,
        language=viewport.language,
    )


class ViewerStateTracker:
    """Remembers the last serialized state so identical states are sent once."""

    def __init__(self) -> None:
        self._last: str | None = None

    def changed(self, state: ViewerState) -> str | None:
        encoded = state.model_dump_json(by_alias=True)
        if encoded == self._last:
            return None
        self._last = encoded
        return encoded

    def reset(self) -> None:
        self._last = None
