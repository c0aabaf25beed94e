from __future__ import annotations

import json

from livelove.documents import DocumentCache
from livelove.highlighter import Highlighter
from livelove.schema import SelectionDTO, Viewport
from livelove.viewer import ViewerStateTracker, build_viewer_state, visible_range


def test_visible_range_clamps_to_document() -> None:
    assert list(visible_range(5, 2, 20)) == [3, 4, 5, 6, 7]
    assert list(visible_range(0, 2, 20)) == [0, 1, 2]
    assert list(visible_range(19, 2, 20)) == [17, 18, 19]
    assert list(visible_range(50, 1, 3)) == [1, 2]
    assert list(visible_range(0, 5, 0)) == []
    assert list(visible_range(3, 0, 10)) == [3]


def test_build_viewer_state_for_unhighlighted_document() -> None:
    cache = DocumentCache("notes.txt", "alpha\r\nbeta\r\ngamma", 3)
    viewport = Viewport(
        uri="notes.txt",
        current_line=2,
        selection=SelectionDTO(start_line=0, start_char=1, end_line=0, end_char=3),
        language="plaintext",
    )
    state = build_viewer_state(viewport, cache, Highlighter(grammars=()), 1)
    assert [line.line_number for line in state.visible_lines] == [1, 2]
    assert [line.text for line in state.visible_lines] == ["beta", "gamma"]
    assert [line.is_current for line in state.visible_lines] == [False, True]
    assert not any(line.is_selected for line in state.visible_lines)
    assert [token.token_type for token in state.visible_lines[0].tokens] == ["text"]
    wire = json.loads(state.model_dump_json(by_alias=True))
    assert wire["language"] == "plaintext"
    assert wire["selection"] == {"startLine": 0, "startChar": 1, "endLine": 0, "endChar": 3}
    assert wire["visibleLines"][1]["isCurrent"] is True


def test_tracker_reports_only_changed_states() -> None:
    cache = DocumentCache("a.txt", "one\ntwo", 1)
    highlighter = Highlighter(grammars=())
    tracker = ViewerStateTracker()
    first = build_viewer_state(Viewport(uri="a.txt"), cache, highlighter, 5)
    assert tracker.changed(first) is not None
    assert tracker.changed(first) is None
    moved = build_viewer_state(Viewport(uri="a.txt", current_line=1), cache, highlighter, 5)
    assert tracker.changed(moved) is not None
    tracker.reset()
    assert tracker.changed(moved) is not None
