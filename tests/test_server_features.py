from __future__ import annotations

import asyncio
from collections import namedtuple
from pathlib import Path
from types import SimpleNamespace

import pytest

pytest.importorskip("pygls")

from lsprotocol.types import (  # noqa: E402
    DidChangeTextDocumentParams,
    DidCloseTextDocumentParams,
    DidOpenTextDocumentParams,
    InitializeParams,
    InlayHintParams,
    Position,
    PositionEncodingKind,
    Range,
    TextDocumentIdentifier,
    TextDocumentItem,
    VersionedTextDocumentIdentifier,
    ClientCapabilities,
)
from pygls.workspace import PositionCodec  # noqa: E402

from livelove import server  # noqa: E402
from livelove.config import Settings  # noqa: E402
from livelove.schema import VarsBatch, VarsUpdate  # noqa: E402
from livelove.service import LiveSyncService  # noqa: E402


class _RecordingProtocol:
    def __init__(self) -> None:
        self.notifications: list[tuple[str, object]] = []
        self.requests: list[str] = []

    def notify(self, method: str, params: object) -> None:
        self.notifications.append((method, params))

    def send_request(self, method: str, params: object) -> None:
        self.requests.append(method)


class _DummyWorkspace:
    def __init__(self) -> None:
        self.texts: dict[str, str] = {}
        self.position_codec = PositionCodec(encoding=PositionEncodingKind.Utf32)

    def get_text_document(self, uri: str) -> SimpleNamespace:
        return SimpleNamespace(source=self.texts[uri])


class _DummyServer:
    def __init__(self) -> None:
        self.protocol = _RecordingProtocol()
        self.workspace = _DummyWorkspace()
        self.config_path: Path | None = None
        self.overrides: dict[str, object] = {}
        self.bridge = server.LspEditorBridge(self)
        self.service = LiveSyncService(Settings(), bridge=self.bridge)


def test_plain_normalises_notification_params() -> None:
    Pair = namedtuple("Pair", ["uri", "currentLine"])
    assert server._plain(Pair("a.lua", 3)) == {"uri": "a.lua", "currentLine": 3}
    nested = SimpleNamespace(uri="a.lua", selection=SimpleNamespace(startLine=1))
    assert server._plain(nested) == {"uri": "a.lua", "selection": {"startLine": 1}}
    assert server._plain([{"a": 1}, 2]) == [{"a": 1}, 2]
    assert server._plain("text") == "text"


def test_uri_to_path() -> None:
    assert server._uri_to_path("file:///tmp/My%20Game") == Path("/tmp/My Game")
    assert server._uri_to_path("/plain/path") == Path("/plain/path")


def test_initialize_merges_config_options_and_overrides(tmp_path: Path) -> None:
    (tmp_path / "livelove.toml").write_text("[server]\nport = 4000\n[viewer]\nwindow_size = 2\n")
    ls = _DummyServer()
    ls.overrides = {"window_size": 7, "host": None}
    params = InitializeParams(
        capabilities=ClientCapabilities(),
        root_uri=tmp_path.as_uri(),
        initialization_options={"inlayHints": {"enabled": False}},
    )
    server.initialize(ls, params)
    assert ls.service.settings == Settings(port=4000, window_size=7, hints_enabled=False)
    assert ls.service.hub.port == 4000


def test_document_lifecycle_and_inlay_hints() -> None:
    async def scenario() -> None:
        ls = _DummyServer()
        uri = "file:///game/foo.lua"
        server.did_open(
            ls,
            DidOpenTextDocumentParams(
                text_document=TextDocumentItem(uri=uri, language_id="lua", version=1, text="x = 1")
            ),
        )
        ls.service.handle_message(VarsUpdate(uri=uri, updates=[VarsBatch(variables={"x": "42"})]))
        hint_params = InlayHintParams(
            text_document=TextDocumentIdentifier(uri=uri),
            range=Range(start=Position(line=0, character=0), end=Position(line=1, character=0)),
        )
        hints = server.inlay_hint(ls, hint_params)
        assert [(hint.label, hint.position.character) for hint in hints] == [("42", 1)]
        # refresh requests wait for the client handshake
        assert ls.protocol.requests == []

        ls.bridge.initialized = True
        ls.workspace.texts[uri] = "y = 0\nx = x"
        server.did_change(
            ls,
            DidChangeTextDocumentParams(
                text_document=VersionedTextDocumentIdentifier(uri=uri, version=2),
                content_changes=[],
            ),
        )
        hints = server.inlay_hint(ls, hint_params)
        assert [(h.position.line, h.position.character) for h in hints] == [(1, 1), (1, 5)]
        assert ls.protocol.requests == ["workspace/inlayHint/refresh"]

        server.did_close(ls, DidCloseTextDocumentParams(text_document=TextDocumentIdentifier(uri=uri)))
        assert server.inlay_hint(ls, hint_params) == []
        await ls.service.stop()

    asyncio.run(scenario())


def test_runtime_requests_become_editor_notifications() -> None:
    ls = _DummyServer()
    ls.bridge.viewer_window_changed(True, 4)
    ls.bridge.editor_command("editor.action.formatDocument")
    ls.bridge.replace_selection("12")
    assert ls.protocol.notifications == [
        (server.VIEWER_WINDOW_NOTIFICATION, {"enabled": True, "windowSize": 4}),
        (server.EDITOR_COMMAND_NOTIFICATION, {"command": "editor.action.formatDocument"}),
        (server.REPLACE_SELECTION_NOTIFICATION, {"text": "12"}),
    ]


def test_custom_notifications_validate_params() -> None:
    ls = _DummyServer()
    seen: list[object] = []
    ls.service.viewport_changed = seen.append
    ls.service.asset_changed = lambda uri, text: seen.append((uri, text))
    server.viewer_state(ls, {"uri": "a.lua", "currentLine": 2})
    server.viewer_state(ls, {"currentLine": "nope"})
    server.file_updated(ls, SimpleNamespace(uri="shader.frag", text="void main() {}"))
    server.file_updated(ls, {"uri": "shader.frag"})
    assert len(seen) == 2
    assert seen[0].uri == "a.lua"
    assert seen[0].current_line == 2
    assert seen[1] == ("shader.frag", "void main() {}")


def test_start_uses_injected_runner() -> None:
    calls: list[str] = []
    server.start(lambda: calls.append("started"))
    assert calls == ["started"]


class _IdleHub:
    listening = False
    client_count = 0

    def broadcast(self, data: bytes) -> int:
        return 0

    async def start(self) -> bool:
        self.listening = True
        return True

    async def stop(self) -> None:
        self.listening = False


def test_initialized_adopts_negotiated_position_encoding() -> None:
    async def scenario() -> None:
        ls = _DummyServer()
        ls.service.hub = _IdleHub()
        uri = "file:///game/e.lua"
        ls.service.document_opened(uri, '"😀" x', 1)
        ls.service.handle_message(VarsUpdate(uri=uri, updates=[VarsBatch(variables={"x": "5"})]))
        assert [h.position.character for h in ls.service.inlay_hints(uri)] == [6]
        await server.initialized(ls, None)
        assert ls.bridge.initialized
        assert ls.service.hub.listening
        assert [h.position.character for h in ls.service.inlay_hints(uri)] == [5]
        await ls.service.stop()

    asyncio.run(scenario())
