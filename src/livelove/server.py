from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Mapping
from urllib.parse import unquote, urlparse

from pydantic import ValidationError
from pygls.lsp.server import LanguageServer
from lsprotocol.types import (
    INITIALIZE,
    INITIALIZED,
    SHUTDOWN,
    TEXT_DOCUMENT_DID_CHANGE,
    TEXT_DOCUMENT_DID_CLOSE,
    TEXT_DOCUMENT_DID_OPEN,
    TEXT_DOCUMENT_INLAY_HINT,
    WORKSPACE_INLAY_HINT_REFRESH,
    DidChangeTextDocumentParams,
    DidCloseTextDocumentParams,
    DidOpenTextDocumentParams,
    InitializeParams,
    InitializedParams,
    InlayHint,
    InlayHintOptions,
    InlayHintParams,
)

from livelove import __version__
from livelove.config import (
    Settings,
    apply_initialization_options,
    load_settings,
    merge_overrides,
)
from livelove.schema import AssetUpdate, Viewport
from livelove.service import LiveSyncService

logger = logging.getLogger(__name__)

VIEWER_STATE_NOTIFICATION = "livelove/viewerState"
FILE_UPDATED_NOTIFICATION = "livelove/fileUpdated"
VIEWER_WINDOW_NOTIFICATION = "livelove/viewerWindow"
REPLACE_SELECTION_NOTIFICATION = "livelove/replaceSelection"
EDITOR_COMMAND_NOTIFICATION = "livelove/editorCommand"


class LspEditorBridge:
    """Forwards service events to the editor over the LSP connection."""

    def __init__(self, ls: LanguageServer) -> None:
        self._ls = ls
        self.initialized = False

    def _notify(self, method: str, params: object) -> None:
        self._ls.protocol.notify(method, params)

    def viewer_window_changed(self, enabled: bool, window_size: int) -> None:
        self._notify(
            VIEWER_WINDOW_NOTIFICATION, {"enabled": enabled, "windowSize": window_size}
        )

    def editor_command(self, command: str) -> None:
        self._notify(EDITOR_COMMAND_NOTIFICATION, {"command": command})

    def replace_selection(self, text: str) -> None:
        self._notify(REPLACE_SELECTION_NOTIFICATION, {"text": text})

    def inlay_hints_invalidated(self, uri: str | None) -> None:
        if not self.initialized:
            return
        self._ls.protocol.send_request(WORKSPACE_INLAY_HINT_REFRESH, None)


class LiveLoveServer(LanguageServer):
    def __init__(self, settings: Settings | None = None) -> None:
        super().__init__("livelove", __version__)
        self.config_path: Path | None = None
        self.overrides: dict[str, object] = {}
        self.bridge = LspEditorBridge(self)
        self.service = LiveSyncService(settings, bridge=self.bridge)


server = LiveLoveServer()


def _uri_to_path(uri: str) -> Path:
    parsed = urlparse(uri)
    if parsed.scheme == "file":
        return Path(unquote(parsed.path))
    return Path(uri)


def _plain(value: object) -> object:
    """Turn notification params into plain JSON-like values.

    Depending on the framework version, params of custom notifications
    arrive either as dicts or as attribute objects.
    """
    if isinstance(value, Mapping):
        return {str(key): _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)) and not hasattr(value, "_asdict"):
        return [_plain(item) for item in value]
    as_dict = getattr(value, "_asdict", None)
    if callable(as_dict):
        return _plain(as_dict())
    if hasattr(value, "__dict__") and not isinstance(value, type):
        return {key: _plain(item) for key, item in vars(value).items()}
    return value


def _document_text(ls: LanguageServer, uri: str) -> str:
    return ls.workspace.get_text_document(uri).source


@server.feature(INITIALIZE)
def initialize(ls: LiveLoveServer, params: InitializeParams) -> None:
    root = params.root_uri or params.root_path
    settings = load_settings(
        root=_uri_to_path(root) if root else None, config_path=ls.config_path
    )
    settings = apply_initialization_options(settings, params.initialization_options)
    ls.service.configure(merge_overrides(settings, ls.overrides))


@server.feature(INITIALIZED)
async def initialized(ls: LiveLoveServer, params: InitializedParams) -> None:
    ls.service.use_position_codec(ls.workspace.position_codec)
    ls.bridge.initialized = True
    await ls.service.start()


@server.feature(SHUTDOWN)
async def shutdown(ls: LiveLoveServer, *_args: object) -> None:
    await ls.service.stop()


@server.feature(TEXT_DOCUMENT_DID_OPEN)
def did_open(ls: LiveLoveServer, params: DidOpenTextDocumentParams) -> None:
    document = params.text_document
    ls.service.document_opened(document.uri, document.text, document.version)


@server.feature(TEXT_DOCUMENT_DID_CHANGE)
def did_change(ls: LiveLoveServer, params: DidChangeTextDocumentParams) -> None:
    uri = params.text_document.uri
    ls.service.document_changed(uri, _document_text(ls, uri), params.text_document.version)


@server.feature(TEXT_DOCUMENT_DID_CLOSE)
def did_close(ls: LiveLoveServer, params: DidCloseTextDocumentParams) -> None:
    ls.service.document_closed(params.text_document.uri)


@server.feature(TEXT_DOCUMENT_INLAY_HINT, InlayHintOptions(resolve_provider=False))
def inlay_hint(ls: LiveLoveServer, params: InlayHintParams) -> list[InlayHint]:
    return ls.service.inlay_hints(params.text_document.uri)


@server.feature(VIEWER_STATE_NOTIFICATION)
def viewer_state(ls: LiveLoveServer, params: object) -> None:
    try:
        viewport = Viewport.model_validate(_plain(params))
    except ValidationError as exc:
        logger.warning("ignoring invalid viewport notification: %s", exc)
        return
    ls.service.viewport_changed(viewport)


@server.feature(FILE_UPDATED_NOTIFICATION)
def file_updated(ls: LiveLoveServer, params: object) -> None:
    try:
        update = AssetUpdate.model_validate(_plain(params))
    except ValidationError as exc:
        logger.warning("ignoring invalid fileUpdated notification: %s", exc)
        return
    ls.service.asset_changed(update.uri, update.text)


def start(start_fn: Callable[[], None] | None = None) -> None:
    """Run the language server over stdio."""
    (start_fn or server.start_io)()


if __name__ == "__main__":  # pragma: no cover
    start()  # pragma: no cover
