"""Live synchronisation between open editor documents and runtime clients.

`LiveSyncService` owns every piece of shared state: the document caches,
the runtime value store, the runtime hub and the debounce timers. All of
its methods run on the asyncio loop that drives the language server, so
none of that state needs locking.
"""

from __future__ import annotations

import logging
from typing import Protocol

from lsprotocol.types import InlayHint
from pygls.workspace import PositionCodec

from livelove.config import Settings
from livelove.debounce import Debouncer
from livelove.documents import DocumentStore
from livelove.framing import asset_update_frame, file_update_frame, viewer_state_frame
from livelove.highlighter import Highlighter
from livelove.hints import inlay_hints
from livelove.hub import RuntimeHub
from livelove.schema import (
    EditorCommand,
    InboundMessage,
    ReplaceSelection,
    VarsUpdate,
    ViewerWindow,
    Viewport,
)
from livelove.values import RuntimeValueStore
from livelove.viewer import ViewerStateTracker, build_viewer_state

logger = logging.getLogger(__name__)

FILE_UPDATE_EVENT = "file"
ALL_FILES_UPDATE_EVENT = "all-files"
ASSET_UPDATE_EVENT = "asset"


class EditorBridge(Protocol):
    def viewer_window_changed(self, enabled: bool, window_size: int) -> None: ...

    def editor_command(self, command: str) -> None: ...

    def replace_selection(self, text: str) -> None: ...

    def inlay_hints_invalidated(self, uri: str | None) -> None: ...


class NullEditorBridge:
    def viewer_window_changed(self, enabled: bool, window_size: int) -> None:
        pass

    def editor_command(self, command: str) -> None:
        pass

    def replace_selection(self, text: str) -> None:
        pass

    def inlay_hints_invalidated(self, uri: str | None) -> None:
        pass


class LiveSyncService:
    def __init__(
        self,
        settings: Settings | None = None,
        *,
        bridge: EditorBridge | None = None,
        highlighter: Highlighter | None = None,
        hub: RuntimeHub | None = None,
        debouncer: Debouncer | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.bridge: EditorBridge = bridge or NullEditorBridge()
        self.documents = DocumentStore()
        self.values = RuntimeValueStore()
        self.highlighter = highlighter or Highlighter()
        self.hub = hub or RuntimeHub(
            self.settings.host,
            self.settings.port,
            on_message=self.handle_message,
            on_connect=self.client_connected,
        )
        self.debouncer = debouncer or Debouncer(self.settings.debounce_seconds)
        self.window_size = self.settings.window_size
        self._viewer = ViewerStateTracker()

    def configure(self, settings: Settings) -> None:
        """Adopt new settings; listener address changes apply before `start`."""
        self.settings = settings
        self.window_size = settings.window_size
        self.debouncer.delay = settings.debounce_seconds
        if not self.hub.listening:
            self.hub.host = settings.host
            self.hub.port = settings.port

    def use_position_codec(self, codec: PositionCodec) -> None:
        """Count hint columns in the encoding negotiated with the editor."""
        self.documents.use_codec(codec)
        for cache in self.documents:
            cache.refresh(self.values.names(cache.uri))
        self.bridge.inlay_hints_invalidated(None)

    async def start(self) -> bool:
        return await self.hub.start()

    async def stop(self) -> None:
        self.debouncer.cancel_all()
        await self.hub.stop()

    # Editor-side events

    def document_opened(self, uri: str, text: str, version: int = 0) -> None:
        cache = self.documents.update(uri, text, version)
        cache.refresh(self.values.names(uri))
        self._schedule_file_update(uri)
        self.bridge.inlay_hints_invalidated(uri)

    def document_changed(self, uri: str, text: str, version: int | None = None) -> None:
        cache = self.documents.update(uri, text, version)
        cache.refresh(self.values.names(uri))
        self._schedule_file_update(uri)
        self.bridge.inlay_hints_invalidated(uri)

    def document_closed(self, uri: str) -> None:
        self.documents.discard(uri)
        self.highlighter.forget(uri)

    def viewport_changed(self, viewport: Viewport) -> None:
        if self.hub.client_count == 0:
            return
        cache = self.documents.get(viewport.uri)
        if cache is None:
            return
        state = build_viewer_state(viewport, cache, self.highlighter, self.window_size)
        encoded = self._viewer.changed(state)
        if encoded is not None:
            self.hub.broadcast(viewer_state_frame(encoded))

    def asset_changed(self, uri: str, text: str) -> None:
        if self.hub.client_count == 0:
            return
        self.debouncer.schedule(
            (ASSET_UPDATE_EVENT, uri),
            lambda: self.hub.broadcast(asset_update_frame(uri, text)),
        )

    def inlay_hints(self, uri: str) -> list[InlayHint]:
        if not self.settings.hints_enabled:
            return []
        return inlay_hints(self.documents.get(uri), self.values.values_for(uri))

    # Runtime-side events

    def client_connected(self) -> None:
        self._viewer.reset()
        self.debouncer.schedule(ALL_FILES_UPDATE_EVENT, self._send_all_files)

    def handle_message(self, message: InboundMessage) -> None:
        if isinstance(message, VarsUpdate):
            self._apply_vars_update(message)
        elif isinstance(message, ViewerWindow):
            self.window_size = message.window_size
            self._viewer.reset()
            logger.info("viewer %s", "enabled" if message.enabled else "disabled")
            self.bridge.viewer_window_changed(message.enabled, message.window_size)
        elif isinstance(message, ReplaceSelection):
            logger.info("replacing selection with %r", message.text)
            self.bridge.replace_selection(message.text)
        elif isinstance(message, EditorCommand):
            logger.info("forwarding editor command %s", message.command)
            self.bridge.editor_command(message.command)

    def _apply_vars_update(self, message: VarsUpdate) -> None:
        touched = self.values.merge(message.uri, message.updates)
        cache = self.documents.get(message.uri)
        if cache is None:
            return
        cache.refresh(touched, force=True)
        self.bridge.inlay_hints_invalidated(message.uri)

    def _schedule_file_update(self, uri: str) -> None:
        self.debouncer.schedule((FILE_UPDATE_EVENT, uri), lambda: self._send_file(uri))

    def _send_file(self, uri: str) -> None:
        cache = self.documents.get(uri)
        if cache is None:
            return
        self.hub.broadcast(file_update_frame(uri, cache.text))

    def _send_all_files(self) -> None:
        for cache in self.documents:
            self.hub.broadcast(file_update_frame(cache.uri, cache.text))
