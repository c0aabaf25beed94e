"""Blocking client that plays the runtime side of the sync protocol.

Used by the `livelove send` / `livelove listen` commands and by tests; a
real runtime (a game loop) speaks the same frames.
"""

from __future__ import annotations

import json
import socket
import time
from dataclasses import dataclass, field
from typing import Callable

from livelove.config import DEFAULT_HOST, DEFAULT_PORT
from livelove.exceptions import RuntimeClientError
from livelove.framing import (
    EDITOR_COMMAND,
    REPLACE_SELECTION,
    VARS_UPDATE,
    VIEWER_WINDOW,
    TERMINATOR,
    Frame,
    FrameBuffer,
)
from livelove.schema import JSONObject

_READ_CHUNK = 64 * 1024

SocketFactory = Callable[[tuple[str, int], float], socket.socket]


def encode_runtime_frame(header: str, payload: str) -> bytes:
    return f"{header}\n{payload}{TERMINATOR}".encode("utf-8")


@dataclass
class RuntimeClient:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    timeout: float = 5.0
    socket_factory: SocketFactory = socket.create_connection
    _sock: socket.socket | None = field(default=None, init=False, repr=False)
    _buffer: FrameBuffer = field(default_factory=FrameBuffer, init=False, repr=False)
    _pending: list[Frame] = field(default_factory=list, init=False, repr=False)

    def __enter__(self) -> RuntimeClient:
        self.connect()
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()

    def connect(self) -> None:
        if self._sock is not None:
            return
        try:
            self._sock = self.socket_factory((self.host, self.port), self.timeout)
        except OSError as exc:
            raise RuntimeClientError(
                f"cannot connect to {self.host}:{self.port}: {exc}"
            ) from exc

    def close(self) -> None:
        sock, self._sock = self._sock, None
        if sock is not None:
            sock.close()

    def _require_socket(self) -> socket.socket:
        if self._sock is None:
            raise RuntimeClientError("runtime client is not connected")
        return self._sock

    def send(self, header: str, payload: str) -> None:
        sock = self._require_socket()
        try:
            sock.sendall(encode_runtime_frame(header, payload))
        except OSError as exc:
            raise RuntimeClientError(f"send failed: {exc}") from exc

    def send_vars(self, uri: str, variables: dict[str, str]) -> None:
        payload: JSONObject = {"uri": uri, "updates": [{"variables": dict(variables)}]}
        self.send(VARS_UPDATE, json.dumps(payload))

    def send_viewer_window(self, enabled: bool, window_size: int | None = None) -> None:
        payload: JSONObject = {"enabled": enabled}
        if window_size is not None:
            payload["window_size"] = window_size
        self.send(VIEWER_WINDOW, json.dumps(payload))

    def send_editor_command(self, command: str) -> None:
        self.send(EDITOR_COMMAND, json.dumps({"command": command}))

    def replace_selection(self, text: str) -> None:
        self.send(REPLACE_SELECTION, text)

    def read_frame(self, timeout: float | None = None) -> Frame:
        """Block until one outbound frame from the server is available."""
        if self._pending:
            return self._pending.pop(0)
        sock = self._require_socket()
        deadline = time.monotonic() + (self.timeout if timeout is None else timeout)
        while not self._pending:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise RuntimeClientError("timed out waiting for a frame")
            sock.settimeout(remaining)
            try:
                chunk = sock.recv(_READ_CHUNK)
            except socket.timeout as exc:
                raise RuntimeClientError("timed out waiting for a frame") from exc
            except OSError as exc:
                raise RuntimeClientError(f"receive failed: {exc}") from exc
            if not chunk:
                raise RuntimeClientError("connection closed by server")
            self._pending.extend(self._buffer.feed(chunk))
        return self._pending.pop(0)
