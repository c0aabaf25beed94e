from __future__ import annotations

import json
import socket

import pytest

from livelove.exceptions import RuntimeClientError
from livelove.framing import FrameBuffer, decode_message, file_update_frame
from livelove.runtime_client import RuntimeClient, encode_runtime_frame
from livelove.schema import EditorCommand, ReplaceSelection, VarsUpdate, ViewerWindow


def _paired_client() -> tuple[RuntimeClient, socket.socket]:
    local, remote = socket.socketpair()

    def _factory(_address: tuple[str, int], _timeout: float) -> socket.socket:
        return local

    return RuntimeClient(socket_factory=_factory, timeout=0.5), remote


def _drain(sock: socket.socket) -> list:
    sock.settimeout(0.5)
    buffer = FrameBuffer()
    frames = []
    data = sock.recv(65536)
    frames.extend(buffer.feed(data))
    return frames


def test_encode_runtime_frame() -> None:
    assert encode_runtime_frame("VARS_UPDATE", "{}") == b"VARS_UPDATE\n{}\n---END---\n"


def test_client_messages_decode_on_server_side() -> None:
    client, remote = _paired_client()
    with client:
        client.send_vars("foo.lua", {"x": "42"})
        client.send_viewer_window(True, 3)
        client.send_editor_command("save")
        client.replace_selection("7")
        messages = [decode_message(frame) for frame in _drain(remote)]
    remote.close()
    assert isinstance(messages[0], VarsUpdate)
    assert messages[0].updates[0].variables == {"x": "42"}
    assert messages[1] == ViewerWindow(enabled=True, window_size=3)
    assert messages[2] == EditorCommand(command="save")
    assert messages[3] == ReplaceSelection(text="7")


def test_read_frame_returns_frames_in_order() -> None:
    client, remote = _paired_client()
    with client:
        state = json.dumps({"uri": "a.lua"})
        remote.sendall(file_update_frame("a.lua", "x = 1") + b"\nVIEWER_STATE\n" + state.encode())
        remote.sendall(b"\n---END---\n")
        first = client.read_frame()
        second = client.read_frame()
    remote.close()
    assert (first.header, first.payload) == ("FILE_UPDATE:a.lua", "x = 1")
    assert (second.header, second.payload) == ("VIEWER_STATE", state)


def test_read_frame_errors() -> None:
    client, remote = _paired_client()
    with client:
        with pytest.raises(RuntimeClientError, match="timed out"):
            client.read_frame(timeout=0.05)
        remote.close()
        with pytest.raises(RuntimeClientError, match="closed"):
            client.read_frame()


def test_unconnected_client_and_refused_connection() -> None:
    client = RuntimeClient()
    with pytest.raises(RuntimeClientError, match="not connected"):
        client.send("VARS_UPDATE", "{}")

    def _refuse(_address: tuple[str, int], _timeout: float) -> socket.socket:
        raise ConnectionRefusedError("refused")

    with pytest.raises(RuntimeClientError, match="cannot connect"):
        RuntimeClient(port=1, socket_factory=_refuse).connect()
