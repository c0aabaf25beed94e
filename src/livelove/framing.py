"""Text frames exchanged with runtime clients.

Every frame is a header line, a payload and the `---END---` terminator::

    \\nFILE_UPDATE:<uri>\\n<text>\\n---END---\\n
    VARS_UPDATE\\n<json>\\n---END---\\n

Outbound frames start with a blank line so a runtime can resynchronise on
the header even after a truncated read.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Callable

from pydantic import BaseModel, ValidationError

from livelove.exceptions import FrameDecodeError
from livelove.schema import (
    EditorCommand,
    InboundMessage,
    ReplaceSelection,
    VarsUpdate,
    ViewerWindow,
)

TERMINATOR = "\n---END---\n"
_TERMINATOR_BYTES = TERMINATOR.encode("utf-8")

FILE_UPDATE = "FILE_UPDATE"
ASSET_FILE_UPDATE = "ASSET_FILE_UPDATE"
VIEWER_STATE = "VIEWER_STATE"

VARS_UPDATE = "VARS_UPDATE"
VIEWER_WINDOW = "VIEWER_WINDOW"
REPLACE_SELECTION = "REPLACE_SELECTION"
EDITOR_COMMAND = "EDITOR_COMMAND"


@dataclass(frozen=True)
class Frame:
    header: str
    payload: str

    @property
    def kind(self) -> str:
        return self.header.split(":", 1)[0]

    @property
    def argument(self) -> str:
        _, _, argument = self.header.partition(":")
        return argument


def encode_frame(header: str, payload: str) -> bytes:
    return f"\n{header}\n{payload}{TERMINATOR}".encode("utf-8")


def file_update_frame(uri: str, text: str) -> bytes:
    return encode_frame(f"{FILE_UPDATE}:{uri}", text)


def asset_update_frame(uri: str, text: str) -> bytes:
    return encode_frame(f"{ASSET_FILE_UPDATE}:{uri}", text)


def viewer_state_frame(state_json: str) -> bytes:
    return encode_frame(VIEWER_STATE, state_json)


def parse_frame(body: str) -> Frame | None:
    """Split one terminator-delimited body into header and payload."""
    body = body.lstrip()
    if not body:
        return None
    header, _, payload = body.partition("\n")
    return Frame(header=header.strip(), payload=payload.rstrip("\r"))


class FrameBuffer:
    """Accumulates stream bytes and yields every complete frame.

    Partial frames stay buffered across `feed` calls. Bytes are only
    decoded once a whole frame is present, so multi-byte characters split
    across reads are reassembled.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()
        self._scanned = 0

    def __len__(self) -> int:
        return len(self._buffer)

    def feed(self, data: bytes) -> list[Frame]:
        self._buffer.extend(data)
        frames: list[Frame] = []
        while True:
            start = max(0, self._scanned - len(_TERMINATOR_BYTES) + 1)
            index = self._buffer.find(_TERMINATOR_BYTES, start)
            if index < 0:
                self._scanned = len(self._buffer)
                return frames
            body = bytes(self._buffer[:index]).decode("utf-8", errors="replace")
            del self._buffer[: index + len(_TERMINATOR_BYTES)]
            self._scanned = 0
            frame = parse_frame(body)
            if frame is not None:
                frames.append(frame)


def _json_payload(frame: Frame) -> object:
    try:
        return json.loads(frame.payload)
    except json.JSONDecodeError as exc:
        raise FrameDecodeError(
            f"invalid JSON payload for {frame.kind}: {exc.msg}", header=frame.header
        ) from exc


def _model_payload(model: type[BaseModel]) -> Callable[[Frame], InboundMessage]:
    def _decode(frame: Frame) -> InboundMessage:
        payload = _json_payload(frame)
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise FrameDecodeError(
                f"invalid {frame.kind} payload: {exc.error_count()} error(s)",
                header=frame.header,
            ) from exc

    return _decode


def _replace_selection(frame: Frame) -> InboundMessage:
    return ReplaceSelection(text=frame.payload)


_DECODERS: dict[str, Callable[[Frame], InboundMessage]] = {
    VARS_UPDATE: _model_payload(VarsUpdate),
    VIEWER_WINDOW: _model_payload(ViewerWindow),
    REPLACE_SELECTION: _replace_selection,
    EDITOR_COMMAND: _model_payload(EditorCommand),
}


def decode_message(frame: Frame) -> InboundMessage:
    decoder = _DECODERS.get(frame.kind)
    if decoder is None:
        raise FrameDecodeError(f"unknown frame header: {frame.header!r}", header=frame.header)
    return decoder(frame)
