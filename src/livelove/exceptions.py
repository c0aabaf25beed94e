"""Exception types raised across the live sync core."""

from __future__ import annotations


class LiveLoveError(RuntimeError):
    pass


class FrameDecodeError(LiveLoveError):
    """A single inbound frame could not be turned into a message.

    The connection that produced the frame stays open; only the frame is
    dropped.
    """

    def __init__(self, message: str, *, header: str = "") -> None:
        super().__init__(message)
        self.header = header


class RuntimeClientError(LiveLoveError):
    pass
