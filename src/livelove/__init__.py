"""LiveLove package root."""

from livelove.exceptions import FrameDecodeError, LiveLoveError, RuntimeClientError

__all__ = ["__version__", "FrameDecodeError", "LiveLoveError", "RuntimeClientError"]

__version__ = "0.1.0"
