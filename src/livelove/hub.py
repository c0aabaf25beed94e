"""TCP multiplexer between the language server and runtime clients."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from livelove.exceptions import FrameDecodeError
from livelove.framing import FrameBuffer, decode_message
from livelove.schema import InboundMessage

logger = logging.getLogger(__name__)

_READ_CHUNK = 64 * 1024

MessageHandler = Callable[[InboundMessage], None]
ConnectHandler = Callable[[], None]


class RuntimeHub:
    """Owns the listening socket and the set of connected runtime clients.

    Broadcasts go to clients in connection order. A failed write to one
    client is logged and the remaining clients still receive the frame.
    """

    def __init__(
        self,
        host: str,
        port: int,
        *,
        on_message: MessageHandler,
        on_connect: ConnectHandler | None = None,
    ) -> None:
        self.host = host
        self.port = port
        self._on_message = on_message
        self._on_connect = on_connect
        self._server: asyncio.Server | None = None
        self._clients: dict[asyncio.StreamWriter, None] = {}
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def listening(self) -> bool:
        return self._server is not None

    @property
    def client_count(self) -> int:
        return len(self._clients)

    @property
    def bound_port(self) -> int | None:
        if self._server is None or not self._server.sockets:
            return None
        return self._server.sockets[0].getsockname()[1]

    async def start(self) -> bool:
        """Bind the listener; a bind failure is logged and reported as False."""
        if self._server is not None:
            return True
        try:
            self._server = await asyncio.start_server(
                self._handle_client, self.host, self.port
            )
        except OSError as exc:
            logger.error(
                "failed to start runtime listener on %s:%s: %s", self.host, self.port, exc
            )
            return False
        logger.info("runtime listener on %s:%s", self.host, self.bound_port)
        return True

    async def stop(self) -> None:
        server, self._server = self._server, None
        if server is not None:
            server.close()
        for writer in list(self._clients):
            writer.close()
        self._clients.clear()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        if server is not None:
            await server.wait_closed()

    def broadcast(self, data: bytes) -> int:
        """Write `data` to every connected client; returns how many were written."""
        delivered = 0
        for writer in list(self._clients):
            if writer.is_closing():
                continue
            try:
                writer.write(data)
            except (ConnectionError, RuntimeError) as exc:
                logger.warning("write to runtime client failed: %s", exc)
                continue
            delivered += 1
        return delivered

    def dispatch(self, buffer: FrameBuffer, data: bytes) -> None:
        for frame in buffer.feed(data):
            try:
                message = decode_message(frame)
            except FrameDecodeError as exc:
                logger.warning("dropping frame: %s", exc)
                continue
            try:
                self._on_message(message)
            except Exception:
                logger.exception("handling %s frame failed", frame.kind)

    async def _handle_client(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        task = asyncio.current_task()
        if task is not None:
            self._tasks.add(task)
        peer = writer.get_extra_info("peername")
        self._clients[writer] = None
        logger.info("runtime client connected: %s", peer)
        if self._on_connect is not None:
            self._on_connect()
        buffer = FrameBuffer()
        try:
            while True:
                data = await reader.read(_READ_CHUNK)
                if not data:
                    break
                self.dispatch(buffer, data)
        except (ConnectionError, OSError) as exc:
            logger.warning("runtime client %s errored: %s", peer, exc)
        finally:
            self._clients.pop(writer, None)
            if task is not None:
                self._tasks.discard(task)
            writer.close()
            logger.info("runtime client disconnected: %s", peer)
