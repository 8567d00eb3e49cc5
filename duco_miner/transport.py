from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .line_protocol import READ_BUFFER_SIZE, decode_line, encode_line
from .mining.errors import ServerConnectionError, StreamEndError

log = logging.getLogger("duco_miner.transport")

# Socket failures that mean the peer is gone rather than a transient hiccup.
_STREAM_GONE = (
    ConnectionResetError,
    ConnectionAbortedError,
    BrokenPipeError,
    asyncio.IncompleteReadError,
)


class LineTransport:
    """
    One TCP connection to the job server with line-oriented send/receive.

    Reads are a single chunk of at most ``buf_size`` bytes, matching servers
    that reply without a trailing newline. There is no read timeout: a silent
    server stalls the caller until the stream closes.

    Usage:
        transport = LineTransport("127.0.0.1", 6000)
        await transport.open()
        await transport.send_line("JOB,name,LOW")
        line = await transport.read_line()
        await transport.close()
    """

    def __init__(
        self,
        host: str,
        port: int,
        *,
        buf_size: int = READ_BUFFER_SIZE,
        tag: str = "",
    ) -> None:
        self.host = host
        self.port = int(port)
        self.buf_size = buf_size
        self.tag = tag
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def is_open(self) -> bool:
        return self._writer is not None and not self._writer.is_closing()

    # ------------- lifecycle -------------

    async def open(self) -> None:
        try:
            self._reader, self._writer = await asyncio.open_connection(
                self.host, self.port
            )
        except OSError as exc:
            raise ServerConnectionError(
                message=f"dial {self.address} failed: {exc}",
                context={"address": self.address},
            ) from exc
        log.debug("%sconnected to %s", self.tag, self.address)

    async def close(self) -> None:
        writer, self._writer, self._reader = self._writer, None, None
        if writer is None:
            return
        writer.close()
        try:
            await writer.wait_closed()
        except OSError as exc:
            # The peer may already have torn the socket down.
            log.debug("%sclose %s: %s", self.tag, self.address, exc)
        log.debug("%sclosed %s", self.tag, self.address)

    # ------------- line I/O -------------

    async def send_line(self, text: str) -> None:
        if self._writer is None:
            raise StreamEndError(message="transport is not open")
        data = encode_line(text)
        try:
            self._writer.write(data)
            await self._writer.drain()
        except _STREAM_GONE as exc:
            raise StreamEndError(message=f"send failed: {exc}") from exc
        log.debug("%ssend %d bytes %s", self.tag, len(data), text)

    async def read_line(self) -> str:
        if self._reader is None:
            raise StreamEndError(message="transport is not open")
        try:
            data = await self._reader.read(self.buf_size)
        except _STREAM_GONE as exc:
            raise StreamEndError(message=f"read failed: {exc}") from exc
        if not data:
            raise StreamEndError(message=f"{self.address} closed the stream")
        line = decode_line(data)
        log.debug("%sread %d bytes %s", self.tag, len(data), line)
        return line


__all__ = ["LineTransport"]
