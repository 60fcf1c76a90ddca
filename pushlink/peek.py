"""A stream that can look at its first bytes before handing them on, and protocol sniffing."""

from __future__ import annotations

import asyncio
from typing import Any

from pushlink.config import Protocol


def detect_protocol(first_bytes: bytes) -> Protocol:
    """WebSocket if the stream starts like an HTTP GET, otherwise the raw TCP framing."""
    try:
        text = bytes(first_bytes).decode("utf-8")
    except UnicodeDecodeError:
        return Protocol.TCP
    return Protocol.WEBSOCKET if text.startswith("G") else Protocol.TCP


class PeekStream:
    """Wraps a reader/writer pair; bytes seen by ``peek`` are returned again by ``read``."""

    def __init__(self, reader: asyncio.StreamReader, writer: Any) -> None:
        self._reader = reader
        self._writer = writer
        self._buffer = b""

    async def peek(self, length: int) -> bytes:
        """Read up to ``length`` bytes without consuming them; empty at end of stream."""
        if len(self._buffer) < length:
            chunk = await self._reader.read(length - len(self._buffer))
            self._buffer += chunk
        return self._buffer[:length]

    async def read(self, n: int = -1) -> bytes:
        """Read up to ``n`` bytes (all if negative), starting with any peeked bytes."""
        if n == 0:
            return b""
        if n < 0:
            data, self._buffer = self._buffer, b""
            return data + await self._reader.read()
        if self._buffer:
            data, self._buffer = self._buffer[:n], self._buffer[n:]
            return data
        return await self._reader.read(n)

    def write(self, data: bytes) -> None:
        self._writer.write(data)

    async def drain(self) -> None:
        await self._writer.drain()

    async def close(self) -> None:
        self._writer.close()
        await self._writer.wait_closed()