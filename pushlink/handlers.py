"""Per-transport handling of incoming items and outgoing messages."""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Any, Callable

from pushlink.config import Protocol
from pushlink.messages import Message, Ping, Pong

logger = logging.getLogger(__name__)


class ConnectionClosed(Exception):
    """The peer closed the connection or sent something that cannot be read."""


class WsKind(enum.Enum):
    TEXT = "text"
    BINARY = "binary"
    PING = "ping"
    PONG = "pong"
    CLOSE = "close"


@dataclass(frozen=True)
class WsFrame:
    """A WebSocket frame: its kind and payload."""

    kind: WsKind
    data: bytes | str = b""


class PacketHandler:
    """Handles packets of the framed TCP and QUIC transports.

    Pings are answered with a Pong carrying the same timestamp; messages are passed on.
    """

    def __init__(self, outgoing: asyncio.Queue, protocol: Protocol = Protocol.TCP) -> None:
        self._outgoing = outgoing
        self._protocol = protocol

    def recv(self, item: Any) -> Message | None:
        if isinstance(item, Ping):
            self._outgoing.put_nowait(Pong(timestamp=item.timestamp))
        elif isinstance(item, Message):
            return item
        else:
            logger.warning("%s unknown packet: %r", self._protocol.value, item)
        return None

    def send(self, message: Message) -> None:
        self._outgoing.put_nowait(message)


class WsHandler:
    """Handles WebSocket frames whose binary payloads are encoded packets.

    ``encode`` turns a message into bytes; ``decode`` turns bytes into a packet
    (or None) and raises ValueError when the bytes cannot be decoded.
    """

    def __init__(
        self,
        outgoing: asyncio.Queue,
        encode: Callable[[Message], bytes],
        decode: Callable[[bytes], Any],
    ) -> None:
        self._outgoing = outgoing
        self._encode = encode
        self._decode = decode

    def recv(self, item: WsFrame) -> Message | None:
        """Return the message a frame carries, if any; raise ConnectionClosed on close or bad data."""
        if item.kind is WsKind.BINARY:
            try:
                packet = self._decode(bytes(item.data))
            except ValueError as exc:
                logger.warning("ws decode err: %r", exc)
                raise ConnectionClosed(f"ws decode error: {exc}") from exc
            return packet if isinstance(packet, Message) else None
        if item.kind is WsKind.PING:
            self._outgoing.put_nowait(WsFrame(WsKind.PONG, item.data))
        elif item.kind is WsKind.CLOSE:
            logger.warning("websocket will closed: %r", item.data)
            raise ConnectionClosed("websocket closed by peer")
        return None

    def send(self, message: Message) -> None:
        self._outgoing.put_nowait(WsFrame(WsKind.BINARY, self._encode(message)))