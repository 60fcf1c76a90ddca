"""Drives one client connection: reading, writing and the idle timeout."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, AsyncIterable, Awaitable, Callable, Protocol as TypingProtocol

from pushlink.handlers import ConnectionClosed
from pushlink.messages import Message

logger = logging.getLogger(__name__)


class _Context(TypingProtocol):
    timeout: float

    def on_conn_create(self) -> None: ...

    def on_conn_destroy(self) -> None: ...

    def accept_message(self, message: Message) -> None: ...

    def should_timeout(self) -> bool: ...


class _Handler(TypingProtocol):
    def recv(self, item: Any) -> Message | None: ...


Writer = Callable[[Any], Awaitable[None]]


class Accepter:
    """Runs a connection until the peer goes away, reading fails or it sits idle too long.

    ``context.timeout`` is the idle limit in seconds. Incoming traffic resets the
    idle clock unless ``context.should_timeout()`` says the connection must expire anyway.
    """

    def __init__(self, context: _Context) -> None:
        self._context = context
        self._last_incoming = time.monotonic()

    async def accept_stream(
        self,
        reader: AsyncIterable[Any],
        writer: Writer,
        handler: _Handler,
        outgoing: asyncio.Queue,
    ) -> None:
        """Serve the connection; returns once it is closed."""
        self._context.on_conn_create()
        tasks: list[asyncio.Task] = []
        try:
            read_task = asyncio.create_task(self._read(reader, handler))
            timer_task = asyncio.create_task(self._watch_idle())
            write_task = asyncio.create_task(self._write(writer, outgoing))
            tasks = [read_task, timer_task, write_task]
            await asyncio.wait({read_task, timer_task}, return_when=asyncio.FIRST_COMPLETED)
            if timer_task.done() and not read_task.done():
                logger.info("connection idle for %ss, closing", self._context.timeout)
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            self._context.on_conn_destroy()

    async def _watch_idle(self) -> None:
        timeout = self._context.timeout
        elapsed = 0.0
        while elapsed < timeout:
            await asyncio.sleep(timeout - elapsed)
            elapsed = time.monotonic() - self._last_incoming

    async def _read(self, reader: AsyncIterable[Any], handler: _Handler) -> None:
        try:
            async for item in reader:
                try:
                    message = handler.recv(item)
                except ConnectionClosed as exc:
                    logger.warning("read error %r", exc)
                    return
                if message is not None:
                    self._context.accept_message(message)
                if not self._context.should_timeout():
                    self._last_incoming = time.monotonic()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("read err: %r", exc)

    async def _write(self, writer: Writer, outgoing: asyncio.Queue) -> None:
        while True:
            item = await outgoing.get()
            try:
                await writer(item)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning("send err: %r, write channel finished!", exc)
                return