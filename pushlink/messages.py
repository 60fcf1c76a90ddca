"""Message types exchanged between connections, services and peers."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class Message:
    """A routed message: namespace, path, string metadata and a raw body."""

    namespace: str = ""
    path: str = ""
    metadata: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    expire_at: int | None = None

    def body_text(self) -> str:
        """Return the body as UTF-8 text, or an empty string if it is not valid UTF-8."""
        try:
            return bytes(self.body).decode("utf-8")
        except UnicodeDecodeError:
            return ""


@dataclass
class MessageReq:
    """A message received on a connection, tagged with the connection id."""

    cid: str = ""
    message: Message | None = None
    trace: dict[str, str] | None = None


@dataclass
class PushConnReq:
    """A request to push a message down to a connection."""

    cid: str = ""
    message: Message | None = None
    trace: dict[str, str] | None = None


@dataclass(frozen=True)
class Ping:
    """Keep-alive probe sent by a client."""

    timestamp: int = 0


@dataclass(frozen=True)
class Pong:
    """Reply to a Ping, echoing its timestamp."""

    timestamp: int = 0