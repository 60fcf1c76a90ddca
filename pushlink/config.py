"""Process-wide configuration, gRPC channel descriptions and connection counters."""

from __future__ import annotations

import copy
import enum
import os
import socket
import threading
from dataclasses import dataclass, field
from urllib.parse import urlsplit


@dataclass(frozen=True)
class Hproxy:
    """One HTTP proxy rule: a URL pattern, its rewrite target and a timeout in ms."""

    origin_url: str
    rewrite_url: str
    timeout: int


@dataclass
class Config:
    """Server settings."""

    hostname: str = field(default_factory=socket.gethostname)
    zone: str | None = None
    cert_path: str | None = None
    cert_path_quic: str | None = None
    cluster_grpc_timeout_ms: int = 3000
    service_grpc_timeout_ms: int = 3000
    hproxy_map: dict[str, Hproxy] = field(default_factory=dict)
    codec_buffer_size: int = 8192
    worker_num: int = field(default_factory=lambda: os.cpu_count() or 1)
    log_directory: str = "logs"
    conn_listen_addr: str = "0.0.0.0:6321"
    peer_listen_addr: str = "0.0.0.0:6322"
    service_listen_addr: str = "0.0.0.0:1215"


class Protocol(enum.Enum):
    """Transport a client connection arrived on."""

    TCP = "tcp"
    WEBSOCKET = "websocket"
    QUIC = "quic"


@dataclass(frozen=True)
class GrpcChannel:
    """A lazily connected gRPC endpoint."""

    uri: str
    timeout_ms: int


_config_lock = threading.RLock()
_config = Config()


def set_config(config: Config) -> None:
    """Replace the process-wide configuration."""
    global _config
    with _config_lock:
        _config = copy.deepcopy(config)


def config() -> Config:
    """Return a copy of the process-wide configuration."""
    with _config_lock:
        return copy.deepcopy(_config)


def get_zone() -> str | None:
    """Return the configured zone, if any."""
    with _config_lock:
        return _config.zone


def connect(addr: str, timeout_ms: int) -> GrpcChannel:
    """Describe a lazy gRPC channel to ``addr`` (``host:port``)."""
    uri = f"http://{addr}"
    if any(ch.isspace() for ch in uri):
        raise ValueError(f"invalid addr: {addr!r}")
    parts = urlsplit(uri)
    try:
        parts.port
    except ValueError as exc:
        raise ValueError(f"invalid addr: {addr!r}") from exc
    if not parts.hostname or parts.path or parts.query or parts.fragment:
        raise ValueError(f"invalid addr: {addr!r}")
    return GrpcChannel(uri=uri, timeout_ms=timeout_ms)


class ConnCounters:
    """Thread-safe live connection counts per protocol."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counts = {protocol: 0 for protocol in Protocol}

    def increment(self, protocol: Protocol) -> None:
        with self._lock:
            self._counts[protocol] += 1

    def decrement(self, protocol: Protocol) -> None:
        with self._lock:
            self._counts[protocol] -= 1

    def count(self, protocol: Protocol) -> int:
        with self._lock:
            return self._counts[protocol]

    def total(self) -> int:
        with self._lock:
            return sum(self._counts.values())


CONN_COUNTERS = ConnCounters()