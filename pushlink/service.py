"""Per-namespace pools of service clients with zone-aware round-robin picking."""

from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable

from pushlink.config import config, connect

logger = logging.getLogger(__name__)

Connector = Callable[[str, int], Any]


@dataclass
class _ServiceClient:
    client: Any
    zone: str | None


@dataclass
class _ServiceClients:
    clients: dict[str, _ServiceClient] = field(default_factory=dict)
    fallback: tuple[str, Any] | None = None
    counter: itertools.count = field(default_factory=itertools.count)

    def pick(self, zone: str | None) -> tuple[str, Any] | None:
        total = len(self.clients)
        if total == 0:
            if self.fallback is None:
                logger.error("pick_client no alive clients, no fallback")
                return None
            logger.error("pick_client no alive clients, with fallback %r", self.fallback[0])
            return self.fallback
        zone_clients = [(addr, c) for addr, c in self.clients.items() if c.zone == zone]
        index = next(self.counter)
        if zone_clients:
            addr, entry = zone_clients[index % len(zone_clients)]
        else:
            addr, entry = list(self.clients.items())[index % total]
            logger.debug("pick_client %s ignore zone %r", addr, zone)
        return addr, entry.client

    def __str__(self) -> str:
        addrs = ", ".join(f'"{addr}"' for addr in self.clients)
        fallback = self.fallback[0] if self.fallback is not None else "no fallback"
        return f"addrs: [{addrs}], fallback: {fallback}"


class Service:
    """Clients of business services, grouped by namespace."""

    def __init__(self, connector: Connector | None = None) -> None:
        self._connector = connector if connector is not None else connect
        self._lock = threading.RLock()
        self._namespaces: dict[str, _ServiceClients] = {}

    def _connect(self, addr: str) -> Any:
        return self._connector(addr, config().service_grpc_timeout_ms)

    def add_fallback(self, namespace: str, addr: str) -> None:
        client = self._connect(addr)
        with self._lock:
            ns_clients = self._namespaces.setdefault(namespace, _ServiceClients())
            ns_clients.fallback = (addr, client)
        logger.info("add fallback to business Clients: ns:%s, addr:%s", namespace, addr)

    def add_client(self, namespace: str, addr: str, zone: str | None) -> None:
        client = self._connect(addr)
        with self._lock:
            ns_clients = self._namespaces.setdefault(namespace, _ServiceClients())
            ns_clients.clients[addr] = _ServiceClient(client=client, zone=zone)
        logger.info("add client to Clients: ns:%s, addr:%s", namespace, addr)

    def remove_client(self, namespace: str, addr: str) -> None:
        with self._lock:
            ns_clients = self._namespaces.get(namespace)
            if ns_clients is None:
                logger.warning(
                    "trying to remove non-exist client from Clients, ns:%s addr:%s", namespace, addr
                )
                return
            ns_clients.clients.pop(addr, None)
        logger.info("remove client from Clients: ns:%s, addr:%s", namespace, addr)

    def pick_client(self, namespace: str, zone: str | None) -> tuple[str, Any] | None:
        """Pick a client, preferring the given zone; returns ``(addr, client)`` or None."""
        with self._lock:
            ns_clients = self._namespaces.get(namespace)
            if ns_clients is None:
                logger.warning("trying to pick non-exist client from ns:%s", namespace)
                return None
            return ns_clients.pick(zone)

    def all_clients(self) -> dict[str, str]:
        """Describe every namespace's clients and fallback."""
        with self._lock:
            return {ns: str(ns_clients) for ns, ns_clients in self._namespaces.items()}