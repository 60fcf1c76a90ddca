"""Clients to the other server nodes of the cluster."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

from pushlink.config import config, connect

logger = logging.getLogger(__name__)


class Cluster:
    """Maps node ids to peer clients and peer addresses to node ids."""

    def __init__(self, connector: Callable[[str, int], Any] | None = None) -> None:
        self._connector = connector if connector is not None else connect
        self._lock = threading.RLock()
        self._clients: dict[str, Any] = {}
        self._addr_node_map: dict[str, str] = {}

    def get_node_id(self, addr: str) -> str | None:
        with self._lock:
            return self._addr_node_map.get(addr)

    def add_client(self, node_id: str, host: str, port: int) -> None:
        timeout_ms = config().cluster_grpc_timeout_ms
        addr = f"{host}:{port}"
        client = self._connector(addr, timeout_ms)
        with self._lock:
            old_node_id = self._addr_node_map.get(addr)
            self._addr_node_map[addr] = node_id
            if old_node_id is not None:
                self._clients.pop(old_node_id, None)
            self._clients[node_id] = client

    def remove_client(self, node_id: str, host: str, port: int) -> None:
        addr = f"{host}:{port}"
        logger.warning("remove client for node: %s, %s", node_id, addr)
        with self._lock:
            self._clients.pop(node_id, None)
            if self._addr_node_map.get(addr) == node_id:
                del self._addr_node_map[addr]

    def pick_client(self, node_id: str) -> Any | None:
        with self._lock:
            return self._clients.get(node_id)

    def all_clients(self) -> list[str]:
        """Return the node ids that have a client."""
        with self._lock:
            return list(self._clients)

    def all_nodes(self) -> dict[str, str]:
        """Return a copy of the address to node id map."""
        with self._lock:
            return dict(self._addr_node_map)

    def __len__(self) -> int:
        with self._lock:
            return len(self._clients)