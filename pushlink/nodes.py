"""Descriptions of this node, the registry and other nodes of the cluster."""

from __future__ import annotations

import logging
import random
import threading
from dataclasses import dataclass

from pushlink.config import Config

logger = logging.getLogger(__name__)

_PEER_PORT = 6321
_SERVICE_PORT = 1215
_REGISTRY_PORT = 8082


@dataclass(frozen=True)
class ServerNode:
    """A server node of the cluster."""

    node_id: str
    hostname: str
    peer_port: int
    service_port: int
    zone: str | None = None


@dataclass(frozen=True)
class RegistryNode:
    """Where this node registers itself."""

    addr: str
    tls: bool


@dataclass(frozen=True)
class ServiceNode:
    """A business service instance."""

    addr: str
    zone: str | None = None


class State:
    """This node's identity plus the known cluster and service nodes."""

    def __init__(self, server_node: ServerNode, registry_node: RegistryNode) -> None:
        self.server_node = server_node
        self.registry_node = registry_node
        self._lock = threading.RLock()
        self._cluster_nodes: set[ServerNode] = set()
        self._service_nodes: dict[str, set[ServiceNode]] = {}

    @classmethod
    def from_config(cls, config: Config) -> State:
        """Create a state for this node with a fresh random node id."""
        node_id = str(random.getrandbits(64))
        server_node = ServerNode(node_id, config.hostname, _PEER_PORT, _SERVICE_PORT, config.zone)
        registry_node = RegistryNode(f"{config.hostname}:{_REGISTRY_PORT}", config.cert_path is not None)
        state = cls(server_node, registry_node)
        logger.info("_fplink_state:||server_node= %r", server_node)
        logger.info("_fplink_state:||registry_node= %r", registry_node)
        return state

    def update_cluster_nodes(self, nodes) -> None:
        with self._lock:
            self._cluster_nodes = set(nodes)

    def update_service_nodes(self, namespace: str, nodes) -> None:
        with self._lock:
            self._service_nodes[namespace] = set(nodes)

    def cluster_nodes(self) -> set[ServerNode]:
        with self._lock:
            return set(self._cluster_nodes)

    def service_nodes(self) -> dict[str, set[ServiceNode]]:
        with self._lock:
            return {ns: set(nodes) for ns, nodes in self._service_nodes.items()}

    def is_myself(self, node_id: str) -> bool:
        return self.server_node.node_id == node_id

    def find_node_by_host(self, hostname: str) -> ServerNode | None:
        if self.server_node.hostname == hostname:
            return self.server_node
        with self._lock:
            return next((n for n in self._cluster_nodes if n.hostname == hostname), None)

    def find_node_by_id(self, node_id: str) -> ServerNode | None:
        if self.server_node.node_id == node_id:
            return self.server_node
        with self._lock:
            return next((n for n in self._cluster_nodes if n.node_id == node_id), None)