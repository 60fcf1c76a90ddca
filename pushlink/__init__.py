"""Asyncio building blocks for a long-connection push server: messages, configuration, client routing, cluster state, an HTTP proxy service and connection handling."""

__version__ = "0.1.0"