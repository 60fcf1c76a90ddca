# pushlink

Asyncio building blocks for a server that holds long-lived client
connections and pushes messages to them: routing to backend clients,
cluster bookkeeping, a built-in HTTP proxy service and per-connection
read/write handling.

## Modules

- `pushlink.messages`: the dataclasses that move through the server:
  `Message` (namespace, path, string metadata, raw body, optional
  `expire_at`; `body_text()` returns the body as UTF-8 or `""`),
  `MessageReq`, `PushConnReq`, `Ping` and `Pong`.
- `pushlink.config`: the process-wide `Config` (hostname, zone, cert paths,
  gRPC timeouts, `hproxy_map` of `Hproxy` rules, listen addresses and more),
  read and replaced with `config()`, `set_config()` and `get_zone()`.
  Also the `Protocol` enum (`TCP`, `WEBSOCKET`, `QUIC`), thread-safe
  `ConnCounters` with a shared `CONN_COUNTERS` instance, and `connect()`,
  which checks a `host:port` address and returns a `GrpcChannel`
  describing `http://host:port` with its timeout (`ValueError` if the
  address is not valid).
- `pushlink.service`: `Service`, backend clients grouped by namespace.
  `pick_client(namespace, zone)` goes round-robin over the clients of the
  given zone. If no client is in that zone, it goes over all clients. It
  falls back to the address set with `add_fallback` only when the
  namespace has no clients at all. `all_clients()` describes each
  namespace.
- `pushlink.cluster`: `Cluster`, which maps peer node ids to clients and
  `host:port` addresses to node ids. Adding a client for an address that
  already belonged to another node drops that node's client.
- `pushlink.nodes`: `ServerNode`, `RegistryNode`, `ServiceNode` and
  `State`. `State.from_config()` gives this node a random id. `State` keeps
  the known cluster and service nodes and finds nodes by host or id.
- `pushlink.hproxy_request`: `HpRequestBuilder` takes the method
  (`__method`), call id (`__call_id`), headers and body from a
  `MessageReq` and builds an `httpx.Request`. It raises `NoMessageError`,
  `NoCallIdError`, `NoMethodError` or `InvalidMethodError` (all subclasses
  of `HproxyError`). `header_map()` keeps only the metadata entries that
  are valid HTTP headers.
- `pushlink.hproxy`: `HttpProxy`, a service that rewrites a message's path
  with regex rules. Rules from the configured `hproxy_map` are tried
  first, then the proxy's own. Replacements may use `$1`, `$name`,
  `${name}` and `$$`. The proxy sends the request with `httpx` and pushes
  the response to the connection through a pusher that has
  `async push(PushConnReq)`. The status code goes in `__status_code`, or
  `502` with an error body. `compile_rules()`, `push_request()`,
  `add_forwarded()`, `add_real_ip()` and `build_http_proxy()` are
  exposed as well. `build_http_proxy()` returns `None` when no rules are
  configured.
- `pushlink.handlers`: `PacketHandler` answers `Ping` with `Pong` and
  passes `Message`s on. `WsHandler` does the same for `WsFrame`s, using
  encode and decode functions you supply, and raises `ConnectionClosed`
  on a close frame or undecodable data.
- `pushlink.peek`: `PeekStream` wraps an asyncio reader/writer pair so
  that peeked bytes are read again. `detect_protocol()` returns
  `Protocol.WEBSOCKET` for data starting with `G` and `Protocol.TCP`
  otherwise.
- `pushlink.accepter`: `Accepter` runs one connection. It reads items
  through a handler, writes items from an `asyncio.Queue` through an
  async writer, and closes the connection after `context.timeout` seconds
  without incoming traffic.

## Install

```
pip install pushlink
```

For the test suite:

```
pip install "pushlink[test]"
pytest
```

## Example

```python
from pushlink.service import Service

services = Service()
services.add_client("ns", "10.0.0.1:9000", "zone1")
services.add_client("ns", "10.0.0.2:9000", "zone2")
services.add_fallback("ns", "10.0.0.9:9000")

addr, channel = services.pick_client("ns", "zone1")
assert addr == "10.0.0.1:9000"
```

## What it does not do

- There is no command and no ready-made server. Nothing binds sockets,
  accepts TCP, TLS, QUIC or WebSocket connections, or serves gRPC. You
  wire `PeekStream`, the handlers and `Accepter` to your own transport.
- There is no wire codec for packets. `WsHandler` takes the encode and
  decode functions from you.
- `GrpcChannel` only describes an endpoint. It opens no connection.
- `Accepter` needs a connection context from you, with `timeout`,
  `on_conn_create`, `on_conn_destroy`, `accept_message` and
  `should_timeout`.