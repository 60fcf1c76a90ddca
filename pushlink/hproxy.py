"""Built-in service that forwards messages as HTTP requests and pushes back the responses."""

from __future__ import annotations

import functools
import logging
import re
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Protocol as TypingProtocol

import httpx

from pushlink.config import Hproxy, config
from pushlink.hproxy_request import (
    CALL_ID,
    HTTP_STATUS_CODE,
    HpRequestBuilder,
    HproxyError,
)
from pushlink.messages import Message, MessageReq, PushConnReq

logger = logging.getLogger(__name__)

KEEPALIVE_SECS = 90
FORWARDED_FOR = "X-Forwarded-For"
REAL_IP = "X-Real-IP"

_GROUP_REF = re.compile(r"\$(?:\$|\{([^}]*)\}|([A-Za-z0-9_]+))")


class Pusher(TypingProtocol):
    async def push(self, request: PushConnReq) -> None: ...


def _expand(template: str, match: re.Match) -> str:
    """Expand ``$1``, ``$name``, ``${name}`` and ``$$`` in a replacement template."""

    def substitute(ref: re.Match) -> str:
        if ref.group(0) == "$$":
            return "$"
        name = ref.group(1) if ref.group(1) is not None else ref.group(2)
        key: int | str = int(name) if name.isdigit() else name
        try:
            value = match.group(key)
        except (IndexError, re.error):
            return ""
        return value or ""

    return _GROUP_REF.sub(substitute, template)


@dataclass(frozen=True)
class HproxyRule:
    """A compiled URL rewrite rule."""

    regex: re.Pattern
    replace: str
    timeout_ms: int

    def rewrite(self, url: str) -> str | None:
        if self.regex.search(url) is None:
            return None
        return self.regex.sub(lambda m: _expand(self.replace, m), url, count=1)


def compile_rules(hproxy_map: dict[str, Hproxy]) -> list[HproxyRule]:
    """Compile the rules of a proxy map, skipping patterns that are not valid."""
    rules = []
    for origin_url, hproxy in hproxy_map.items():
        try:
            regex = re.compile(origin_url)
        except re.error as exc:
            logger.error("hproxy rule config invalid: %s, err: %r", origin_url, exc)
            continue
        rules.append(HproxyRule(regex=regex, replace=hproxy.rewrite_url, timeout_ms=hproxy.timeout))
    return rules


@functools.lru_cache(maxsize=16)
def _compile_cached(items: tuple[tuple[str, Hproxy], ...]) -> tuple[HproxyRule, ...]:
    return tuple(compile_rules(dict(items)))


def _config_rules() -> tuple[HproxyRule, ...]:
    return _compile_cached(tuple(config().hproxy_map.items()))


def _is_visible_header_value(raw: bytes) -> bool:
    return all(b == 0x09 or 32 <= b < 127 for b in raw)


async def push_request(
    result: httpx.Response | Exception | str,
    conn_id: str,
    call_id: str | None,
) -> PushConnReq:
    """Wrap an HTTP response, an HTTP error or a proxy error message for pushing."""
    metadata: dict[str, str] = {}
    message = Message()
    if call_id is not None:
        metadata[CALL_ID] = call_id

    if isinstance(result, httpx.Response):
        metadata[HTTP_STATUS_CODE] = str(result.status_code)
        message.path = ""
        for raw_key, raw_value in result.headers.raw:
            if _is_visible_header_value(raw_value):
                metadata[raw_key.decode("latin-1").lower()] = raw_value.decode("ascii")
            else:
                logger.warning("header_value_error %r", raw_value)
        try:
            message.body = await result.aread()
        except httpx.HTTPError as exc:
            logger.warning("body_not_text e: %r", exc)
    elif isinstance(result, Exception):
        metadata[HTTP_STATUS_CODE] = "502"
        message.body = f"hproxy http error: {result}".encode("utf-8")
        logger.warning("resp_error %r", result)
    else:
        metadata[HTTP_STATUS_CODE] = "502"
        message.body = f"hproxy proxy error: {result}".encode("utf-8")
        logger.warning("resp_error %r", result)

    message.metadata = metadata
    return PushConnReq(cid=conn_id, message=message, trace=None)


def _peer_ip(peer_addr: tuple[Any, ...] | None) -> str | None:
    if peer_addr is None:
        return None
    return str(peer_addr[0])


def add_forwarded(metadata: dict[str, str], peer_addr: tuple[Any, ...] | None) -> None:
    """Set X-Forwarded-For to the peer's IP, if the peer is known."""
    ip = _peer_ip(peer_addr)
    if ip is not None:
        metadata[FORWARDED_FOR] = ip


def add_real_ip(metadata: dict[str, str], peer_addr: tuple[Any, ...] | None) -> None:
    """Set X-Real-IP to the peer's IP, if the peer is known."""
    ip = _peer_ip(peer_addr)
    if ip is not None:
        metadata[REAL_IP] = ip


class HttpProxy:
    """Forwards messages to HTTP backends chosen by URL rewrite rules."""

    def __init__(
        self,
        pusher: Pusher,
        hproxy_map: dict[str, Hproxy] | None = None,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._pusher = pusher
        self._rules = compile_rules(hproxy_map or {})
        if client is None:
            client = httpx.AsyncClient(
                timeout=None, limits=httpx.Limits(keepalive_expiry=KEEPALIVE_SECS)
            )
        self._client = client

    async def aclose(self) -> None:
        await self._client.aclose()

    async def on_message(
        self, conn_id: str, peer_addr: tuple[Any, ...] | None, message: Message
    ) -> None:
        add_forwarded(message.metadata, peer_addr)
        add_real_ip(message.metadata, peer_addr)
        await self.handle_request(MessageReq(cid=conn_id, message=message))

    async def handle_request(self, origin_request: MessageReq) -> None:
        logger.debug("recved: %r", origin_request)
        try:
            request = HpRequestBuilder.from_message_req(origin_request)
        except HproxyError as exc:
            logger.debug("ignored request: %s", exc)
            return
        await self.process(request)

    async def process(self, request: HpRequestBuilder) -> None:
        """Send the request to its rewritten URL and push the outcome to the connection."""
        conn_id = request.conn_id
        call_id = request.call_id
        replaced = self.replace_url(request.url)
        if replaced is None:
            msg = f"hproxy invalid url: {request.url}"
            logger.error("%s", msg)
            await self._pusher.push(await push_request(msg, conn_id, call_id))
            return
        rewrite_url, timeout = replaced

        result: httpx.Response | Exception
        try:
            http_request = request.build(rewrite_url)
        except HproxyError as exc:
            logger.error("request build err: %r", exc)
            return
        except httpx.InvalidURL as exc:
            result = exc
        else:
            http_request.extensions["timeout"] = httpx.Timeout(
                timeout.total_seconds()
            ).as_dict()
            start = time.monotonic()
            try:
                result = await self._client.send(http_request)
            except (httpx.HTTPError, httpx.InvalidURL) as exc:
                result = exc
            logger.debug("hproxy latency %d ms", int((time.monotonic() - start) * 1000))
        await self._pusher.push(await push_request(result, conn_id, call_id))

    def replace_url(self, origin_url: str) -> tuple[str, timedelta] | None:
        """Rewrite a URL with the first matching rule: configured rules, then own rules."""
        for rule in (*_config_rules(), *self._rules):
            rewritten = rule.rewrite(origin_url)
            if rewritten is not None:
                return rewritten, timedelta(milliseconds=rule.timeout_ms)
        return None


def build_http_proxy(pusher: Pusher) -> HttpProxy | None:
    """Create the proxy service, or None when no proxy rules are configured."""
    if not config().hproxy_map:
        logger.info("not set hproxy!")
        return None
    return HttpProxy(pusher)