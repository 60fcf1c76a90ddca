"""Turning messages received on a connection into outgoing HTTP requests."""

from __future__ import annotations

import logging
import string
from dataclasses import dataclass, field

import httpx

from pushlink.messages import MessageReq

logger = logging.getLogger(__name__)

HPROXY_NAMESPACE = "__http_proxy"
HTTP_STATUS_CODE = "__status_code"
CALL_ID = "__call_id"
METHOD = "__method"

_TOKEN_CHARS = frozenset(string.ascii_letters + string.digits + "!#$%&'*+-.^_`|~")


class HproxyError(Exception):
    """Base class of HTTP proxy request errors."""


class NoCallIdError(HproxyError):
    def __init__(self, url: str) -> None:
        super().__init__(f"No CallId {url}")
        self.url = url


class NoMethodError(HproxyError):
    def __init__(self, url: str) -> None:
        super().__init__(f"No Method {url}")
        self.url = url


class InvalidMethodError(HproxyError):
    def __init__(self, method: str, url: str) -> None:
        super().__init__(f"Invalid Method {method} of {url}")
        self.method = method
        self.url = url


class NoMessageError(HproxyError):
    def __init__(self, cid: str) -> None:
        super().__init__(f"No Message in MessageReq of conn {cid}")
        self.cid = cid


def _is_token(text: str) -> bool:
    return bool(text) and all(ch in _TOKEN_CHARS for ch in text)


def _is_header_value(text: str) -> bool:
    return all(ch == "\t" or (ch >= " " and ch != "\x7f") for ch in text)


def header_map(metadata: dict[str, str]) -> dict[str, str]:
    """Keep the metadata entries that are valid HTTP headers, with lower-cased names."""
    headers: dict[str, str] = {}
    for key, value in metadata.items():
        if not _is_token(key):
            logger.warning("invalid_header_key=%s", key)
            continue
        if not _is_header_value(value):
            logger.warning("invalid_header_value=%r||header_key=%s", value, key)
            continue
        headers[key.lower()] = value
    logger.debug("get_header_map=%r", headers)
    return headers


@dataclass
class HpRequestBuilder:
    """The parts of an HTTP request carried by a proxied message."""

    url: str
    conn_id: str
    metadata: dict[str, str] = field(default_factory=dict)
    body: str = ""
    method: str | None = None
    call_id: str | None = None

    @classmethod
    def from_message_req(cls, item: MessageReq) -> HpRequestBuilder:
        """Extract method, call id, headers and body from a received message."""
        message = item.message
        if message is None:
            raise NoMessageError(item.cid)
        metadata = dict(message.metadata)
        method = metadata.pop(METHOD, None)
        call_id = metadata.pop(CALL_ID, None)
        return cls(
            url=message.path,
            conn_id=item.cid,
            metadata=metadata,
            body=message.body_text(),
            method=method,
            call_id=call_id,
        )

    def build(self, url: str) -> httpx.Request:
        """Build the request to send to ``url``."""
        if self.call_id is None:
            raise NoCallIdError(url)
        if self.method is None:
            raise NoMethodError(url)
        method = self.method.upper()
        if not _is_token(method):
            raise InvalidMethodError(self.method, url)
        headers = [
            (name.encode("ascii"), value.encode("utf-8"))
            for name, value in header_map(self.metadata).items()
        ]
        request = httpx.Request(method, url, headers=headers, content=self.body.encode("utf-8"))
        logger.debug("build_request %r", request)
        return request