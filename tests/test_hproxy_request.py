import pytest

from pushlink.hproxy_request import (
    CALL_ID,
    METHOD,
    HpRequestBuilder,
    InvalidMethodError,
    NoCallIdError,
    NoMessageError,
    NoMethodError,
    header_map,
)
from pushlink.messages import Message, MessageReq


def make_builder(**overrides):
    values = dict(
        conn_id="123",
        metadata={},
        body="",
        call_id="123",
        method="GET",
        url="/",
    )
    values.update(overrides)
    return HpRequestBuilder(**values)


def test_no_call_id():
    builder = make_builder(call_id=None)
    with pytest.raises(NoCallIdError) as info:
        builder.build("url")
    assert str(info.value) == "No CallId url"


def test_no_method():
    builder = make_builder(method=None)
    with pytest.raises(NoMethodError) as info:
        builder.build("url")
    assert str(info.value) == "No Method url"


def test_build():
    builder = make_builder(metadata={"trace": "aaa"})
    url = "http://www.example.com/"
    request = builder.build(url)
    assert request.method == "GET"
    assert request.headers["trace"] == "aaa"
    assert str(request.url) == url


def test_build_uppercases_method_and_keeps_body():
    builder = make_builder(method="post", body="payload")
    request = builder.build("http://www.example.com/submit")
    assert request.method == "POST"
    assert request.content == b"payload"


def test_invalid_method():
    builder = make_builder(method="GE T")
    with pytest.raises(InvalidMethodError) as info:
        builder.build("http://www.example.com/")
    assert str(info.value) == "Invalid Method GE T of http://www.example.com/"


def test_header_map():
    headers = header_map({METHOD: "GET"})
    assert headers.get(METHOD) == "GET"
    assert "trace" not in headers


def test_header_map_drops_invalid_entries():
    headers = header_map({"bad key": "x", "good": "line\nbreak", "Ok-Name": "value"})
    assert headers == {"ok-name": "value"}


def test_from_message_req_extracts_fields():
    message = Message(
        path="https://api.example.com/items",
        metadata={METHOD: "PUT", CALL_ID: "c1", "x-trace": "t"},
        body=b"data",
    )
    builder = HpRequestBuilder.from_message_req(MessageReq(cid="conn-1", message=message))
    assert builder.method == "PUT"
    assert builder.call_id == "c1"
    assert builder.metadata == {"x-trace": "t"}
    assert builder.url == "https://api.example.com/items"
    assert builder.conn_id == "conn-1"
    assert builder.body == "data"
    assert message.metadata[METHOD] == "PUT"


def test_from_message_req_non_utf8_body():
    message = Message(path="/", body=b"\xff\xfe")
    builder = HpRequestBuilder.from_message_req(MessageReq(cid="c", message=message))
    assert builder.body == ""
    assert builder.method is None
    assert builder.call_id is None


def test_from_message_req_without_message():
    with pytest.raises(NoMessageError) as info:
        HpRequestBuilder.from_message_req(MessageReq(cid="7"))
    assert str(info.value) == "No Message in MessageReq of conn 7"