import pytest

from pushlink.config import (
    Config,
    ConnCounters,
    GrpcChannel,
    Hproxy,
    Protocol,
    config,
    connect,
    get_zone,
    set_config,
)


@pytest.fixture(autouse=True)
def _restore_config():
    saved = config()
    yield
    set_config(saved)


def test_set_and_get_config_round_trip():
    cfg = Config(hostname="node-a", zone="zone1", service_grpc_timeout_ms=1234)
    set_config(cfg)
    got = config()
    assert got.hostname == "node-a"
    assert got.zone == "zone1"
    assert got.service_grpc_timeout_ms == 1234


def test_config_returns_independent_copy():
    set_config(Config(hostname="h"))
    got = config()
    got.hproxy_map["x"] = Hproxy(origin_url="x", rewrite_url="y", timeout=1)
    got.hostname = "changed"
    again = config()
    assert again.hostname == "h"
    assert again.hproxy_map == {}


def test_set_config_copies_argument():
    cfg = Config(hostname="h")
    set_config(cfg)
    cfg.hostname = "mutated"
    assert config().hostname == "h"


def test_get_zone():
    set_config(Config(zone="z9"))
    assert get_zone() == "z9"
    set_config(Config(zone=None))
    assert get_zone() is None


def test_connect_builds_http_uri():
    channel = connect("127.0.0.1:8080", 2000)
    assert channel == GrpcChannel(uri="http://127.0.0.1:8080", timeout_ms=2000)


@pytest.mark.parametrize("addr", ["", "bad host:1", "host:notaport", "host:1/path"])
def test_connect_rejects_invalid_addr(addr):
    with pytest.raises(ValueError):
        connect(addr, 100)


def test_counters_per_protocol():
    counters = ConnCounters()
    counters.increment(Protocol.TCP)
    counters.increment(Protocol.TCP)
    counters.increment(Protocol.WEBSOCKET)
    counters.increment(Protocol.QUIC)
    counters.decrement(Protocol.TCP)
    assert counters.count(Protocol.TCP) == 1
    assert counters.count(Protocol.WEBSOCKET) == 1
    assert counters.count(Protocol.QUIC) == 1
    assert counters.total() == 3


def test_counters_start_at_zero():
    counters = ConnCounters()
    assert counters.total() == 0
    assert all(counters.count(p) == 0 for p in Protocol)