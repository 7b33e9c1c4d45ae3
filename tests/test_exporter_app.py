# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

from typing import Awaitable, Callable, List

import pytest
from fastapi.testclient import TestClient
from prometheus_client.parser import text_string_to_metric_families

from hdhomerun_client import HdhrDeviceError, HdhrTuner
from hdhomerun_client.exporter import create_app, target_address
from hdhomerun_client.exporter.__main__ import parse_listen_addr
from hdhomerun_client.status import TunerDebug

class FakeTuner:
    index: int

    def __init__(self, index: int) -> None:
        self.index = index

    async def debug(self) -> TunerDebug:
        return TunerDebug.parse("tun: ch=none lock=none ss=50 snq=0 seq=0 dbg=-\n")

class FakeClient:
    """Stands in for a connected HdhrClient."""
    closed: bool = False
    fail: bool

    def __init__(self, fail: bool=False) -> None:
        self.fail = fail

    async def model(self) -> str:
        if self.fail:
            raise HdhrDeviceError("unknown getset variable")
        return "hdhomerun5_atsc"

    async def for_each_tuner(self, visit: Callable[[HdhrTuner], Awaitable[None]]) -> None:
        for i in range(2):
            await visit(FakeTuner(i))  # type: ignore[arg-type]

    async def __aenter__(self) -> "FakeClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.closed = True

def fake_dialer(dialed: List[str], client: FakeClient):
    async def dial(addr: str) -> FakeClient:
        dialed.append(addr)
        return client
    return dial

@pytest.mark.parametrize("target,addr", [
    ("192.168.1.5", "192.168.1.5:65001"),
    ("192.168.1.5:1234", "192.168.1.5:1234"),
    ("hdhr.local", "hdhr.local:65001"),
    ("::1", "[::1]:65001"),
    ("[::1]", "[::1]:65001"),
    ("[::1]:1234", "[::1]:1234"),
  ])
def test_target_address(target, addr):
    assert target_address(target) == addr

def test_parse_listen_addr():
    assert parse_listen_addr(":9137") == ("0.0.0.0", 9137)
    assert parse_listen_addr("127.0.0.1:8080") == ("127.0.0.1", 8080)

def test_missing_target():
    with TestClient(create_app()) as client:
        response = client.get("/metrics")
    assert response.status_code == 400
    assert "missing target parameter" in response.text

def test_dial_failure():
    with TestClient(create_app()) as client:
        response = client.get("/metrics", params=dict(target="foo:bar"))
    assert response.status_code == 500
    assert response.text.startswith('failed to dial HDHomeRun device at "foo:bar": ')

def test_scrape():
    dialed: List[str] = []
    fake = FakeClient()
    with TestClient(create_app(dial=fake_dialer(dialed, fake))) as client:
        response = client.get("/metrics", params=dict(target="10.0.0.2"))
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert dialed == ["10.0.0.2:65001"]
    assert fake.closed
    families = { f.name: f for f in text_string_to_metric_families(response.text) }
    assert families["hdhomerun_device_info"].samples[0].labels == dict(model="hdhomerun5_atsc")
    strengths = sorted(
        (s.labels["tuner"], s.value) for s in families["hdhomerun_tuner_signal_strength_ratio"].samples)
    assert strengths == [("0", 0.5), ("1", 0.5)]

def test_collection_failure():
    dialed: List[str] = []
    fake = FakeClient(fail=True)
    with TestClient(create_app(dial=fake_dialer(dialed, fake))) as client:
        response = client.get("/metrics", params=dict(target="10.0.0.2:70"))
    assert response.status_code == 500
    assert "10.0.0.2:70" in response.text
    assert fake.closed

def test_custom_metrics_path_and_redirect():
    dialed: List[str] = []
    with TestClient(create_app(metrics_path="/scrape", dial=fake_dialer(dialed, FakeClient()))) as client:
        response = client.get("/", follow_redirects=False)
        assert response.status_code == 301
        assert response.headers["location"] == "/scrape"
        assert client.get("/scrape", params=dict(target="10.0.0.3")).status_code == 200
