# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

import pytest

from hdhomerun_client import (
    HdhrClientConfig,
    HdhrDeviceError,
    HdhrTuner,
    Packet,
    Tag,
    PacketType,
    TagType,
    hdhomerun_connect,
  )
from hdhomerun_client.emulator import HdhrEmulator

from .fake_device import FakeDevice

def new_emulator(**kwargs) -> HdhrEmulator:
    return HdhrEmulator(bind_addr='127.0.0.1', port=0, with_discovery=False, **kwargs)

def config() -> HdhrClientConfig:
    return HdhrClientConfig(use_config_file=False)

@pytest.mark.asyncio
async def test_visits_each_tuner_in_order():
    visited = []

    async def visit(tuner: HdhrTuner) -> None:
        visited.append(tuner.index)

    async with new_emulator(tuner_count=2) as emulator:
        async with await hdhomerun_connect(f"127.0.0.1:{emulator.port}", config=config()) as client:
            await client.for_each_tuner(visit)
    assert visited == [0, 1]

@pytest.mark.asyncio
async def test_no_tuners():
    visited = []

    async def visit(tuner: HdhrTuner) -> None:
        visited.append(tuner.index)

    async with new_emulator(tuner_count=0) as emulator:
        async with await hdhomerun_connect(f"127.0.0.1:{emulator.port}", config=config()) as client:
            await client.for_each_tuner(visit)
    assert visited == []

@pytest.mark.asyncio
async def test_visit_error_stops_enumeration():
    visited = []

    async def visit(tuner: HdhrTuner) -> None:
        visited.append(tuner.index)
        raise RuntimeError("visit failed")

    async with new_emulator(tuner_count=3) as emulator:
        async with await hdhomerun_connect(f"127.0.0.1:{emulator.port}", config=config()) as client:
            with pytest.raises(RuntimeError, match="visit failed"):
                await client.for_each_tuner(visit)
    assert visited == [0]

@pytest.mark.asyncio
async def test_other_device_error_propagates():
    def reply(request: Packet) -> bytes:
        name = request.get_tag(TagType.GETSET_NAME).data
        return Packet(
            PacketType.GETSET_RPY,
            [Tag(TagType.GETSET_NAME, name), Tag(TagType.ERROR_MESSAGE, b"ERROR: internal error\x00")]
          ).encode()

    async def visit(tuner: HdhrTuner) -> None:
        pass

    async with FakeDevice(reply) as device:
        async with await hdhomerun_connect(device.addr, config=config()) as client:
            with pytest.raises(HdhrDeviceError, match="internal error"):
                await client.for_each_tuner(visit)
    assert device.requests[0].get_tag(TagType.GETSET_NAME).data == b"/tuner0/debug\x00"

@pytest.mark.asyncio
async def test_tuner_debug():
    tuner_debug = {
        1: "tun: ch=qam:381000000 lock=qam256:381000000 ss=90 snq=80 seq=70 dbg=-370/8270\n"
           "net: pps=100 err=2 stop=0\n",
      }
    async with new_emulator(tuner_count=2, tuner_debug=tuner_debug) as emulator:
        async with await hdhomerun_connect(f"127.0.0.1:{emulator.port}", config=config()) as client:
            idle = await client.tuner(0).debug()
            tuned = await client.tuner(1).debug()
    assert idle.tuner is not None and idle.tuner.channel == "none"
    assert tuned.tuner is not None
    assert tuned.tuner.channel == "qam:381000000"
    assert tuned.tuner.signal_strength == 90
    assert tuned.network is not None and tuned.network.errors == 2
    assert tuned.cablecard is None
