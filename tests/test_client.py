# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

import asyncio
from typing import Callable

import pytest

from hdhomerun_client import (
    HdhrError,
    HdhrDeviceError,
    HdhrProtocolError,
    HdhrPacketTooLargeError,
    HdhrClientConfig,
    Packet,
    Tag,
    PacketType,
    TagType,
    hdhomerun_connect,
    hdhomerun_transport_connect,
    is_not_exist,
  )
from hdhomerun_client.emulator import HdhrEmulator

from .fake_device import FakeDevice

def new_emulator(**kwargs) -> HdhrEmulator:
    return HdhrEmulator(bind_addr='127.0.0.1', port=0, with_discovery=False, **kwargs)

def config() -> HdhrClientConfig:
    return HdhrClientConfig(use_config_file=False)

@pytest.mark.asyncio
async def test_query_model():
    async with new_emulator(model="hdhomerun4_atsc") as emulator:
        async with await hdhomerun_connect(f"127.0.0.1:{emulator.port}", config=config()) as client:
            assert await client.model() == "hdhomerun4_atsc"
            assert await client.query("/sys/model") == b"hdhomerun4_atsc\x00"

@pytest.mark.asyncio
async def test_query_request_format():
    def reply(request: Packet) -> bytes:
        return Packet(
            PacketType.GETSET_RPY,
            [Tag(TagType.GETSET_NAME, b"/sys/model\x00"), Tag(TagType.GETSET_VALUE, b"x\x00")]
          ).encode()
    async with FakeDevice(reply) as device:
        async with await hdhomerun_connect(device.addr, config=config()) as client:
            await client.query_str("/sys/model")
    assert device.requests == [Packet(PacketType.GETSET_REQ, [Tag(TagType.GETSET_NAME, b"/sys/model\x00")])]

@pytest.mark.asyncio
async def test_set_value():
    async with new_emulator(values={"/tuner0/channel": "none"}) as emulator:
        async with await hdhomerun_connect(f"127.0.0.1:{emulator.port}", config=config()) as client:
            assert await client.set("/tuner0/channel", "auto:5") == b"auto:5\x00"
            assert await client.query_str("/tuner0/channel") == "auto:5"

@pytest.mark.asyncio
async def test_device_error():
    async with new_emulator() as emulator:
        async with await hdhomerun_connect(f"127.0.0.1:{emulator.port}", config=config()) as client:
            with pytest.raises(HdhrDeviceError) as exc_info:
                await client.query("/nope")
            assert exc_info.value.is_not_exist()
            assert is_not_exist(exc_info.value)
            assert str(exc_info.value) == "ERROR: unknown getset variable"
            # the connection is still usable after a device-reported error
            assert await client.model() == "hdhomerun3_cablecard"

@pytest.mark.asyncio
async def test_other_device_error_is_not_not_exist():
    def reply(request: Packet) -> bytes:
        return Packet(
            PacketType.GETSET_RPY,
            [Tag(TagType.GETSET_NAME, b"/sys/model\x00"), Tag(TagType.ERROR_MESSAGE, b"ERROR: resource locked\x00")]
          ).encode()
    async with FakeDevice(reply) as device:
        async with await hdhomerun_connect(device.addr, config=config()) as client:
            with pytest.raises(HdhrDeviceError) as exc_info:
                await client.query("/sys/model")
    assert exc_info.value.message == "resource locked"
    assert not exc_info.value.is_not_exist()

@pytest.mark.asyncio
async def test_name_mismatch():
    def reply(request: Packet) -> bytes:
        return Packet(
            PacketType.GETSET_RPY,
            [Tag(TagType.GETSET_NAME, b"/sys/hwmodel\x00"), Tag(TagType.GETSET_VALUE, b"x\x00")]
          ).encode()
    async with FakeDevice(reply) as device:
        async with await hdhomerun_connect(device.addr, config=config()) as client:
            with pytest.raises(HdhrProtocolError):
                await client.query("/sys/model")

@pytest.mark.asyncio
async def test_wrong_reply_type():
    def reply(request: Packet) -> bytes:
        return Packet(PacketType.DISCOVER_RPY, [Tag(TagType.GETSET_NAME, b"/sys/model\x00")]).encode()
    async with FakeDevice(reply) as device:
        async with await hdhomerun_connect(device.addr, config=config()) as client:
            with pytest.raises(HdhrProtocolError):
                await client.query("/sys/model")

@pytest.mark.asyncio
async def test_missing_tags():
    def reply(request: Packet) -> bytes:
        return Packet(PacketType.GETSET_RPY).encode()
    async with FakeDevice(reply) as device:
        async with await hdhomerun_connect(device.addr, config=config()) as client:
            with pytest.raises(HdhrProtocolError):
                await client.query("/sys/model")

@pytest.mark.asyncio
async def test_oversize_reply_closes_transport():
    def reply(request: Packet) -> bytes:
        return b'\x00\x05\x10\x00'
    async with FakeDevice(reply) as device:
        async with await hdhomerun_connect(device.addr, config=config()) as client:
            with pytest.raises(HdhrPacketTooLargeError):
                await client.query("/sys/model")
            with pytest.raises(HdhrError, match="closed"):
                await client.query("/sys/model")

@pytest.mark.asyncio
async def test_execute_returns_raw_reply():
    async with new_emulator() as emulator:
        async with await hdhomerun_connect(f"127.0.0.1:{emulator.port}", config=config()) as client:
            reply = await client.execute(Packet(PacketType.GETSET_REQ, [Tag(TagType.GETSET_NAME, b"/sys/hwmodel\x00")]))
    assert reply.packet_type == PacketType.GETSET_RPY
    assert reply.get_tag(TagType.GETSET_VALUE).data == b"HDHOMERUN3_CABLECARD\x00"

@pytest.mark.asyncio
async def test_concurrent_queries_are_serialized():
    values = { f"/test/value{i}": f"v{i}" for i in range(10) }
    async with new_emulator(values=values) as emulator:
        async with await hdhomerun_connect(f"127.0.0.1:{emulator.port}", config=config()) as client:
            results = await asyncio.gather(*(client.query_str(name) for name in values))
    assert results == list(values.values())

@pytest.mark.asyncio
async def test_transaction_holds_lock():
    async with new_emulator() as emulator:
        transport = await hdhomerun_transport_connect(f"127.0.0.1:{emulator.port}", config=config())
        async with transport:
            request = Packet(PacketType.GETSET_REQ, [Tag(TagType.GETSET_NAME, b"/sys/model\x00")])
            async with transport.transaction() as transaction:
                first = await transaction.transact(request)
                second = await transaction.transact(request)
            assert first == second

@pytest.mark.asyncio
async def test_timeout_closes_transport():
    async with new_emulator(reply_delay_secs=0.5) as emulator:
        async with await hdhomerun_connect(
                f"127.0.0.1:{emulator.port}", timeout_secs=0.1, config=config()) as client:
            with pytest.raises(asyncio.TimeoutError):
                await client.model()
            with pytest.raises(HdhrError, match="closed"):
                await client.model()

@pytest.mark.asyncio
async def test_zero_timeout_waits():
    async with new_emulator(reply_delay_secs=0.2) as emulator:
        async with await hdhomerun_connect(
                f"127.0.0.1:{emulator.port}", timeout_secs=0, config=config()) as client:
            assert await client.model() == "hdhomerun3_cablecard"

@pytest.mark.asyncio
async def test_connect_refused():
    async with new_emulator() as emulator:
        port = emulator.port
    with pytest.raises(OSError):
        await hdhomerun_connect(f"127.0.0.1:{port}", config=config())

def value_reply(name: bytes, value: bytes) -> Callable[[Packet], bytes]:
    def reply(request: Packet) -> bytes:
        return Packet(
            PacketType.GETSET_RPY,
            [Tag(TagType.GETSET_NAME, name), Tag(TagType.GETSET_VALUE, value)]
          ).encode()
    return reply

@pytest.mark.asyncio
async def test_reply_split_across_segments():
    value = bytes(range(32, 127)) * 3 + b"abcdef\x00"
    assert len(value) == 292
    async with FakeDevice(value_reply(b"/sys/model\x00", value), chunk_size=3) as device:
        async with await hdhomerun_connect(device.addr, timeout_secs=5.0, config=config()) as client:
            assert await client.query("/sys/model") == value
            # the stream stays aligned for the next reply
            assert await client.query("/sys/model") == value

@pytest.mark.asyncio
async def test_long_value_uses_two_byte_tag_length():
    value = b"x" * 200 + b"\x00"
    async with FakeDevice(value_reply(b"/tuner0/debug\x00", value)) as device:
        async with await hdhomerun_connect(device.addr, config=config()) as client:
            assert await client.query("/tuner0/debug") == value

@pytest.mark.asyncio
async def test_maximum_size_reply_is_accepted():
    name = b"/sys/model\x00"
    # 4 header + (1+1+11 name) + (1+2+1436 value) + 4 checksum == 1460
    value = b"v" * 1435 + b"\x00"
    reply = value_reply(name, value)
    assert len(reply(Packet(PacketType.GETSET_REQ))) == 1460
    async with FakeDevice(reply, chunk_size=97) as device:
        async with await hdhomerun_connect(device.addr, timeout_secs=5.0, config=config()) as client:
            assert await client.query("/sys/model") == value

@pytest.mark.asyncio
async def test_declared_size_one_over_maximum():
    def reply(request: Packet) -> bytes:
        # declares a 1453-byte payload, making a 1461-byte packet; the header arrives in two pieces
        return b'\x00\x05' + (1453).to_bytes(2, 'big') + b'\x00' * 8
    async with FakeDevice(reply, chunk_size=2) as device:
        async with await hdhomerun_connect(device.addr, timeout_secs=5.0, config=config()) as client:
            with pytest.raises(HdhrPacketTooLargeError):
                await client.query("/sys/model")
            with pytest.raises(HdhrError, match="closed"):
                await client.query("/sys/model")
