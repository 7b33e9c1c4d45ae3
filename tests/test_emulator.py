# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

import asyncio

import pytest

from hdhomerun_client import HdhrError, Packet, Tag, PacketType, TagType, DeviceType
from hdhomerun_client.emulator import HdhrEmulator, IDLE_TUNER_DEBUG

async def read_reply(reader: asyncio.StreamReader) -> Packet:
    header = await reader.readexactly(4)
    rest = await reader.readexactly(int.from_bytes(header[2:4], 'big') + 4)
    return Packet.decode(header + rest)

def getset_request(name: bytes) -> bytes:
    return Packet(PacketType.GETSET_REQ, [Tag(TagType.GETSET_NAME, name)]).encode()

@pytest.mark.asyncio
async def test_pipelined_requests_split_across_writes():
    async with HdhrEmulator(bind_addr='127.0.0.1', port=0, with_discovery=False) as emulator:
        reader, writer = await asyncio.open_connection('127.0.0.1', emulator.port)
        try:
            data = getset_request(b"/sys/model\x00") + getset_request(b"/tuner1/debug\x00")
            writer.write(data[:5])
            await writer.drain()
            await asyncio.sleep(0.05)
            writer.write(data[5:])
            await writer.drain()
            first = await read_reply(reader)
            second = await read_reply(reader)
        finally:
            writer.close()
    assert first.get_tag(TagType.GETSET_VALUE).data == b"hdhomerun3_cablecard\x00"
    assert second.get_tag(TagType.GETSET_VALUE).data == IDLE_TUNER_DEBUG.encode() + b"\x00"

@pytest.mark.asyncio
async def test_corrupt_request_closes_session():
    async with HdhrEmulator(bind_addr='127.0.0.1', port=0, with_discovery=False) as emulator:
        reader, writer = await asyncio.open_connection('127.0.0.1', emulator.port)
        try:
            data = bytearray(getset_request(b"/sys/model\x00"))
            data[-1] ^= 0xff
            writer.write(data)
            await writer.drain()
            assert await asyncio.wait_for(reader.read(), 2.0) == b""
        finally:
            writer.close()

@pytest.mark.asyncio
async def test_non_getset_request_closes_session():
    async with HdhrEmulator(bind_addr='127.0.0.1', port=0, with_discovery=False) as emulator:
        reader, writer = await asyncio.open_connection('127.0.0.1', emulator.port)
        try:
            writer.write(Packet(PacketType.UPGRADE_REQ).encode())
            await writer.drain()
            assert await asyncio.wait_for(reader.read(), 2.0) == b""
        finally:
            writer.close()

@pytest.mark.asyncio
async def test_handle_discover_request_filters():
    emulator = HdhrEmulator(device_id="CAFEF00D", base_url="http://x", with_discovery=False)
    wildcard = Packet(PacketType.DISCOVER_REQ, [
        Tag(TagType.DEVICE_TYPE, DeviceType.WILDCARD.to_bytes(4, 'big')),
        Tag(TagType.DEVICE_ID, b'\xff\xff\xff\xff'),
      ])
    reply = emulator.handle_discover_request(wildcard)
    assert reply is not None
    assert reply.get_tag(TagType.DEVICE_ID).data == b'\xca\xfe\xf0\x0d'
    assert reply.get_tag(TagType.BASE_URL).data == b"http://x"

    storage = Packet(PacketType.DISCOVER_REQ, [Tag(TagType.DEVICE_TYPE, DeviceType.STORAGE.to_bytes(4, 'big'))])
    assert emulator.handle_discover_request(storage) is None
    assert emulator.handle_discover_request(Packet(PacketType.GETSET_REQ)) is None

def test_invalid_device_id():
    with pytest.raises(HdhrError):
        HdhrEmulator(device_id="xyz", with_discovery=False)
