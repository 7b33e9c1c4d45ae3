# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

import zlib

import pytest

from hdhomerun_client.exceptions import HdhrChecksumError, HdhrTruncatedPacketError
from hdhomerun_client.protocol import Packet, Tag, PacketType, TagType, DeviceType

def discover_request() -> Packet:
    return Packet(
        PacketType.DISCOVER_REQ,
        [
            Tag(TagType.DEVICE_TYPE, DeviceType.TUNER.to_bytes(4, 'big')),
            Tag(TagType.DEVICE_ID, b'\xff\xff\xff\xff'),
        ]
      )

def test_encode_discover_request_layout():
    data = discover_request().encode()
    assert len(data) == 20
    assert data[0:2] == b'\x00\x02'
    assert int.from_bytes(data[2:4], 'big') == 12
    assert data[4:10] == b'\x01\x04\x00\x00\x00\x01'
    assert data[10:16] == b'\x02\x04\xff\xff\xff\xff'
    assert int.from_bytes(data[16:], 'little') == zlib.crc32(data[:16])

def test_decode_reencodes_identically():
    data = discover_request().encode()
    packet = Packet.decode(data)
    assert packet.packet_type == PacketType.DISCOVER_REQ
    assert [t.tag_type for t in packet.tags] == [TagType.DEVICE_TYPE, TagType.DEVICE_ID]
    assert packet.encode() == data

def test_empty_packet():
    data = Packet(PacketType.GETSET_REQ).encode()
    assert len(data) == 8
    packet = Packet.decode(data)
    assert packet.tags == []

@pytest.mark.parametrize("size,length_bytes", [(0, 1), (127, 1), (128, 2), (300, 2)])
def test_tag_length_field_width(size, length_bytes):
    data = Packet(PacketType.GETSET_RPY, [Tag(TagType.GETSET_VALUE, b'x' * size)]).encode()
    assert int.from_bytes(data[2:4], 'big') == 1 + length_bytes + size
    decoded = Packet.decode(data)
    assert decoded.tags[0].data == b'x' * size

def test_128_byte_tag_length_encoding():
    data = Packet(PacketType.GETSET_RPY, [Tag(TagType.GETSET_VALUE, b'\x00' * 128)]).encode()
    assert data[4] == TagType.GETSET_VALUE
    assert data[5:7] == b'\x80\x01'

def test_short_buffer_is_truncated():
    for n in range(8):
        with pytest.raises(HdhrTruncatedPacketError):
            Packet.decode(b'\x00' * n)

def test_any_flipped_bit_is_detected():
    data = bytearray(discover_request().encode())
    for i in range(len(data)):
        for bit in range(8):
            corrupted = bytearray(data)
            corrupted[i] ^= 1 << bit
            with pytest.raises(HdhrChecksumError):
                Packet.decode(corrupted)

def test_checksum_mismatch():
    data = bytearray(discover_request().encode())
    data[-1] ^= 0xff
    with pytest.raises(HdhrChecksumError):
        Packet.decode(data)

def _with_checksum(body: bytes) -> bytes:
    return body + (zlib.crc32(body) & 0xffffffff).to_bytes(4, 'little')

def test_declared_length_mismatch():
    body = b'\x00\x05\x00\x07' + b'\x03\x02ab'
    with pytest.raises(HdhrTruncatedPacketError):
        Packet.decode(_with_checksum(body))

def test_tag_straddling_checksum():
    # tag declares 10 bytes of data but only 2 remain before the checksum
    body = b'\x00\x05\x00\x04' + b'\x03\x0aab'
    with pytest.raises(HdhrTruncatedPacketError):
        Packet.decode(_with_checksum(body))

def test_decode_copies_input():
    buf = bytearray(discover_request().encode())
    packet = Packet.decode(memoryview(buf))
    buf[6:10] = b'\x00\x00\x00\x00'
    assert packet.get_tag(TagType.DEVICE_TYPE).data == b'\x00\x00\x00\x01'

def test_get_tag_returns_first_match():
    packet = Packet(PacketType.GETSET_RPY, [Tag(TagType.GETSET_NAME, b'a'), Tag(TagType.GETSET_NAME, b'b')])
    assert packet.get_tag(TagType.GETSET_NAME).data == b'a'
    assert packet.get_tag(TagType.ERROR_MESSAGE) is None

def test_unknown_types_are_preserved():
    packet = Packet(0x1234, [Tag(0x77, b'zz')])
    decoded = Packet.decode(packet.encode())
    assert decoded == packet
    assert "0x1234" in str(decoded)
