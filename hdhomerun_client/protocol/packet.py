# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Encapsulation of a single protocol packet sent to or received from a device,
over either the TCP control connection or the UDP discovery socket.

An encoded packet is laid out as follows:

    [2 bytes type][2 bytes payload length][payload: tag*][4 bytes checksum]

The type and payload length are big-endian. The payload length counts only the
tag bytes. The checksum is a little-endian CRC-32 (IEEE) of every byte that
precedes it.

Each tag is encoded as:

    [1 byte tag type][1 or 2 byte length][data]

See tag_length.py for the variable length encoding.
"""

from __future__ import annotations

import zlib

from ..internal_types import *
from ..exceptions import (
    HdhrChecksumError,
    HdhrTruncatedPacketError,
  )
from .constants import (
    HEADER_LENGTH,
    CHECKSUM_LENGTH,
    MIN_PACKET_LENGTH,
  )
from .packet_type import PacketType, TagType
from .tag_length import tag_length_size, write_tag_length, read_tag_length

def _type_name(enum_cls: Any, value: int, width: int) -> str:
    try:
        return enum_cls(value).name
    except ValueError:
        return f"0x{value:0{width}x}"

class Tag:
    """An attribute carried by a Packet."""

    tag_type: int
    """The type of payload this tag carries (an 8-bit code; see TagType)."""

    data: bytes
    """An arbitrary byte payload."""

    def __init__(self, tag_type: int, data: Union[bytes, bytearray, memoryview]=b''):
        self.tag_type = int(tag_type)
        self.data = bytes(data)

    @property
    def encoded_length(self) -> int:
        """The number of bytes this tag occupies in an encoded packet."""
        n = len(self.data)
        return 1 + tag_length_size(n) + n

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Tag):
            return NotImplemented
        return self.tag_type == other.tag_type and self.data == other.data

    def __hash__(self) -> int:
        return hash((self.tag_type, self.data))

    def __str__(self) -> str:
        return f"Tag({_type_name(TagType, self.tag_type, 2)}, [{self.data.hex(' ')}])"

    def __repr__(self) -> str:
        return str(self)

class Packet:
    """A network packet used to communicate with devices."""

    packet_type: int
    """The type of message this packet carries (a 16-bit code; see PacketType)."""

    tags: List[Tag]
    """Zero or more tags containing optional attributes, in wire order."""

    def __init__(self, packet_type: int, tags: Optional[Iterable[Tag]]=None):
        self.packet_type = int(packet_type)
        self.tags = [] if tags is None else list(tags)

    @property
    def payload_length(self) -> int:
        """The number of bytes occupied by the encoded tags."""
        return sum(tag.encoded_length for tag in self.tags)

    def get_tag(self, tag_type: int) -> Optional[Tag]:
        """Returns the first tag of the given type, or None if there is none."""
        for tag in self.tags:
            if tag.tag_type == tag_type:
                return tag
        return None

    def encode(self) -> bytes:
        """Encodes the packet into its binary form."""
        payload_length = self.payload_length
        buf = bytearray(HEADER_LENGTH + payload_length + CHECKSUM_LENGTH)

        buf[0:2] = self.packet_type.to_bytes(2, 'big')
        buf[2:4] = payload_length.to_bytes(2, 'big')

        i = HEADER_LENGTH
        for tag in self.tags:
            buf[i] = tag.tag_type
            i += 1
            i += write_tag_length(len(tag.data), memoryview(buf)[i:i+2])
            buf[i:i+len(tag.data)] = tag.data
            i += len(tag.data)

        checksum = zlib.crc32(buf[:-CHECKSUM_LENGTH]) & 0xffffffff
        buf[-CHECKSUM_LENGTH:] = checksum.to_bytes(CHECKSUM_LENGTH, 'little')
        return bytes(buf)

    @classmethod
    def decode(cls, data: Union[bytes, bytearray, memoryview]) -> Packet:
        """Decodes a packet from its binary form.

        Tag data is copied, so the caller may reuse data afterwards.

        Raises:
            HdhrTruncatedPacketError: data is shorter than an empty packet, the declared
                payload length does not match the data, or a tag runs past the checksum.
            HdhrChecksumError: the CRC-32 trailer does not match.
        """
        b = bytes(data)
        if len(b) < MIN_PACKET_LENGTH:
            raise HdhrTruncatedPacketError(f"packet is {len(b)} bytes; at least {MIN_PACKET_LENGTH} are required")

        end = len(b) - CHECKSUM_LENGTH
        want = int.from_bytes(b[end:], 'little')
        got = zlib.crc32(b[:end]) & 0xffffffff
        if want != got:
            raise HdhrChecksumError(f"invalid CRC32 checksum: expected 0x{want:08x}, computed 0x{got:08x}")

        packet_type = int.from_bytes(b[0:2], 'big')
        payload_length = int.from_bytes(b[2:4], 'big')
        if payload_length != len(b) - MIN_PACKET_LENGTH:
            raise HdhrTruncatedPacketError(
                f"declared payload length {payload_length} does not match actual payload length {len(b) - MIN_PACKET_LENGTH}")

        packet = cls(packet_type)
        i = HEADER_LENGTH
        while i < end:
            tag_type = b[i]
            i += 1
            tag_length, consumed = read_tag_length(b[i:i+2])
            i += consumed
            if end - i < tag_length:
                raise HdhrTruncatedPacketError(
                    f"tag 0x{tag_type:02x} length {tag_length} runs past end of payload")
            packet.tags.append(Tag(tag_type, b[i:i+tag_length]))
            i += tag_length

        return packet

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Packet):
            return NotImplemented
        return self.packet_type == other.packet_type and self.tags == other.tags

    def __str__(self) -> str:
        tags_str = ', '.join(str(tag) for tag in self.tags)
        return f"Packet({_type_name(PacketType, self.packet_type, 4)}, [{tags_str}])"

    def __repr__(self) -> str:
        return str(self)
