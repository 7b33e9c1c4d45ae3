# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Protocol-specific constants
"""

from __future__ import annotations

MAX_PACKET_SIZE = 1460
"""The maximum size of an encoded packet, including header and checksum, in bytes."""

MAX_PAYLOAD_SIZE = 1452
"""The maximum size of the tag payload of a packet, in bytes."""

HEADER_LENGTH = 4
"""Length of the packet type and payload length header, in bytes."""

CHECKSUM_LENGTH = 4
"""Length of the trailing CRC-32 checksum, in bytes."""

MIN_PACKET_LENGTH = HEADER_LENGTH + CHECKSUM_LENGTH
"""The length of a packet with no tags."""

LARGE_TAG_LENGTH = 128
"""Tag data of at least this many bytes has its length encoded in two bytes instead of one."""

MAX_TAG_LENGTH = 0x7fff
"""The largest tag data length that can be represented by the variable tag length encoding."""

DEVICE_ID_WILDCARD = "ffffffff"
"""Device ID used during discovery to request that devices with any ID reply."""
