# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Low-level protocol definitions for HDHomeRun devices.

This module defines the binary packet format used by HDHomeRun devices for TCP/IP
control and UDP discovery. It does not contain transport implementations.

Refer to https://github.com/Silicondust/libhdhomerun/blob/master/hdhomerun_pkt.h
for the vendor's definitions.
"""

from .constants import (
    MAX_PACKET_SIZE,
    MAX_PAYLOAD_SIZE,
    HEADER_LENGTH,
    CHECKSUM_LENGTH,
    MIN_PACKET_LENGTH,
    LARGE_TAG_LENGTH,
    MAX_TAG_LENGTH,
    DEVICE_ID_WILDCARD,
  )

from .packet_type import PacketType, TagType, DeviceType

from .tag_length import tag_length_size, write_tag_length, read_tag_length

from .packet import Packet, Tag
