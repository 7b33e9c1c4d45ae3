# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Discovery request construction and discovery reply decoding.
"""

from __future__ import annotations

from urllib.parse import urlsplit

from ..internal_types import *
from ..exceptions import HdhrError, HdhrProtocolError
from ..protocol import Packet, Tag, PacketType, TagType, DeviceType

def parse_device_id(device_id: str) -> bytes:
    """Parses an eight character hexadecimal device ID into its 4-byte wire form."""
    try:
        result = bytes.fromhex(device_id)
    except ValueError:
        raise HdhrError(f"Invalid hexadecimal device ID: {device_id!r}") from None
    if len(result) != 4:
        raise HdhrError(f"Device ID must be eight hexadecimal characters: {device_id!r}")
    return result

def discover_packet(device_type: int, device_id: bytes) -> Packet:
    """Returns a discovery request packet for the given device type and 4-byte device ID."""
    if len(device_id) != 4:
        raise HdhrError(f"Device ID must be exactly 4 bytes: {device_id.hex()}")
    return Packet(
        PacketType.DISCOVER_REQ,
        [
            Tag(TagType.DEVICE_TYPE, int(device_type).to_bytes(4, 'big')),
            Tag(TagType.DEVICE_ID, device_id),
        ]
      )

def format_addr(host: str, port: int) -> str:
    """Formats a host and port as "host:port", bracketing IPv6 hosts."""
    if ':' in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"

class DiscoveredDevice:
    """A device that replied to a discovery request. Its addr can be used to
       open a client connection to the device."""

    device_id: str
    """The unique ID of the device, as eight lowercase hex characters."""

    host: str
    """The IP address the reply came from."""

    port: int
    """The UDP port the reply came from."""

    device_type_code: int
    """The raw device type code reported by the device."""

    url: Optional[str] = None
    """If available, the base URL of the device's web UI."""

    tuner_count: int = 0
    """The number of TV tuners available on the device."""

    def __init__(
            self,
            device_id: str,
            host: str,
            port: int,
            device_type_code: int,
            url: Optional[str]=None,
            tuner_count: int=0,
          ) -> None:
        self.device_id = device_id
        self.host = host
        self.port = port
        self.device_type_code = device_type_code
        self.url = url
        self.tuner_count = tuner_count

    @property
    def addr(self) -> str:
        """The network address of the device, as "host:port"."""
        return format_addr(self.host, self.port)

    @property
    def device_type(self) -> DeviceType:
        """The type of the device. UNKNOWN if the device type code is not recognized."""
        return DeviceType.from_code(self.device_type_code)

    @property
    def device_type_name(self) -> str:
        code = self.device_type_code
        device_type = self.device_type
        if device_type == DeviceType.UNKNOWN:
            return f"unknown({code})"
        return str(device_type)

    @classmethod
    def from_packet(cls, src_addr: HostAndPort, packet: Packet) -> DiscoveredDevice:
        """Creates a DiscoveredDevice from a discovery reply packet.

        Raises:
            HdhrProtocolError: The packet is not a discovery reply, a tag has an
                unexpected size, the base URL cannot be parsed, or the device
                type or device ID is missing.
        """
        if packet.packet_type != PacketType.DISCOVER_RPY:
            raise HdhrProtocolError(f"Expected discover reply, but got 0x{packet.packet_type:04x}")

        device_type_code = 0
        device_id = ''
        url: Optional[str] = None
        tuner_count = 0
        for tag in packet.tags:
            if tag.tag_type == TagType.DEVICE_TYPE:
                if len(tag.data) != 4:
                    raise HdhrProtocolError(f"Unexpected device type length in discover reply: {len(tag.data)}")
                device_type_code = int.from_bytes(tag.data, 'big')
            elif tag.tag_type == TagType.DEVICE_ID:
                if len(tag.data) != 4:
                    raise HdhrProtocolError(f"Unexpected device ID length in discover reply: {len(tag.data)}")
                device_id = tag.data.hex()
            elif tag.tag_type == TagType.BASE_URL:
                url = tag.data.decode('utf-8', errors='replace')
                try:
                    urlsplit(url)
                except ValueError as e:
                    raise HdhrProtocolError(f"Invalid base URL in discover reply: {url!r}") from e
            elif tag.tag_type == TagType.TUNER_COUNT:
                if len(tag.data) != 1:
                    raise HdhrProtocolError(f"Unexpected tuner count length in discover reply: {len(tag.data)}")
                tuner_count = tag.data[0]

        if device_type_code == 0:
            raise HdhrProtocolError("No device type found in discover reply")
        if device_id == '':
            raise HdhrProtocolError("No device ID found in discover reply")

        return cls(
            device_id,
            src_addr[0],
            src_addr[1],
            device_type_code,
            url=url,
            tuner_count=tuner_count,
          )

    def to_jsonable(self) -> JsonableDict:
        return dict(
            device_id=self.device_id,
            addr=self.addr,
            device_type=self.device_type_name,
            url=self.url,
            tuner_count=self.tuner_count,
          )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DiscoveredDevice):
            return NotImplemented
        return self.to_jsonable() == other.to_jsonable()

    def __str__(self) -> str:
        return (f"DiscoveredDevice(id={self.device_id}, addr={self.addr}, type={self.device_type_name}, "
                f"url={self.url}, tuners={self.tuner_count})")

    def __repr__(self) -> str:
        return str(self)
