# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Protocol packet type, tag type and device type enumerations
"""

from __future__ import annotations

from aenum import IntEnum as AIntEnum

class PacketType(AIntEnum):
    DISCOVER_REQ                = 0x0002
    """Discovery request, broadcast by a client"""

    DISCOVER_RPY                = 0x0003
    """Discovery reply, sent by a device"""

    GETSET_REQ                  = 0x0004
    """Get/set request, sent by a client over TCP"""

    GETSET_RPY                  = 0x0005
    """Get/set reply, sent by a device over TCP"""

    UPGRADE_REQ                 = 0x0006
    """Firmware upgrade request. Not used by this package."""

    UPGRADE_RPY                 = 0x0007
    """Firmware upgrade reply. Not used by this package."""

class TagType(AIntEnum):
    DEVICE_TYPE                 = 0x01
    """Device type, a 4-byte big-endian DeviceType value"""

    DEVICE_ID                   = 0x02
    """Device ID, 4 bytes"""

    GETSET_NAME                 = 0x03
    """Get/set variable name, a null-terminated string"""

    GETSET_VALUE                = 0x04
    """Get/set variable value, a null-terminated string"""

    ERROR_MESSAGE               = 0x05
    """Error message reported by a device, prefixed with "ERROR: " """

    TUNER_COUNT                 = 0x10
    """Number of tuners on the device, 1 byte"""

    GETSET_LOCKKEY              = 0x15
    """Lock key for get/set requests on a locked tuner. Not used by this package."""

    DEVICE_AUTH_BIN             = 0x29
    """Binary device authentication data. Not used by this package."""

    BASE_URL                    = 0x2A
    """Base URL of the device's web UI, a string"""

    DEVICE_AUTH_STR             = 0x2B
    """Device authentication string. Not used by this package."""

class DeviceType(AIntEnum):
    UNKNOWN                     = 0x00000000
    """A device type code that is not recognized by this package"""

    TUNER                       = 0x00000001
    """A TV tuner device"""

    STORAGE                     = 0x00000005
    """A storage (DVR) device"""

    WILDCARD                    = 0xFFFFFFFF
    """Used during discovery to request that devices of any type reply"""

    @classmethod
    def from_code(cls, code: int) -> DeviceType:
        """Returns the DeviceType for a raw device type code, or UNKNOWN if not recognized."""
        try:
            return cls(code)
        except ValueError:
            return cls.UNKNOWN

    @classmethod
    def from_name(cls, name: str) -> DeviceType:
        """Returns the DeviceType for a case-insensitive name such as "tuner"."""
        try:
            return cls[name.upper()]
        except KeyError:
            raise ValueError(f"Unknown device type: {name!r}") from None

    def __str__(self) -> str:
        return self.name.lower()
