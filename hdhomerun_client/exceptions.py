# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Exceptions defined by this package"""

from __future__ import annotations

from typing import Optional

ERROR_PREFIX = "ERROR: "
"""The prefix that devices add to error messages, and that is added back when
   an HdhrDeviceError is rendered as a string."""

UNKNOWN_GETSET_MESSAGE = "unknown getset variable"
"""The device error message returned when a get/set name does not exist."""

class HdhrError(Exception):
    """Base class for all error exceptions defined by this package."""
    pass

class HdhrPacketError(HdhrError):
    """A packet could not be encoded or decoded (a framing error)."""
    pass

class HdhrTruncatedPacketError(HdhrPacketError):
    """A packet buffer was too short, or its declared lengths did not match its size."""
    def __init__(self, msg: Optional[str]=None):
        super().__init__("unexpected end of packet data" if msg is None else msg)

class HdhrChecksumError(HdhrPacketError):
    """A packet's CRC-32 trailer did not match its contents."""
    def __init__(self, msg: Optional[str]=None):
        super().__init__("invalid CRC32 checksum" if msg is None else msg)

class HdhrTagLengthBufferError(HdhrPacketError):
    """A tag length was read from or written to a buffer that is not exactly two bytes."""
    def __init__(self, msg: Optional[str]=None):
        super().__init__("large tag length buffer must be exactly two bytes" if msg is None else msg)

class HdhrPacketTooLargeError(HdhrPacketError):
    """A packet exceeds the maximum packet size allowed by the protocol."""
    pass

class HdhrProtocolError(HdhrError):
    """A well-formed reply did not match the request that was sent."""
    pass

class HdhrStatusParseError(HdhrError):
    """Tuner status text could not be parsed."""
    pass

class HdhrRetryableDiscoveryError(HdhrError):
    """A received datagram was not a valid discovery reply. Discovery keeps listening."""
    pass

class HdhrDeviceError(HdhrError):
    """An error message reported by a device in a reply packet."""

    message: str
    """The message reported by the device, without the "ERROR: " prefix."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @classmethod
    def from_raw(cls, data: bytes) -> HdhrDeviceError:
        """Creates an HdhrDeviceError from the data of an error message tag."""
        if data.endswith(b'\x00'):
            data = data[:-1]
        message = data.decode('utf-8', errors='replace')
        if message.startswith(ERROR_PREFIX):
            message = message[len(ERROR_PREFIX):]
        return cls(message)

    def is_not_exist(self) -> bool:
        """Returns True if the device reported that the queried name does not exist."""
        return self.message == UNKNOWN_GETSET_MESSAGE

    def __str__(self) -> str:
        return ERROR_PREFIX + self.message

    def __repr__(self) -> str:
        return f"HdhrDeviceError({self.message!r})"

def is_not_exist(exc: Optional[BaseException]) -> bool:
    """Returns True if exc is a device error reporting that a queried name does not exist."""
    return isinstance(exc, HdhrDeviceError) and exc.is_not_exist()
