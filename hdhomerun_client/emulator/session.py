# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
HDHomeRun emulator TCP control session.

Splits the incoming byte stream into framed request packets and hands them to
the emulator.
"""

from __future__ import annotations

import asyncio
from enum import Enum

from ..internal_types import *
from ..exceptions import HdhrPacketError, HdhrPacketTooLargeError
from ..pkg_logging import logger
from ..protocol import (
    Packet,
    HEADER_LENGTH,
    CHECKSUM_LENGTH,
    MAX_PACKET_SIZE,
  )

if TYPE_CHECKING:
    from .emulator_impl import HdhrEmulator

IDLE_TIMEOUT = 30.0
"""Timeout for idle connections."""

class EmulatorSessionState(Enum):
    UNCONNECTED = 0
    READING_REQUEST = 1
    SHUTTING_DOWN = 2
    CLOSED = 3

class HdhrEmulatorSession(asyncio.Protocol):
    session_id: int = -1
    emulator: HdhrEmulator
    transport: Optional[asyncio.Transport] = None
    peer_name: str = "<unconnected>"
    description: str = "EmulatorSession(<unconnected>)"
    state: EmulatorSessionState = EmulatorSessionState.UNCONNECTED
    partial_data: bytes = b""
    transport_closed: bool = True
    idle_timer: Optional[asyncio.TimerHandle] = None

    def __init__(self, emulator: HdhrEmulator):
        self.emulator = emulator
        self.session_id = emulator.alloc_session_id(self)
        self.description = f"EmulatorSession(id={self.session_id}, from=<unconnected>)"

    @property
    def is_closed(self) -> bool:
        return self.state in (EmulatorSessionState.CLOSED, EmulatorSessionState.SHUTTING_DOWN)

    def write(self, data: Union[bytes, bytearray, memoryview]) -> None:
        if self.transport is None or self.is_closed:
            logger.debug(f"EmulatorSession: Attempt to write to closed session {self.description}; ignored")
            return
        self.transport.write(data)

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        """Called when a connection is made."""
        assert isinstance(transport, asyncio.Transport)
        assert self.state == EmulatorSessionState.UNCONNECTED
        self.transport = transport
        self.transport_closed = False
        self.peer_name = str(transport.get_extra_info('peername'))
        self.description = f"EmulatorSession(id={self.session_id}, from='{self.peer_name}')"
        logger.debug(f"EmulatorSession: Connection from {self.peer_name}")
        self.state = EmulatorSessionState.READING_REQUEST
        self._restart_idle_timer()

    def close(self) -> None:
        if not self.is_closed:
            self.state = EmulatorSessionState.SHUTTING_DOWN
            if self.idle_timer is not None:
                self.idle_timer.cancel()
                self.idle_timer = None
            if not self.transport_closed and not self.transport is None:
                self.transport_closed = True
                self.transport.close()
            self.state = EmulatorSessionState.CLOSED
            self.emulator.free_session_id(self.session_id)

    def _restart_idle_timer(self) -> None:
        if self.idle_timer is not None:
            self.idle_timer.cancel()
        self.idle_timer = asyncio.get_running_loop().call_later(
            IDLE_TIMEOUT,
            lambda: self._on_idle_read_timeout())

    def _on_idle_read_timeout(self) -> None:
        self.idle_timer = None
        if self.state == EmulatorSessionState.READING_REQUEST:
            logger.debug(f"{self}: Idle timeout")
            self.close()

    def data_received(self, data: bytes) -> None:
        """Called when some data is received."""
        if self.is_closed:
            return
        self.partial_data += data
        self._restart_idle_timer()
        while len(self.partial_data) >= HEADER_LENGTH:
            payload_length = int.from_bytes(self.partial_data[2:4], 'big')
            packet_length = HEADER_LENGTH + payload_length + CHECKSUM_LENGTH
            try:
                if packet_length > MAX_PACKET_SIZE:
                    raise HdhrPacketTooLargeError(f"Request declares a {packet_length}-byte packet")
                if len(self.partial_data) < packet_length:
                    break
                packet_bytes = self.partial_data[:packet_length]
                self.partial_data = self.partial_data[packet_length:]
                packet = Packet.decode(packet_bytes)
            except HdhrPacketError as e:
                logger.debug(f"{self}: Invalid request packet; closing session: {e}")
                self.close()
                return
            self.emulator.on_packet_received(self, packet)

    def connection_lost(self, exc: Optional[BaseException]) -> None:
        """Called when the connection is lost or closed."""
        logger.debug(f"{self}: Connection lost, exception={exc}; closing connection")
        self.close()

    def eof_received(self) -> bool:
        """Called when the other end calls write_eof() or equivalent."""
        logger.debug(f"{self}: EOF received; closing connection")
        self.close()
        return True

    def __str__(self) -> str:
        return self.description

    def __repr__(self) -> str:
        return str(self)
