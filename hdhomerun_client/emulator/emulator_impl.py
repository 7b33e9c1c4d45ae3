# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
HDHomeRun device emulator.

Provides a simple emulation of an HDHomeRun tuner appliance: a TCP get/set
server and a UDP discovery responder.
"""

from __future__ import annotations

import asyncio

from ..internal_types import *
from ..pkg_logging import logger
from ..protocol import (
    Packet,
    Tag,
    PacketType,
    TagType,
    DeviceType,
    DEVICE_ID_WILDCARD,
  )
from ..constants import DEFAULT_PORT
from ..exceptions import HdhrError, HdhrDeviceError, HdhrPacketError, UNKNOWN_GETSET_MESSAGE
from ..discovery import DISCOVERY_PORT, parse_device_id
from ..util import null_terminated, strip_null

from .session import HdhrEmulatorSession

DEFAULT_EMULATOR_MODEL = "hdhomerun3_cablecard"

DEFAULT_EMULATOR_DEVICE_ID = "1234abcd"

IDLE_TUNER_DEBUG = (
    "tun: ch=none lock=none ss=0 snq=0 seq=0 dbg=-\n"
    "dev: bps=0 resync=0 overflow=0\n"
    "cc: bps=0 resync=0 overflow=0\n"
    "ts: bps=0 te=0 crc=0\n"
    "net: pps=0 err=0 stop=0\n"
  )
"""The "/tuner<n>/debug" value reported by an emulated tuner that is not tuned."""

class _EmulatorDiscoveryProtocol(asyncio.DatagramProtocol):
    """Replies to discovery requests on behalf of an HdhrEmulator."""
    emulator: HdhrEmulator
    transport: Optional[asyncio.DatagramTransport] = None

    def __init__(self, emulator: HdhrEmulator):
        self.emulator = emulator

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self.transport = cast(asyncio.DatagramTransport, transport)

    def datagram_received(self, data: bytes, addr: Tuple[Any, ...]) -> None:
        try:
            request = Packet.decode(data)
        except HdhrPacketError as e:
            logger.debug(f"Emulator discovery: ignoring invalid datagram from {addr}: {e}")
            return
        reply = self.emulator.handle_discover_request(request)
        if reply is not None and self.transport is not None:
            logger.debug(f"Emulator discovery: replying to {addr}: {reply}")
            self.transport.sendto(reply.encode(), addr)

    def error_received(self, exc: Exception) -> None:
        logger.debug(f"Emulator discovery: socket error: {exc}")

class HdhrEmulator(AsyncContextManager['HdhrEmulator']):
    """An emulated HDHomeRun device.

    Usage:
        async with HdhrEmulator(bind_addr='127.0.0.1', port=0) as emulator:
            async with await hdhomerun_connect(f"127.0.0.1:{emulator.port}") as client:
                print(await client.model())
    """
    bind_addr: str
    requested_port: int
    device_id: str
    device_type: int
    tuner_count: int
    base_url: Optional[str]
    values: Dict[str, str]
    """The get/set values served by the emulator, keyed by name."""
    reply_delay_secs: float
    sessions: Dict[int, HdhrEmulatorSession]
    next_session_id: int = 0
    requests: asyncio.Queue[Optional[Tuple[HdhrEmulatorSession, Packet]]]
    server: Optional[asyncio.Server] = None
    handler_task: Optional[asyncio.Task[None]] = None
    final_result: asyncio.Future[None]
    with_discovery: bool
    discovery_bind_addr: str
    requested_discovery_port: int
    discovery_transport: Optional[asyncio.DatagramTransport] = None

    def __init__(
            self,
            bind_addr: Optional[str] = None,
            port: int = DEFAULT_PORT,
            *,
            device_id: str = DEFAULT_EMULATOR_DEVICE_ID,
            device_type: int = DeviceType.TUNER,
            model: str = DEFAULT_EMULATOR_MODEL,
            tuner_count: int = 2,
            tuner_debug: Optional[Mapping[int, str]] = None,
            values: Optional[Mapping[str, str]] = None,
            base_url: Optional[str] = None,
            reply_delay_secs: float = 0.0,
            with_discovery: bool = True,
            discovery_bind_addr: Optional[str] = None,
            discovery_port: int = DISCOVERY_PORT,
          ):
        """Creates an emulator. Call start() or enter the async context to begin serving.

        Args:
            bind_addr: The address to listen on. Defaults to all interfaces.
            port: The TCP port to listen on. 0 picks an ephemeral port; see the port property.
            device_id: The eight hex character device ID reported by discovery.
            device_type: The device type code reported by discovery.
            model: The value of "/sys/model".
            tuner_count: The number of emulated tuners.
            tuner_debug: Optional "/tuner<n>/debug" values by tuner index. Tuners
                without an entry report IDLE_TUNER_DEBUG.
            values: Additional get/set values, which override the defaults.
            base_url: The base URL reported by discovery.
            reply_delay_secs: A delay before each get/set reply is sent.
            with_discovery: If True, also answer discovery requests over UDP.
            discovery_bind_addr: The address for the discovery responder. Defaults to bind_addr.
            discovery_port: The UDP port for the discovery responder. 0 picks an ephemeral port.
        """
        parse_device_id(device_id)
        self.bind_addr = '0.0.0.0' if bind_addr is None else bind_addr
        self.requested_port = port
        self.device_id = device_id.lower()
        self.device_type = int(device_type)
        self.tuner_count = tuner_count
        self.base_url = base_url
        self.reply_delay_secs = reply_delay_secs
        self.with_discovery = with_discovery
        self.discovery_bind_addr = self.bind_addr if discovery_bind_addr is None else discovery_bind_addr
        self.requested_discovery_port = discovery_port
        self.values = {
            "/sys/model": model,
            "/sys/hwmodel": model.upper(),
          }
        for i in range(tuner_count):
            debug = IDLE_TUNER_DEBUG if tuner_debug is None else tuner_debug.get(i, IDLE_TUNER_DEBUG)
            self.values[f"/tuner{i}/debug"] = debug
        if values is not None:
            self.values.update(values)
        self.sessions = {}
        self.requests = asyncio.Queue()
        self.final_result = asyncio.get_event_loop().create_future()

    @property
    def port(self) -> int:
        """The TCP port the emulator is listening on."""
        if self.server is not None and len(self.server.sockets) > 0:
            return self.server.sockets[0].getsockname()[1]
        return self.requested_port

    @property
    def discovery_port(self) -> int:
        """The UDP port the discovery responder is listening on."""
        if self.discovery_transport is not None:
            return self.discovery_transport.get_extra_info('sockname')[1]
        return self.requested_discovery_port

    def alloc_session_id(self, session: HdhrEmulatorSession) -> int:
        result = self.next_session_id
        self.next_session_id += 1
        self.sessions[result] = session
        return result

    def free_session_id(self, session_id: int) -> None:
        self.sessions.pop(session_id, None)

    def on_packet_received(self, session: HdhrEmulatorSession, packet: Packet) -> None:
        """Called when a packet is received from a session."""
        self.requests.put_nowait((session, packet))

    def handle_discover_request(self, request: Packet) -> Optional[Packet]:
        """Returns the reply to a discovery request, or None if this device should not reply."""
        if request.packet_type != PacketType.DISCOVER_REQ:
            return None
        type_tag = request.get_tag(TagType.DEVICE_TYPE)
        if type_tag is not None and len(type_tag.data) == 4:
            requested_type = int.from_bytes(type_tag.data, 'big')
            if requested_type not in (DeviceType.WILDCARD, self.device_type):
                return None
        id_tag = request.get_tag(TagType.DEVICE_ID)
        if id_tag is not None and len(id_tag.data) == 4:
            requested_id = id_tag.data.hex()
            if requested_id not in (DEVICE_ID_WILDCARD, self.device_id):
                return None
        tags = [
            Tag(TagType.DEVICE_TYPE, self.device_type.to_bytes(4, 'big')),
            Tag(TagType.DEVICE_ID, bytes.fromhex(self.device_id)),
            Tag(TagType.TUNER_COUNT, bytes([self.tuner_count])),
          ]
        if self.base_url is not None:
            tags.append(Tag(TagType.BASE_URL, self.base_url.encode('utf-8')))
        return Packet(PacketType.DISCOVER_RPY, tags)

    def handle_getset(self, name: str, value: Optional[str]) -> str:
        """Handles a get or set of a named value, returning the resulting value.

        Raises HdhrDeviceError if the error should be reported to the client.
        """
        if not name in self.values:
            raise HdhrDeviceError(UNKNOWN_GETSET_MESSAGE)
        if value is not None:
            logger.debug(f"Emulator: setting {name!r} to {value!r}")
            self.values[name] = value
        return self.values[name]

    async def handle_request_packet(
            self,
            session: HdhrEmulatorSession,
            packet: Packet
          ) -> Packet:
        """Handle a single request packet, and return the reply packet.

        If an exception is raised, the session is closed.
        """
        if packet.packet_type != PacketType.GETSET_REQ:
            raise HdhrError(f"Unsupported request packet type 0x{packet.packet_type:04x}: {packet}")
        name_tag = packet.get_tag(TagType.GETSET_NAME)
        if name_tag is None:
            raise HdhrError(f"Get/set request without a name: {packet}")
        value_tag = packet.get_tag(TagType.GETSET_VALUE)
        name = strip_null(name_tag.data)
        value = None if value_tag is None else strip_null(value_tag.data)
        if self.reply_delay_secs > 0:
            await asyncio.sleep(self.reply_delay_secs)
        try:
            result = self.handle_getset(name, value)
        except HdhrDeviceError as e:
            return Packet(
                PacketType.GETSET_RPY,
                [
                    Tag(TagType.GETSET_NAME, name_tag.data),
                    Tag(TagType.ERROR_MESSAGE, null_terminated(str(e))),
                ]
              )
        return Packet(
            PacketType.GETSET_RPY,
            [
                Tag(TagType.GETSET_NAME, name_tag.data),
                Tag(TagType.GETSET_VALUE, null_terminated(result)),
            ]
          )

    async def handle_requests(self) -> None:
        """Handle requests from sessions."""
        while True:
            session_and_packet = await self.requests.get()
            try:
                if session_and_packet is None:
                    logger.debug("Emulator handler: Received EOF; exiting")
                    break
                session, packet = session_and_packet
                if session.is_closed:
                    continue
                try:
                    logger.debug(f"{session}: Emulator handler: received packet: {packet}")
                    reply = await self.handle_request_packet(session, packet)
                    logger.debug(f"{session}: Emulator handler: Sending reply packet: {reply}")
                    session.write(reply.encode())
                except HdhrError as e:
                    logger.debug(f"{session}: Emulator handler: Error handling request; closing session: {e}")
                    session.close()
            finally:
                self.requests.task_done()

    async def run(self) -> None:
        """Runs the Emulator until it is closed."""
        async with self:
            await self.wait_closed()

    async def start(self) -> None:
        try:
            loop = asyncio.get_running_loop()
            self.handler_task = asyncio.create_task(self.handle_requests())
            self.server = await loop.create_server(
                lambda: HdhrEmulatorSession(self),
                host=self.bind_addr,
                port=self.requested_port)
            logger.debug(f"Emulator: Listening on {self.bind_addr}:{self.port}")
            await self.server.start_serving()
            if self.with_discovery:
                transport, _ = await loop.create_datagram_endpoint(
                    lambda: _EmulatorDiscoveryProtocol(self),
                    local_addr=(self.discovery_bind_addr, self.requested_discovery_port),
                    allow_broadcast=True)
                self.discovery_transport = cast(asyncio.DatagramTransport, transport)
                logger.debug(f"Emulator: Answering discovery on {self.discovery_bind_addr}:{self.discovery_port}")
        except BaseException as e:
            self.set_final_result(e)
            try:
                await self.wait_closed()
            except BaseException:
                logger.debug("Emulator: Exception while cleaning up failed start", exc_info=True)
            raise

    def close(self, exc: Optional[BaseException]=None) -> None:
        """Stops the Emulator."""
        self.set_final_result(exc)

    async def wait_closed(self) -> None:
        """Waits for the emulator to be fully closed. Does not initiate shutdown."""
        try:
            await self.final_result
        finally:
            try:
                if self.server is not None:
                    try:
                        self.server.close()
                        for session in list(self.sessions.values()):
                            session.close()
                    finally:
                        await self.server.wait_closed()
            finally:
                self.server = None
                if self.handler_task is not None:
                    try:
                        await self.handler_task
                    finally:
                        self.handler_task = None

    async def close_and_wait(self, exc: Optional[BaseException]=None) -> None:
        self.close(exc)
        await self.wait_closed()

    def set_final_result(self, exc: Optional[BaseException]=None) -> None:
        if not self.final_result.done():
            if exc is None:
                logger.debug(f"Emulator: Setting final result to success")
                self.final_result.set_result(None)
            else:
                logger.debug(f"Emulator: Setting final exception: {exc}")
                self.final_result.set_exception(exc)
            if self.discovery_transport is not None:
                self.discovery_transport.close()
            self.requests.put_nowait(None)
            if self.server is not None:
                self.server.close()

    async def __aenter__(self) -> HdhrEmulator:
        await self.start()
        return self

    async def __aexit__(self,
            exc_type: Optional[Type[BaseException]],
            exc: Optional[BaseException],
            tb: Optional[TracebackType]
      ) -> None:
        self.set_final_result(exc)
        try:
            # ensure that final_result has been awaited
            await self.wait_closed()
        except Exception:
            logger.debug("Emulator: Closed with exception", exc_info=True)
