# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
HdhrDiscoverer -- A discovery client that:

  1. Sends a single discovery request to a broadcast/multicast UDP address
     (by default 255.255.255.255:65001) when it is started
  2. Receives and decodes discovery replies from devices, one per discover() call,
     ignoring datagrams that are not valid discovery replies
  3. Stops listening when a cancel event is set or a timeout elapses
"""

from __future__ import annotations

import asyncio
from asyncio import Future
import socket

from ..internal_types import *
from ..exceptions import (
    HdhrError,
    HdhrPacketError,
    HdhrProtocolError,
    HdhrRetryableDiscoveryError,
  )
from ..constants import DISCOVERY_WAIT_TIME
from ..pkg_logging import logger
from ..protocol import Packet, DeviceType, DEVICE_ID_WILDCARD
from .constants import DISCOVERY_MULTICAST_ADDRESS, DISCOVERY_PORT
from .device import DiscoveredDevice, parse_device_id, discover_packet

_ReceivedItem = Union[Tuple[bytes, HostAndPort], BaseException, None]
"""A datagram, a transport error, or None when the endpoint has closed."""

MAX_QUEUED_DATAGRAMS = 256
"""Datagrams received while this many are already waiting to be read are dropped."""

class _DiscoveryProtocol(asyncio.DatagramProtocol):
    """Queues everything received on the discovery endpoint for HdhrDiscoverer."""
    queue: asyncio.Queue[_ReceivedItem]
    closed: Future[None]

    def __init__(self) -> None:
        self.queue = asyncio.Queue()
        self.closed = asyncio.get_event_loop().create_future()

    def datagram_received(self, data: bytes, addr: Tuple[Any, ...]) -> None:
        if self.queue.qsize() >= MAX_QUEUED_DATAGRAMS:
            logger.debug(f"Discovery queue is full; dropping datagram from {addr}")
            return
        self.queue.put_nowait((data, (addr[0], addr[1])))

    def error_received(self, exc: Exception) -> None:
        self.queue.put_nowait(exc)

    def connection_lost(self, exc: Optional[Exception]) -> None:
        if exc is not None:
            self.queue.put_nowait(exc)
        self.queue.put_nowait(None)
        if not self.closed.done():
            self.closed.set_result(None)

class HdhrDiscoverer(AsyncContextManager['HdhrDiscoverer'], AsyncIterable[DiscoveredDevice]):
    """Discovers HDHomeRun devices on a network.

    A single discovery request is sent when the discoverer is started; each call to
    discover() returns the next device that replies to it. By default, devices of
    any type with any ID are requested.

    Usage:
        async with HdhrDiscoverer() as discoverer:
            device = await discoverer.discover(timeout_secs=2.0)
            while device is not None:
                print(device)
                device = await discoverer.discover(timeout_secs=2.0)
    """

    device_type: int
    """The device type that devices must match to reply."""

    device_id: bytes
    """The 4-byte device ID that devices must match to reply."""

    multicast_address: str
    """The address that the discovery request is sent to."""

    multicast_port: int
    """The port that the discovery request is sent to."""

    bind_address: str
    """The local address to bind to. An empty string binds to all interfaces."""

    transport: Optional[asyncio.DatagramTransport] = None
    protocol: Optional[_DiscoveryProtocol] = None
    started: bool = False

    def __init__(
            self,
            device_type: int=DeviceType.WILDCARD,
            device_id: str=DEVICE_ID_WILDCARD,
            *,
            multicast_address: str=DISCOVERY_MULTICAST_ADDRESS,
            multicast_port: int=DISCOVERY_PORT,
            bind_address: str='',
          ) -> None:
        self.device_type = int(device_type)
        self.device_id = parse_device_id(device_id)
        self.multicast_address = multicast_address
        self.multicast_port = multicast_port
        self.bind_address = bind_address

    def _create_socket(self) -> socket.socket:
        addrinfo = socket.getaddrinfo(self.multicast_address, self.multicast_port, type=socket.SOCK_DGRAM)[0]
        address_family = addrinfo[0]
        sock = socket.socket(address_family, socket.SOCK_DGRAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
            sock.setblocking(False)
            bind_address = self.bind_address
            if bind_address == '':
                bind_address = '::' if address_family == socket.AF_INET6 else '0.0.0.0'
            sock.bind((bind_address, 0))
        except BaseException:
            sock.close()
            raise
        return sock

    async def start(self) -> None:
        """Binds the UDP endpoint on an ephemeral port and sends the discovery request.

        If the request cannot be sent, the endpoint is closed and the error is raised.
        """
        if self.started:
            raise HdhrError(f"{self} has already been started")
        self.started = True
        request = discover_packet(self.device_type, self.device_id).encode()
        sock = self._create_socket()
        protocol = _DiscoveryProtocol()
        try:
            logger.debug(f"Sending discovery request to {self.multicast_address}:{self.multicast_port}: {request.hex(' ')}")
            sock.sendto(request, (self.multicast_address, self.multicast_port))
            loop = asyncio.get_event_loop()
            transport, _ = await loop.create_datagram_endpoint(lambda: protocol, sock=sock)
        except BaseException:
            sock.close()
            raise
        self.transport = cast(asyncio.DatagramTransport, transport)
        self.protocol = protocol

    def close(self) -> None:
        """Closes the UDP endpoint. Safe to call more than once."""
        if self.transport is not None and not self.transport.is_closing():
            logger.debug(f"{self} closing endpoint")
            self.transport.close()

    async def aclose(self) -> None:
        """Closes the UDP endpoint and waits for it to finish closing."""
        self.close()
        if self.protocol is not None:
            await self.protocol.closed

    @property
    def is_closed(self) -> bool:
        return self.transport is None or self.transport.is_closing()

    @staticmethod
    def _is_cancelled(cancel_event: Optional[asyncio.Event], deadline: Optional[float]) -> bool:
        if cancel_event is not None and cancel_event.is_set():
            return True
        return deadline is not None and asyncio.get_event_loop().time() >= deadline

    async def discover(
            self,
            cancel_event: Optional[asyncio.Event]=None,
            timeout_secs: Optional[float]=None,
          ) -> Optional[DiscoveredDevice]:
        """Waits for the next device to reply to the discovery request.

        Blocks until a valid reply arrives, or until cancel_event is set or timeout_secs
        elapses. Datagrams that are not valid discovery replies are logged and ignored.

        Returns:
            The discovered device, or None if discovery was cancelled or timed out, in
            which case the endpoint is closed and no further devices will be returned.

        Raises:
            OSError, HdhrError: The endpoint failed or was closed without cancellation.
        """
        deadline: Optional[float] = None
        if timeout_secs is not None:
            deadline = asyncio.get_event_loop().time() + timeout_secs
        return await self._discover(cancel_event, deadline)

    async def _discover(
            self,
            cancel_event: Optional[asyncio.Event],
            deadline: Optional[float],
          ) -> Optional[DiscoveredDevice]:
        if not self.started:
            await self.start()
        if self._is_cancelled(cancel_event, deadline):
            await self.aclose()
            return None
        if self.is_closed:
            raise HdhrError(f"{self} is closed")
        while True:
            try:
                return await self._discover_one(cancel_event, deadline)
            except HdhrRetryableDiscoveryError as e:
                logger.debug(f"Ignoring datagram that is not a valid discovery reply: {e}")

    async def _watch_cancel(
            self,
            received: Future[None],
            cancel_event: Optional[asyncio.Event],
            deadline: Optional[float],
          ) -> bool:
        """Closes the endpoint if cancellation happens before received is resolved.

        Returns True if the endpoint was closed because of cancellation.
        """
        waiters: List[Future[Any]] = [received]
        cancel_task: Optional[Future[Any]] = None
        if cancel_event is not None:
            cancel_task = asyncio.ensure_future(cancel_event.wait())
            waiters.append(cancel_task)
        timeout: Optional[float] = None
        if deadline is not None:
            timeout = max(deadline - asyncio.get_event_loop().time(), 0.0)
        try:
            await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
        finally:
            if cancel_task is not None and not cancel_task.done():
                cancel_task.cancel()
        if not received.done():
            logger.debug(f"{self} discovery cancelled")
            self.close()
            return True
        return False

    async def _discover_one(
            self,
            cancel_event: Optional[asyncio.Event],
            deadline: Optional[float],
          ) -> Optional[DiscoveredDevice]:
        """Waits for one datagram and decodes it.

        Raises HdhrRetryableDiscoveryError if the datagram is not a valid discovery reply.
        """
        protocol = self.protocol
        assert protocol is not None
        received: Future[None] = asyncio.get_event_loop().create_future()
        watcher = asyncio.ensure_future(self._watch_cancel(received, cancel_event, deadline))
        try:
            item = await protocol.queue.get()
        finally:
            if not received.done():
                received.set_result(None)
            cancelled = await watcher

        if item is None or isinstance(item, BaseException):
            if cancelled or self._is_cancelled(cancel_event, deadline):
                await self.aclose()
                return None
            await self.aclose()
            if item is None:
                raise HdhrError(f"{self} endpoint closed while waiting for discovery replies")
            raise item

        data, addr = item
        logger.debug(f"Received datagram from {addr}: {data.hex(' ')}")
        try:
            packet = Packet.decode(data)
            device = DiscoveredDevice.from_packet(addr, packet)
        except (HdhrPacketError, HdhrProtocolError) as e:
            raise HdhrRetryableDiscoveryError(f"Invalid reply from {addr}: {e}") from e
        logger.debug(f"Discovered {device}")
        return device

    async def iter_devices(
            self,
            cancel_event: Optional[asyncio.Event]=None,
            timeout_secs: Optional[float]=None,
          ) -> AsyncIterator[DiscoveredDevice]:
        """Yields devices as they reply, until cancel_event is set or timeout_secs elapses."""
        deadline: Optional[float] = None
        if timeout_secs is not None:
            deadline = asyncio.get_event_loop().time() + timeout_secs
        while True:
            device = await self._discover(cancel_event, deadline)
            if device is None:
                break
            yield device

    def __aiter__(self) -> AsyncIterator[DiscoveredDevice]:
        return self.iter_devices()

    async def __aenter__(self) -> HdhrDiscoverer:
        if not self.started:
            await self.start()
        return self

    async def __aexit__(
            self,
            exc_type: Optional[Type[BaseException]],
            exc: Optional[BaseException],
            tb: Optional[TracebackType],
          ) -> None:
        await self.aclose()

    def __str__(self) -> str:
        return f"HdhrDiscoverer({self.multicast_address}:{self.multicast_port})"

    def __repr__(self) -> str:
        return str(self)

async def new_discoverer(
        device_type: int=DeviceType.WILDCARD,
        device_id: str=DEVICE_ID_WILDCARD,
        *,
        multicast_address: str=DISCOVERY_MULTICAST_ADDRESS,
        multicast_port: int=DISCOVERY_PORT,
        bind_address: str='',
      ) -> HdhrDiscoverer:
    """Creates and starts an HdhrDiscoverer. The caller must close it when done."""
    result = HdhrDiscoverer(
        device_type,
        device_id,
        multicast_address=multicast_address,
        multicast_port=multicast_port,
        bind_address=bind_address,
      )
    await result.start()
    return result

async def discover_devices(
        wait_secs: float=DISCOVERY_WAIT_TIME,
        device_type: int=DeviceType.WILDCARD,
        device_id: str=DEVICE_ID_WILDCARD,
        *,
        multicast_address: str=DISCOVERY_MULTICAST_ADDRESS,
        multicast_port: int=DISCOVERY_PORT,
        bind_address: str='',
        max_devices: int=0,
      ) -> List[DiscoveredDevice]:
    """Returns all devices that reply to a single discovery request within wait_secs.

    Duplicate replies from the same device ID are dropped. If max_devices is nonzero,
    returns as soon as that many devices have replied.
    """
    results: List[DiscoveredDevice] = []
    seen: Set[str] = set()
    async with HdhrDiscoverer(
            device_type,
            device_id,
            multicast_address=multicast_address,
            multicast_port=multicast_port,
            bind_address=bind_address,
          ) as discoverer:
        async for device in discoverer.iter_devices(timeout_secs=wait_secs):
            if device.device_id in seen:
                continue
            seen.add(device.device_id)
            results.append(device)
            if max_devices > 0 and len(results) >= max_devices:
                break
    return results
