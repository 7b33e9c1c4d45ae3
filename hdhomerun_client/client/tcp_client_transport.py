# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
HDHomeRun TCP/IP client transport.

Provides an implementation of HdhrClientTransport over a TCP/IP
control connection.
"""

from __future__ import annotations

import asyncio
from asyncio import Future

from ..internal_types import *
from ..exceptions import HdhrError, HdhrPacketTooLargeError
from ..pkg_logging import logger
from ..protocol import (
    Packet,
    HEADER_LENGTH,
    CHECKSUM_LENGTH,
    MAX_PACKET_SIZE,
  )

from .client_config import HdhrClientConfig
from .client_transport import HdhrClientTransport
from .resolve_host import resolve_device_tcp_host

class TcpHdhrClientTransport(HdhrClientTransport):
    """HDHomeRun TCP/IP client transport."""

    reader: Optional[asyncio.StreamReader] = None
    writer: Optional[asyncio.StreamWriter] = None
    config: HdhrClientConfig
    resolved_host: str
    resolved_port: int
    final_status: Future[None]
    final_exception: Optional[BaseException] = None
    """The error that caused the transport to shut down, if any."""
    writer_closed: bool = False

    _transaction_lock: asyncio.Lock
    """A mutex to ensure that only one transaction is in progress at a time;
    this allows multiple callers to use the same transport without worrying
    about mixing up reply packets."""

    def __init__(
            self,
            host: Optional[str]=None,
            *,
            timeout_secs: Optional[float]=None,
            config: Optional[HdhrClientConfig]=None,
          ) -> None:
        """Initializes the transport. Call connect() before use."""
        super().__init__()
        self.config = HdhrClientConfig(
            default_host=host,
            timeout_secs=timeout_secs,
            base_config=config
          )
        if self.config.default_host is None:
            raise HdhrError("No HDHomeRun host specified, and HDHOMERUN_HOST is not set")
        self.resolved_host = self.config.default_host
        self.resolved_port = self.config.default_port
        self.final_status = asyncio.get_event_loop().create_future()
        self._transaction_lock = asyncio.Lock()

    @property
    def host_string(self) -> str:
        """Returns the unresolved host string."""
        result = self.config.default_host
        assert result is not None
        return result

    @property
    def host(self) -> str:
        """Returns the resolved TCP/IP host. Before connect() this will be the host string."""
        return self.resolved_host

    @property
    def port(self) -> int:
        """Returns the resolved TCP/IP port. Before connect() this will be the default port."""
        return self.resolved_port

    @property
    def timeout_secs(self) -> float:
        """Returns the transaction timeout in seconds. 0 means no timeout."""
        return self.config.timeout_secs

    def set_timeout(self, timeout_secs: float) -> None:
        """Sets the timeout for each subsequent transaction. 0 disables the timeout."""
        self.config.timeout_secs = timeout_secs

    # @abstractmethod
    def is_shutting_down(self) -> bool:
        """Returns True if the transport is shutting down or closed."""
        return self.final_status.done()

    # @abstractmethod
    async def begin_transaction(self) -> None:
        """Acquires the transaction lock.
        """
        await self._transaction_lock.acquire()

    # @abstractmethod
    async def end_transaction(self) -> None:
        """Releases the transaction lock.
        """
        self._transaction_lock.release()

    async def _exchange(self, request_bytes: bytes) -> bytes:
        """Writes an encoded request and reads exactly one framed reply (nonlocking, no timeout).

        The reply is read as a 4-byte header followed by exactly the declared payload
        length plus the 4-byte checksum.
        """
        assert self.reader is not None and self.writer is not None
        logger.debug(f"Writing request bytes: {request_bytes.hex(' ')}")
        self.writer.write(request_bytes)
        await self.writer.drain()

        header = await self.reader.readexactly(HEADER_LENGTH)
        payload_length = int.from_bytes(header[2:4], 'big')
        packet_length = HEADER_LENGTH + payload_length + CHECKSUM_LENGTH
        if packet_length > MAX_PACKET_SIZE:
            raise HdhrPacketTooLargeError(
                f"Reply declares a {packet_length}-byte packet; maximum is {MAX_PACKET_SIZE} bytes")
        remainder = await self.reader.readexactly(payload_length + CHECKSUM_LENGTH)
        reply_bytes = header + remainder
        logger.debug(f"Read reply bytes: {reply_bytes.hex(' ')}")
        return reply_bytes

    # @abstractmethod
    async def transact_no_lock(
            self,
            request: Packet,
          ) -> Packet:
        """Sends a request packet and reads the reply packet.

        The caller must be holding the transaction lock. Ordinary users
        should use the transaction() context manager or call transact()
        instead.

        On a write, read or timeout error, the transport will be shut down, and no
        further interaction is possible.
        """
        if self.is_shutting_down() or self.writer is None:
            raise HdhrError(f"{self} is closed") from self.final_exception
        request_bytes = request.encode()
        timeout_secs = self.timeout_secs
        try:
            if timeout_secs is not None and timeout_secs > 0:
                reply_bytes = await asyncio.wait_for(self._exchange(request_bytes), timeout_secs)
            else:
                reply_bytes = await self._exchange(request_bytes)
        except asyncio.CancelledError:
            await self.shutdown()
            raise
        except Exception as e:
            await self.shutdown(e)
            raise
        reply = Packet.decode(reply_bytes)
        logger.debug(f"Received reply: {reply}")
        return reply

    # @abstractmethod
    async def shutdown(self, exc: Optional[BaseException] = None) -> None:
        """Shuts the transport down. Does not wait for the transport to finish
           closing. Safe to call from a callback or with transaction lock.

        If exc is not None, it is recorded in final_exception.

        Has no effect if the transport is already shutting down or closed.
        """
        if not self.final_status.done():
            if exc is not None:
                logger.debug(f"{self} shutting down: {exc!r}")
                self.final_exception = exc
            self.final_status.set_result(None)
        try:
            if not self.writer_closed:
                self.writer_closed = True
                if self.writer is not None:
                    self.writer.close()
        except Exception:
            logger.debug("Exception while closing writer", exc_info=True)

    # @abstractmethod
    async def wait(self) -> None:
        """Waits for complete shutdown/cleanup. Does not initiate shutdown.
        Not safe to call from a callback.

        Returns immediately if the transport is already closed.
        """
        try:
            if self.writer is not None and self.writer_closed:
                await self.writer.wait_closed()
        except Exception:
            # The peer may reset the connection while we are closing
            logger.debug("Exception while waiting for writer to close", exc_info=True)
        await self.final_status

    # @override
    async def __aenter__(self) -> TcpHdhrClientTransport:
        """Enters a context that will close the transport on exit."""
        return self

    async def connect(self) -> None:
        """Resolves the host and connects to the device, with timeout.
        """
        try:
            async with self._transaction_lock:
                assert self.reader is None and self.writer is None
                self.resolved_host, self.resolved_port, _ = await resolve_device_tcp_host(
                    config=self.config)
                logger.debug(f"Connecting to device at {self.host}:{self.port} "
                             f"with timeout={self.config.connect_timeout_secs}")
                self.reader, self.writer = await asyncio.wait_for(
                    asyncio.open_connection(self.host, self.port),
                    timeout=self.config.connect_timeout_secs)
                logger.info(f"{self} connected")
        except BaseException as e:
            await self.aclose(e)
            raise

    def __str__(self) -> str:
        return f"TcpHdhrClientTransport({self.host}:{self.port})"

    def __repr__(self) -> str:
        return str(self)
