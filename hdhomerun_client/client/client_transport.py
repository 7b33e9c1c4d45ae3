# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
HDHomeRun client abstract transport interface.

Provides a low-level abstract interface for sending a request Packet
to a device and receiving the single reply Packet. Does not provide
any higher-level abstractions such as get/set queries.

Exactly one transaction (request write plus reply read) may be in flight
on a transport at a time; concurrent callers wait for the transaction lock.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod

from ..internal_types import *
from ..protocol import Packet

from .client_transport_transaction import HdhrClientTransportTransaction

class HdhrClientTransport(ABC):
    """Abstract base class for HDHomeRun client transports."""

    @abstractmethod
    async def begin_transaction(self) -> None:
        """Acquires the transaction lock.

        Must be implemented by subclasses.
        """
        raise NotImplementedError()

    @abstractmethod
    async def end_transaction(self) -> None:
        """Releases the transaction lock.

        Must be implemented by subclasses.
        """
        raise NotImplementedError()

    def transaction(self) -> HdhrClientTransportTransaction:
        """Returns an async context manager that while entered will
           hold the transaction lock for this transport and provide
           a safe transact() method.

        Example:

           async with transport.transaction() as transaction:
               reply1 = await transaction.transact(request1)
               reply2 = await transaction.transact(request2)
        """
        return HdhrClientTransportTransaction(self)

    @abstractmethod
    async def transact_no_lock(
            self,
            request: Packet,
          ) -> Packet:
        """Encodes and writes a request packet, then reads and decodes the reply packet.

        The caller must be holding the transaction lock. Ordinary users
        should use the transaction() context manager or call transact()
        instead.

        Must be implemented by subclasses.
        """
        raise NotImplementedError()

    async def transact(
            self,
            request: Packet,
          ) -> Packet:
        """Sends a request packet and reads the reply packet.

        A transaction lock is held during the transaction to ensure that only one transaction
        is in progress at a time.
        """
        async with self.transaction() as transaction:
            return await transaction.transact(request)

    @abstractmethod
    def is_shutting_down(self) -> bool:
        """Returns True if the transport is shutting down or closed."""
        raise NotImplementedError()

    @abstractmethod
    async def shutdown(self, exc: Optional[BaseException] = None) -> None:
        """Shuts the transport down. Does not wait for the transport to finish
           closing. Safe to call from a callback.

        If exc is not None, records it as the reason for the shutdown.

        Has no effect if the transport is already shutting down or closed.

        Must be implemented by subclasses.
        """
        raise NotImplementedError()

    @abstractmethod
    async def wait(self) -> None:
        """Waits for complete shutdown/cleanup. Does not initiate shutdown.
        Not safe to call from a callback.

        Returns immediately if the transport is already closed.

        Must be implemented by a subclass.
        """
        raise NotImplementedError()

    # @overridable
    async def aclose(self, exc: Optional[BaseException] = None) -> None:
        """Closes the transport and waits for complete shutdown/cleanup.
        Not safe to call from a callback.

        Has no effect if the transport is already closed.

        May be overridden by subclasses. The default implementation simply calls
        shutdown() and then wait().
        """
        await self.shutdown(exc)
        await self.wait()

    async def __aenter__(self) -> HdhrClientTransport:
        """Enters a context that will close the transport on exit."""
        return self

    async def __aexit__(
            self,
            exc_type: Optional[Type[BaseException]],
            exc: Optional[BaseException],
            tb: Optional[TracebackType],
          ) -> None:
        """Exits the context, closes the transport, and waits for complete shutdown/cleanup."""
        await self.aclose(exc)
