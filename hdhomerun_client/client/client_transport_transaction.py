# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Holding a transport's transaction lock across several request/reply exchanges.
"""

from __future__ import annotations

from ..internal_types import *
from ..protocol import Packet

if TYPE_CHECKING:
    from .client_transport import HdhrClientTransport

class HdhrClientTransportTransaction:
    """Async context manager returned by HdhrClientTransport.transaction().

    While entered, the transport's transaction lock is held, so a sequence
    of transact() calls cannot be interleaved with other callers.
    """
    transport: HdhrClientTransport
    locked: bool = False

    def __init__(self, transport: HdhrClientTransport) -> None:
        self.transport = transport

    async def __aenter__(self) -> HdhrClientTransportTransaction:
        assert not self.locked
        await self.transport.begin_transaction()
        self.locked = True
        return self

    async def __aexit__(
            self,
            exc_type: Optional[Type[BaseException]],
            exc: Optional[BaseException],
            tb: Optional[TracebackType],
          ) -> None:
        assert self.locked
        self.locked = False
        await self.transport.end_transaction()

    async def transact(self, request: Packet) -> Packet:
        """Exchanges one request for one reply. If the context has not been
           entered, the lock is taken for just this exchange."""
        if self.locked:
            return await self.transport.transact_no_lock(request)
        async with self:
            return await self.transport.transact_no_lock(request)
