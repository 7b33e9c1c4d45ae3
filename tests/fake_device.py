# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""A minimal TCP device that answers every request with a canned reply."""

from __future__ import annotations

import asyncio
from typing import Callable, List, Optional

from hdhomerun_client.protocol import Packet

ReplyFactory = Callable[[Packet], bytes]

class FakeDevice:
    reply_factory: ReplyFactory
    requests: List[Packet]
    chunk_size: int
    """If nonzero, replies are written in pieces of this many bytes, with a pause between."""
    server: Optional[asyncio.AbstractServer] = None

    def __init__(self, reply_factory: ReplyFactory, chunk_size: int=0) -> None:
        self.reply_factory = reply_factory
        self.chunk_size = chunk_size
        self.requests = []

    @property
    def addr(self) -> str:
        assert self.server is not None
        host, port = self.server.sockets[0].getsockname()[:2]
        return f"{host}:{port}"

    async def _write_reply(self, writer: asyncio.StreamWriter, data: bytes) -> None:
        if self.chunk_size <= 0:
            writer.write(data)
            await writer.drain()
            return
        for i in range(0, len(data), self.chunk_size):
            writer.write(data[i:i+self.chunk_size])
            await writer.drain()
            await asyncio.sleep(0.001)

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        try:
            while True:
                header = await reader.readexactly(4)
                rest = await reader.readexactly(int.from_bytes(header[2:4], 'big') + 4)
                request = Packet.decode(header + rest)
                self.requests.append(request)
                await self._write_reply(writer, self.reply_factory(request))
        except (asyncio.IncompleteReadError, ConnectionError):
            pass
        finally:
            writer.close()

    async def __aenter__(self) -> FakeDevice:
        self.server = await asyncio.start_server(self._handle, host='127.0.0.1', port=0)
        return self

    async def __aexit__(self, *exc_info) -> None:
        assert self.server is not None
        self.server.close()
        await self.server.wait_closed()
