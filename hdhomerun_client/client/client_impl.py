# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
HDHomeRun get/set query client.

Provides HdhrClient, which issues get/set queries over an HdhrClientTransport
and validates the replies.
"""

from __future__ import annotations

from ..internal_types import *
from ..exceptions import HdhrDeviceError, HdhrProtocolError
from ..pkg_logging import logger
from ..protocol import Packet, Tag, PacketType, TagType
from ..util import null_terminated, strip_null

from .client_transport import HdhrClientTransport
from .tuner import HdhrTuner

class HdhrClient:
    """HDHomeRun get/set query client.

    Only one query is in flight at a time; concurrent callers wait for the
    transport's transaction lock.
    """

    transport: HdhrClientTransport

    def __init__(self, transport: HdhrClientTransport) -> None:
        self.transport = transport

    async def execute(self, request: Packet) -> Packet:
        """Sends a request packet and returns the device's reply packet.

        No validation of the reply is performed.
        """
        return await self.transport.transact(request)

    async def _getset(self, name: str, value: Optional[Union[str, bytes]]=None) -> bytes:
        name_data = null_terminated(name)
        tags = [Tag(TagType.GETSET_NAME, name_data)]
        if value is not None:
            tags.append(Tag(TagType.GETSET_VALUE, null_terminated(value)))
        reply = await self.execute(Packet(PacketType.GETSET_REQ, tags))

        if reply.packet_type != PacketType.GETSET_RPY:
            raise HdhrProtocolError(f"Expected get/set reply to {name!r}, but got packet type 0x{reply.packet_type:04x}")

        error_tag = reply.get_tag(TagType.ERROR_MESSAGE)
        if error_tag is not None:
            raise HdhrDeviceError.from_raw(error_tag.data)

        name_tag = reply.get_tag(TagType.GETSET_NAME)
        value_tag = reply.get_tag(TagType.GETSET_VALUE)
        if name_tag is None or value_tag is None:
            raise HdhrProtocolError(f"Get/set reply to {name!r} is missing its name or value tag: {reply}")
        if name_tag.data != name_data:
            raise HdhrProtocolError(
                f"Get/set reply is for {strip_null(name_tag.data)!r}, but query was for {name!r}")
        return value_tag.data

    async def query(self, name: str) -> bytes:
        """Performs a read-only get query for a named value, such as "/sys/model".

        Returns the raw value bytes, including the trailing null terminator.

        Raises:
            HdhrDeviceError: The device reported an error (see HdhrDeviceError.is_not_exist()).
            HdhrProtocolError: The reply did not match the query.
        """
        return await self._getset(name)

    async def set(self, name: str, value: Union[str, bytes]) -> bytes:
        """Sets a named value, returning the raw value bytes echoed by the device."""
        return await self._getset(name, value)

    async def query_str(self, name: str) -> str:
        """Performs a get query and returns the value as a str without its null terminator."""
        return strip_null(await self.query(name))

    async def model(self) -> str:
        """Returns the model name of the device."""
        return await self.query_str("/sys/model")

    def tuner(self, index: int) -> HdhrTuner:
        """Returns an HdhrTuner that queries the tuner with the given index."""
        return HdhrTuner(self, index)

    async def for_each_tuner(self, visit: Callable[[HdhrTuner], Awaitable[None]]) -> None:
        """Awaits visit(tuner) for each tuner on the device, in index order.

        Tuners are probed by querying "/tuner<n>/debug" for n = 0, 1, 2, ...
        until the device reports that the tuner does not exist. Any other error,
        including one raised by visit, is propagated.
        """
        index = 0
        while True:
            tuner = self.tuner(index)
            try:
                await tuner.query("debug")
            except HdhrDeviceError as e:
                if e.is_not_exist():
                    logger.debug(f"{self}: tuner {index} does not exist; {index} tuner(s) found")
                    return
                raise
            await visit(tuner)
            index += 1

    async def aclose(self) -> None:
        await self.transport.aclose()

    async def __aenter__(self) -> HdhrClient:
        logger.debug(f"{self}: Entering async context manager")
        return self

    async def __aexit__(
            self,
            exc_type: Optional[Type[BaseException]],
            exc_val: Optional[BaseException],
            exc_tb: Optional[TracebackType],
          ) -> None:
        logger.debug(f"{self}: Exiting async context manager, exc={exc_val}")
        await self.aclose()

    def __str__(self) -> str:
        return f"HdhrClient({self.transport})"

    def __repr__(self) -> str:
        return str(self)
