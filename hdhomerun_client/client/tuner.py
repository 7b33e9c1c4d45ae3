# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Access to a single tuner on an HDHomeRun device.
"""

from __future__ import annotations

from ..internal_types import *
from ..status import TunerDebug

if TYPE_CHECKING:
    from .client_impl import HdhrClient

class HdhrTuner:
    """An HDHomeRun TV tuner, identified by its index on the device.

    Tuners should be obtained with HdhrClient.tuner().
    """
    client: HdhrClient
    index: int

    def __init__(self, client: HdhrClient, index: int) -> None:
        self.client = client
        self.index = index

    @property
    def base_path(self) -> str:
        return f"/tuner{self.index}/"

    async def query(self, path: str) -> bytes:
        """Performs a get query for a value under this tuner's base path, e.g. "debug"."""
        return await self.client.query(self.base_path + path.lstrip('/'))

    async def debug(self) -> TunerDebug:
        """Retrieves and parses the tuner's debugging status."""
        return TunerDebug.parse(await self.query("debug"))

    def __str__(self) -> str:
        return f"HdhrTuner({self.index})"

    def __repr__(self) -> str:
        return str(self)
