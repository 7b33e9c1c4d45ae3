# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
HDHomeRun simple client connection API.
"""

from __future__ import annotations

from ..internal_types import *

from .client_config import HdhrClientConfig
from .tcp_client_transport import TcpHdhrClientTransport
from .client_impl import HdhrClient

async def hdhomerun_transport_connect(
        host: Optional[str]=None,
        timeout_secs: Optional[float]=None,
        config: Optional[HdhrClientConfig]=None
      ) -> TcpHdhrClientTransport:
    """Create and connect a transport for an HDHomeRun device.

    Args:
        host: The hostname or IP address of the device.
                May optionally be prefixed with "tcp://".
                May be suffixed with ":<port>" to specify a
                non-default port.
                May be "discover://" or "discover://<device-id>" to use
                UDP discovery to locate the device.
                If None, the host will be taken from the
                HDHOMERUN_HOST environment variable.
        timeout_secs:
                The timeout for each transaction; 0 disables it. If None,
                the timeout is taken from config.
        config: An HdhrClientConfig object that specifies
                the default host, port, and timeouts to use.
                If None, a default config will be created.
    """
    transport = TcpHdhrClientTransport(host, timeout_secs=timeout_secs, config=config)
    await transport.connect()
    return transport

async def hdhomerun_connect(
        host: Optional[str]=None,
        timeout_secs: Optional[float]=None,
        config: Optional[HdhrClientConfig]=None
      ) -> HdhrClient:
    """Create and connect a client for an HDHomeRun device.

    Args:
        host: The hostname or IP address of the device. See hdhomerun_transport_connect().
        timeout_secs:
                The timeout for each transaction; 0 disables it. If None,
                the timeout is taken from config.
        config: An HdhrClientConfig object that specifies
                the default host, port, and timeouts to use.
                If None, a default config will be created.

    Example:
        async with await hdhomerun_connect("192.168.1.100") as client:
            print(await client.model())
    """
    transport = await hdhomerun_transport_connect(host, timeout_secs=timeout_secs, config=config)
    return HdhrClient(transport)
