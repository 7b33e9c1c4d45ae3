# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
HDHomeRun host IP/Port resolver.

Provides a method that can resolve various host strings, environment variables,
UDP discovery, etc. into a device IP address and TCP port.
"""

from __future__ import annotations

from ..internal_types import *
from ..exceptions import HdhrError
from ..pkg_logging import logger
from ..discovery import DiscoveredDevice, discover_devices
from ..protocol import DEVICE_ID_WILDCARD

from .client_config import HdhrClientConfig

def split_host_port(host: str, default_port: int) -> Tuple[str, int]:
    """Splits "host", "host:port" or "[v6-host]:port" into a host and port.

    A bare IPv6 address (more than one colon, no brackets) is returned with the
    default port.
    """
    if host.startswith('['):
        end = host.find(']')
        if end < 0:
            raise HdhrError(f"Missing ']' in host specifier: '{host}'")
        result_host = host[1:end]
        rest = host[end+1:]
        if rest == '':
            return (result_host, default_port)
        if not rest.startswith(':'):
            raise HdhrError(f"Invalid host specifier: '{host}'")
        port_str = rest[1:]
    elif host.count(':') == 1:
        result_host, port_str = host.split(':', 1)
    else:
        return (host, default_port)
    try:
        port = int(port_str)
    except ValueError:
        raise HdhrError(f"Invalid port in host specifier: '{host}'") from None
    if port <= 0 or port > 0xffff:
        raise HdhrError(f"Port out of range in host specifier: '{host}'")
    return (result_host, port)

async def resolve_device_tcp_host(
        host: Optional[str]=None,
        default_port: Optional[int]=None,
        config: Optional[HdhrClientConfig]=None,
      ) -> Tuple[str, int, Optional[DiscoveredDevice]]:
    """Resolves a device host string into a TCP/IP hostname and port.

        Args:
            host: The hostname or IP address of the device.
                    May optionally be prefixed with "tcp://".
                    May be suffixed with ":<port>" to specify a
                    non-default port, which will override the default_port argument.
                    IPv6 addresses with a port must be bracketed ("[::1]:65001").
                    May be "discover://" or "discover://<device-id>" to use
                    UDP discovery to locate the device.
                    If None, the default host in config is used.
            default_port: The default TCP/IP port number to use. If None, the port
                    will be taken from the config.

        Returns:
            A tuple of (hostname: str, port: int, device: Optional[DiscoveredDevice]) where:
                hostname: The resolved IP address or DNS name.
                port:     The resolved port number.
                device:   The discovered device, if discovery was used to
                          locate the device. None otherwise.
    """
    config = HdhrClientConfig(
        default_host=host,
        default_port=default_port,
        base_config=config
      )
    host = config.default_host
    if host is None:
        raise HdhrError("No HDHomeRun host specified, and HDHOMERUN_HOST is not set")
    default_port = config.default_port

    device: Optional[DiscoveredDevice] = None

    if host.startswith('discover://'):
        device_id = host[len('discover://'):]
        if device_id == '':
            device_id = DEVICE_ID_WILDCARD
        devices = await discover_devices(
            wait_secs=config.discovery_wait_secs,
            device_id=device_id,
            max_devices=1,
          )
        if len(devices) == 0:
            raise HdhrError(
                "No HDHomeRun device found" if device_id == DEVICE_ID_WILDCARD
                else f"No HDHomeRun device found with ID {device_id!r}")
        device = devices[0]
        logger.debug(f"Resolved {host} to {device}")
        result_host = device.host
        port = default_port
    elif host.startswith('tcp://') or not '/' in host:
        if host.startswith('tcp://'):
            host = host[6:]
        result_host, port = split_host_port(host, default_port)
    else:
        raise HdhrError(f"Invalid host specifier for TCP transport: '{host}'")

    return (result_host, port, device)
