# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Discovery protocol for HDHomeRun devices.

A client broadcasts a single DISCOVER_REQ packet over UDP; each matching device
replies with a DISCOVER_RPY packet carrying its type, ID, tuner count and base URL.
"""

from .constants import DISCOVERY_MULTICAST_ADDRESS, DISCOVERY_PORT
from .device import DiscoveredDevice, parse_device_id, discover_packet, format_addr
from .discoverer import HdhrDiscoverer, new_discoverer, discover_devices
