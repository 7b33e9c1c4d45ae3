# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Constants used by the discovery protocol"""

DISCOVERY_MULTICAST_ADDRESS = "255.255.255.255"
"""The address that discovery requests are broadcast to by default."""

DISCOVERY_PORT = 65001
"""The UDP port that devices listen on for discovery requests."""
