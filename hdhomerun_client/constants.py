# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Constants used by hdhomerun_client"""

DEFAULT_PORT = 65001
"""The listen port number used by devices for TCP/IP control."""

DEFAULT_TIMEOUT = 1.0
"""The default timeout for a combined request write and reply read, in seconds.
   A value of 0 disables the timeout."""

CONNECT_TIMEOUT = 5.0
"""The timeout for connecting to a device over TCP/IP, in seconds."""

DISCOVERY_WAIT_TIME = 2.0
"""The default amount of time to wait for discovery replies, in seconds."""
