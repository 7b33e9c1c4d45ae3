# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Package hdhomerun_client provides a command-line tool and asyncio API for querying
and discovering HDHomeRun TV tuner devices via their binary TCP/UDP protocol,
and a Prometheus exporter built on it.
"""

from .version import __version__

from .pkg_logging import logger

from .internal_types import Jsonable, JsonableDict

from .exceptions import (
    HdhrError,
    HdhrPacketError,
    HdhrTruncatedPacketError,
    HdhrChecksumError,
    HdhrTagLengthBufferError,
    HdhrPacketTooLargeError,
    HdhrProtocolError,
    HdhrStatusParseError,
    HdhrDeviceError,
    is_not_exist,
  )

from .constants import DEFAULT_PORT, DEFAULT_TIMEOUT, CONNECT_TIMEOUT, DISCOVERY_WAIT_TIME

from .protocol import (
    Packet,
    Tag,
    PacketType,
    TagType,
    DeviceType,
    DEVICE_ID_WILDCARD,
  )

from .status import (
    TunerDebug,
    TunerStatus,
    DeviceStatus,
    CableCardStatus,
    TransportStreamStatus,
    NetworkStatus,
    StopReason,
  )

from .discovery import (
    DiscoveredDevice,
    HdhrDiscoverer,
    new_discoverer,
    discover_devices,
    parse_device_id,
  )

from .client import (
    HdhrClient,
    HdhrTuner,
    HdhrClientConfig,
    HdhrClientTransport,
    TcpHdhrClientTransport,
    resolve_device_tcp_host,
    hdhomerun_connect,
    hdhomerun_transport_connect,
  )

from .util import (
    full_class_name,
    full_name_of_class,
    null_terminated,
    strip_null,
)
