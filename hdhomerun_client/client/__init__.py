# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
HDHomeRun client.

Provides a transaction client for the HDHomeRun TCP control protocol, and
get/set query helpers layered on top of it.
"""

from .client_config import HdhrClientConfig
from .client_transport import HdhrClientTransport
from .client_transport_transaction import HdhrClientTransportTransaction
from .tcp_client_transport import TcpHdhrClientTransport
from .resolve_host import resolve_device_tcp_host, split_host_port
from .tuner import HdhrTuner
from .client_impl import HdhrClient
from .connect import hdhomerun_connect, hdhomerun_transport_connect
