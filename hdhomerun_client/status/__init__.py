# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Typed decoding of HDHomeRun tuner status text.
"""

from .tuner_debug import (
    TunerDebug,
    TunerStatus,
    DeviceStatus,
    CableCardStatus,
    TransportStreamStatus,
    NetworkStatus,
    StopReason,
  )
