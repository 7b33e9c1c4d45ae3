# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
HDHomeRun device emulator.

Provides a simple emulation of an HDHomeRun device on TCP/IP and UDP discovery.
"""

from .emulator_impl import (
    HdhrEmulator,
    IDLE_TUNER_DEBUG,
    DEFAULT_EMULATOR_MODEL,
    DEFAULT_EMULATOR_DEVICE_ID,
  )
