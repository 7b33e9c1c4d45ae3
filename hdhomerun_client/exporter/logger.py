# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Logger for the HDHomeRun Prometheus exporter.
"""

from __future__ import annotations

import logging

logger = logging.getLogger('hdhomerun_client.exporter')
